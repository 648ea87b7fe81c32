"""
Built-in macro registrations.
Call register_all_builtins() once at application startup.
"""

from __future__ import annotations

from typing import Optional

from .registry import MacroRegistry, macro_registry
from . import (
    macro_core,
    macro_date,
    macro_env,
    macro_random,
    macro_variables,
)


def register_all_builtins(registry: Optional[MacroRegistry] = None) -> None:
    """Register every built-in macro with *registry* (the shared one by default)."""
    registry = registry if registry is not None else macro_registry
    macro_core.register(registry)
    macro_env.register(registry)
    macro_date.register(registry)
    macro_random.register(registry)
    macro_variables.register(registry)
