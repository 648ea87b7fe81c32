"""
Macro subsystem — public API.
"""

from .registry import MacroRegistry, macro_registry
from .engine import MacroEngine, macro_engine
from .context import MacroEnv, MacroEnvBuilder, MacroNames
from .params import MacroArgs
from .builtins import register_all_builtins

__all__ = [
    "MacroRegistry",
    "macro_registry",
    "MacroEngine",
    "macro_engine",
    "MacroEnv",
    "MacroEnvBuilder",
    "MacroNames",
    "MacroArgs",
    "register_all_builtins",
]
