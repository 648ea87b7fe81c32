#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Variable store
==============
The external store that side-effecting macros and commands write to.

Two namespaces:
  local    per-conversation variables ({{setvar}}, /setvar, ...)
  global_  process-wide variables     ({{setglobalvar}}, /setglobalvar, ...)

Values are kept as given (str or number). Missing variables read as "".
No locking: runs are cooperative on one event loop.
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

import logging
from typing import Any, Iterator, Optional

from slashscript.core.coercion import coerce_value

logger = logging.getLogger(__name__)

Value = str | int | float


def to_number(value: Any) -> Optional[int | float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str) and value.strip():
        try:
            return coerce_value(value, "number")
        except ValueError:
            return None
    return None


# -----------------------------------------------------------------------------

class VariableNamespace:

    def __init__(self, name: str) -> None:
        self.name = name
        self._values: dict[str, Value] = {}

    def get(self, key: str) -> Value:
        return self._values.get(key, "")

    def set(self, key: str, value: Value) -> Value:
        self._values[key] = value
        logger.debug("%s var %r = %r", self.name, key, value)
        return value

    def add(self, key: str, value: Value) -> Value:
        """Add numerically when both sides are numbers, else append."""
        current = self._values.get(key)
        if current is None:
            return self.set(key, value)
        a, b = to_number(current), to_number(value)
        if a is not None and b is not None:
            return self.set(key, a + b)
        return self.set(key, f"{current}{value}")

    def inc(self, key: str) -> int | float:
        return self._step(key, 1)

    def dec(self, key: str) -> int | float:
        return self._step(key, -1)

    def _step(self, key: str, delta: int) -> int | float:
        current = to_number(self._values.get(key, 0))
        result = (current or 0) + delta
        self.set(key, result)
        return result

    def has(self, key: str) -> bool:
        return key in self._values

    def delete(self, key: str) -> bool:
        return self._values.pop(key, None) is not None

    def keys(self) -> list[str]:
        return sorted(self._values)

    def clear(self) -> None:
        self._values.clear()

    def __iter__(self) -> Iterator[str]:
        return iter(self.keys())

    def __len__(self) -> int:
        return len(self._values)


# -----------------------------------------------------------------------------

class VariableStore:

    def __init__(self) -> None:
        self.local = VariableNamespace("local")
        self.global_ = VariableNamespace("global")

    def namespace(self, is_global: bool) -> VariableNamespace:
        return self.global_ if is_global else self.local


# Singleton shared across the application
variable_store = VariableStore()
