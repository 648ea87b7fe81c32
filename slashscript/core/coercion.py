"""
Value coercion shared by macro and command argument binding.

Script and macro values travel as strings; declared argument types decide
how a string is checked and converted, and every result is normalised back
to a string before it reaches the pipe or the output text.
"""

from __future__ import annotations

import json
import re
from datetime import date, datetime
from typing import Any, Iterable

_INTEGER = re.compile(r"^-?\d+$")

TRUE_WORDS = frozenset({"true", "on", "yes", "1"})
FALSE_WORDS = frozenset({"false", "off", "no", "0"})


def is_true_boolean(value: str) -> bool:
    return value.strip().lower() in TRUE_WORDS


def is_false_boolean(value: str) -> bool:
    return value.strip().lower() in FALSE_WORDS


def _as_number(text: str) -> int | float:
    if _INTEGER.match(text):
        return int(text)
    n = float(text)
    if n != n or n in (float("inf"), float("-inf")):
        raise ValueError(f"not a finite number: {text!r}")
    return n


def coerce_value(value: str, type_name: str) -> Any:
    """Convert a string to *type_name*, raising ValueError on mismatch."""
    text = value.strip()
    if type_name in ("string", "variable_name"):
        return value
    if type_name == "integer":
        if not _INTEGER.match(text):
            raise ValueError(f"not an integer: {value!r}")
        return int(text)
    if type_name == "number":
        return _as_number(text)
    if type_name == "boolean":
        if is_true_boolean(text):
            return True
        if is_false_boolean(text):
            return False
        raise ValueError(f"not a boolean: {value!r}")
    if type_name == "list":
        parsed = json.loads(text)
        if not isinstance(parsed, list):
            raise ValueError(f"not a list: {value!r}")
        return parsed
    if type_name == "dictionary":
        parsed = json.loads(text)
        if not isinstance(parsed, dict):
            raise ValueError(f"not a dictionary: {value!r}")
        return parsed
    raise ValueError(f"unknown type: {type_name}")


def coerce_first(value: str, type_names: Iterable[str]) -> Any:
    """Coerce with the first declared type that accepts *value*."""
    errors = []
    for type_name in type_names:
        try:
            return coerce_value(value, type_name)
        except (TypeError, ValueError) as exc:
            errors.append(str(exc))
    raise ValueError("; ".join(errors) or f"no type accepts {value!r}")


def normalize_value(value: Any) -> str:
    """Stringify a handler/callback result.

    None → "", booleans → "true"/"false", whole floats drop ".0",
    lists and dicts → JSON.
    """
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (list, tuple, dict)):
        try:
            return json.dumps(value, ensure_ascii=False)
        except (TypeError, ValueError):
            return str(value)
    return str(value)
