"""
Argument assignments and binding
================================
The parser records every argument as an assignment:

  NamedArgumentAssignment    key=value
  UnnamedArgumentAssignment  positional text or closure

An assignment's value is either a literal string or a nested Closure, and
that shape never changes after construction.

At run time the interpreter evaluates the values and bind_arguments()
checks them against the command's declared specs, coercing each one to
its declared type.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional, Sequence

from slashscript.core.coercion import coerce_first, normalize_value
from slashscript.core.errors import ArgumentValidationError
from slashscript.schemas import ArgumentSpec, CommandDescriptor

from .closure import Closure


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Assignments
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class ArgumentAssignment:

    def __init__(self, value: str | Closure, start: int = 0, end: int = 0) -> None:
        self._value = value
        self._is_closure = isinstance(value, Closure)
        self.start = start
        self.end = end

    @property
    def value(self) -> str | Closure:
        return self._value

    @property
    def is_closure(self) -> bool:
        return self._is_closure


class NamedArgumentAssignment(ArgumentAssignment):

    def __init__(self, name: str, value: str | Closure, start: int = 0, end: int = 0) -> None:
        super().__init__(value, start, end)
        self.name = name

    def __repr__(self) -> str:
        return f"{self.name}={self.value!r}"


class UnnamedArgumentAssignment(ArgumentAssignment):

    def __repr__(self) -> str:
        return repr(self.value)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Binding
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

@dataclass
class BoundArguments:
    """Validated argument values handed to a command callback."""

    named: dict[str, Any] = field(default_factory=dict)
    unnamed: list[Any] = field(default_factory=list)

    def get(self, key: str, default: Any = None) -> Any:
        return self.named.get(key, default)

    @property
    def value(self) -> str:
        """The unnamed values as one string ("" when there are none)."""
        return " ".join(normalize_value(v) for v in self.unnamed if not isinstance(v, Closure))


def _check(command: CommandDescriptor, spec: ArgumentSpec, label: str, value: Any) -> Any:
    if isinstance(value, Closure):
        if spec.accepts_closure:
            return value
        raise ArgumentValidationError(
            f"/{command.name} argument {label} does not accept a closure",
            name=command.name, argument=label,
        )

    text = normalize_value(value)
    if spec.enum_list and text not in spec.enum_list:
        raise ArgumentValidationError(
            f"/{command.name} argument {label} must be one of {', '.join(spec.enum_list)}; got {text!r}",
            name=command.name, argument=label,
        )

    types = [t for t in spec.type_list if t != "closure"]
    if not types:
        raise ArgumentValidationError(
            f"/{command.name} argument {label} expects a closure; got {text!r}",
            name=command.name, argument=label,
        )
    try:
        return coerce_first(text, types)
    except ValueError:
        raise ArgumentValidationError(
            f"/{command.name} argument {label} expected type {'/'.join(types)} but got value {text!r}",
            name=command.name, argument=label,
        ) from None


def bind_arguments(
    command: CommandDescriptor,
    named_values: Sequence[tuple[str, Any]],
    unnamed_values: Sequence[Any],
    pipe: Optional[str] = None,
    inject_pipe: bool = True,
    split: Optional[bool] = None,
) -> BoundArguments:
    """
    Validate evaluated argument values against *command*'s specs.

    When there are no explicit unnamed values the pipe is injected as the
    single unnamed value, unless *inject_pipe* is False.  Unless *split*
    (default: the command's ``split_unnamed``) the unnamed values are
    joined into one string.
    """
    bound = BoundArguments()

    # ── named ──────────────────────────────────────────────────────────────
    grouped: dict[str, list[Any]] = {}
    for key, value in named_values:
        grouped.setdefault(key, []).append(value)

    for key, values in grouped.items():
        spec = command.named_spec(key)
        if spec is None:
            raise ArgumentValidationError(
                f"/{command.name} does not accept named argument '{key}'",
                name=command.name, argument=key,
            )
        if len(values) > 1 and not spec.accepts_multiple:
            raise ArgumentValidationError(
                f"/{command.name} named argument '{key}' given more than once",
                name=command.name, argument=key,
            )
        checked = [_check(command, spec, f"'{key}'", v) for v in values]
        bound.named[key] = checked if spec.accepts_multiple else checked[0]

    for spec in command.named_argument_list:
        if spec.name in bound.named:
            continue
        if spec.is_required:
            raise ArgumentValidationError(
                f"/{command.name} is missing required named argument '{spec.name}'",
                name=command.name, argument=spec.name,
            )
        if spec.default_value is not None:
            bound.named[spec.name] = spec.default_value

    # ── unnamed ────────────────────────────────────────────────────────────
    if split is None:
        split = command.split_unnamed
    values = list(unnamed_values)
    if not values and inject_pipe and pipe is not None:
        values = [pipe]
    if not split and len(values) > 1 and not any(isinstance(v, Closure) for v in values):
        values = ["".join(normalize_value(v) for v in values)]

    specs = command.unnamed_argument_list
    if not specs:
        bound.unnamed = values
        return bound

    for i, value in enumerate(values):
        if i < len(specs):
            spec = specs[i]
        elif specs[-1].accepts_multiple:
            spec = specs[-1]
        else:
            raise ArgumentValidationError(
                f"/{command.name} takes at most {len(specs)} unnamed argument(s); got {len(values)}",
                name=command.name,
            )
        bound.unnamed.append(_check(command, spec, f"#{i + 1}", value))

    for i, spec in enumerate(specs[len(values):], start=len(values)):
        if spec.is_required:
            raise ArgumentValidationError(
                f"/{command.name} is missing required unnamed argument #{i + 1}"
                + (f" ({spec.name})" if spec.name else ""),
                name=command.name, argument=spec.name,
            )
        if spec.default_value is not None:
            bound.unnamed.append(spec.default_value)

    return bound
