"""
MacroParamParser
================
Finds ``{{...}}`` placeholders in text, splits their inside into flags, a
macro name and unnamed arguments, and binds those arguments to a
MacroDescriptor.

Supported forms
---------------
  {{name}}                  → name, []
  {{name::a::b}}            → name, ["a", "b"]
  {{name some text}}        → name, ["some text"]
  {{// comment text}}       → "//", ["comment text"]
  {{#name::a}}              → name, ["a"], flags "#"
  {{/name}}                 → closing tag of a scoped block
  {{.var}} {{$var += 2}}    → VariableExpression (local / global shorthand)

Flags are the characters ``! ? ~ # / >`` in front of the name.  Only ``/``
(closing tag) and ``#`` (keep the whitespace of scoped content) change
anything; the rest are accepted and ignored.

Separators inside nested placeholders are ignored:
  {{setvar::x::{{getvar::y}}}}  → setvar, ["x", "{{getvar::y}}"]

A backslash before a brace stops it from opening or closing a placeholder.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Iterator, Optional, Union

from slashscript.core.coercion import coerce_first
from slashscript.core.errors import ArgumentValidationError
from slashscript.schemas import COMMENT_MACRO, MacroDescriptor

logger = logging.getLogger(__name__)

OPEN, CLOSE = "{{", "}}"
ARG_SEPARATOR = "::"
FLAG_CHARS = "!?~#/>"
CLOSING_FLAG = "/"
PRESERVE_WHITESPACE_FLAG = "#"

_NAME = re.compile(r"[a-zA-Z][\w-]*")
VARIABLE_NAME = r"[a-zA-Z](?:[\w-]*\w)?"
_VARIABLE = re.compile(rf"([.$])({VARIABLE_NAME})")

# longest first, so "??=" is not read as "??"
VARIABLE_OPERATORS = ("++", "--", "??=", "??", "||=", "||", "-=", "+=",
                      "==", "!=", ">=", ">", "<=", "<", "=")
_NO_VALUE_OPERATORS = ("++", "--")


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Scanning
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

def find_open(text: str, pos: int) -> int:
    """Index of the next unescaped ``{{`` at or after *pos*, or -1."""
    i = pos
    while i < len(text) - 1:
        ch = text[i]
        if ch == "\\" and text[i + 1] in "{}":
            i += 2
            continue
        if ch == "{" and text[i + 1] == "{":
            return i
        i += 1
    return -1


def find_close(text: str, start: int) -> int:
    """Index of the ``}}`` matching the ``{{`` at *start*, or -1."""
    depth = 0
    i = start
    while i < len(text) - 1:
        if text[i] == "\\" and text[i + 1] in "{}":
            i += 2
            continue
        if text.startswith(OPEN, i):
            depth += 1
            i += 2
            continue
        if text.startswith(CLOSE, i):
            depth -= 1
            if depth == 0:
                return i
            i += 2
            continue
        i += 1
    return -1


def scan_placeholders(text: str, pos: int = 0) -> Iterator[tuple[int, int]]:
    """Yield ``(start, end)`` of every top-level placeholder; *end* is exclusive."""
    while True:
        start = find_open(text, pos)
        if start == -1:
            return
        end = find_close(text, start)
        if end == -1:
            return      # unterminated: the rest is literal text
        pos = end + len(CLOSE)
        yield start, pos


def split_top_level(text: str, sep: str = ARG_SEPARATOR) -> list[str]:
    """Split *text* on *sep*, skipping separators inside nested {{...}}."""
    parts: list[str] = []
    depth = 0
    start = 0
    i = 0
    while i < len(text):
        if text.startswith("{{", i):
            depth += 1
            i += 2
        elif text.startswith("}}", i) and depth:
            depth -= 1
            i += 2
        elif depth == 0 and text.startswith(sep, i):
            parts.append(text[start:i])
            i += len(sep)
            start = i
        else:
            i += 1
    parts.append(text[start:])
    return parts


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Placeholder parsing
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

@dataclass(frozen=True)
class Placeholder:
    name: str
    args: list[str] = field(default_factory=list)
    flags: str = ""

    @property
    def is_closing(self) -> bool:
        return CLOSING_FLAG in self.flags

    @property
    def preserve_whitespace(self) -> bool:
        return PRESERVE_WHITESPACE_FLAG in self.flags


@dataclass(frozen=True)
class VariableExpression:
    """``{{.name op value}}`` (local) or ``{{$name op value}}`` (global)."""

    is_global: bool
    name: str
    operator: Optional[str] = None
    value: str = ""     # unresolved; only expanded when the operator needs it


def parse_placeholder(inner: str) -> Optional[Union[Placeholder, VariableExpression]]:
    """
    Parse the text between ``{{`` and ``}}``.  Returns None when it is not
    a well-formed macro call, so the caller can leave it in place.
    """
    text = inner.strip()
    if text.startswith(CLOSING_FLAG + COMMENT_MACRO):
        return Placeholder(COMMENT_MACRO, [], CLOSING_FLAG)
    if text.startswith(COMMENT_MACRO):
        return Placeholder(COMMENT_MACRO, [text[len(COMMENT_MACRO):].strip()])
    if text[:1] in (".", "$"):
        return parse_variable_expression(text)

    flags = ""
    while text and text[0] in FLAG_CHARS:
        flags += text[0]
        text = text[1:].lstrip()

    m = _NAME.match(text)
    if not m:
        return None
    name = m.group(0)
    rest = text[m.end():]

    if not rest:
        return Placeholder(name, [], flags)
    if rest.startswith(ARG_SEPARATOR):
        return Placeholder(name, split_top_level(rest[len(ARG_SEPARATOR):]), flags)
    if rest[0].isspace():
        return Placeholder(name, [rest.strip()], flags)
    return None


def parse_variable_expression(text: str) -> Optional[VariableExpression]:
    m = _VARIABLE.match(text)
    if not m:
        return None
    is_global, name = m.group(1) == "$", m.group(2)
    rest = text[m.end():].lstrip()
    if not rest:
        return VariableExpression(is_global, name)

    for op in VARIABLE_OPERATORS:
        if rest.startswith(op):
            value = rest[len(op):].strip()
            if op in _NO_VALUE_OPERATORS and value:
                return None
            return VariableExpression(is_global, name, op, value)
    return None


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Scoped content
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

def trim_scoped_content(content: str, trim_indent: bool = True) -> str:
    """
    Trim scoped block content and remove the indentation of its first
    non-empty line from every line, so an indented block::

        {{if x}}
          # Heading
          Body
        {{/if}}

    yields ``"# Heading\\nBody"``.  Lines indented less than the first one
    just lose their leading whitespace.
    """
    if not content:
        return ""
    if not trim_indent:
        return content.strip()

    lines = content.split("\n")
    base = 0
    for line in lines:
        if line.strip():
            base = len(line) - len(line.lstrip(" \t"))
            break
    if base == 0:
        return content.strip()

    dedented = []
    for line in lines:
        indent = len(line) - len(line.lstrip(" \t"))
        dedented.append(line[base:] if indent >= base else line.lstrip())
    return "\n".join(dedented).strip()


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Binding
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

Resolver = Callable[[str], Awaitable[str]]


async def _unresolved(text: str) -> str:
    return text


@dataclass
class MacroArgs:
    """Arguments handed to a macro handler.

    ``unnamed`` holds the coerced positional values (missing optional ones
    replaced by their defaults), ``tail`` the values beyond the declared
    positions when the macro accepts a list, ``raw`` the original strings.

    ``scoped`` is True when the last argument came from a
    ``{{name}}...{{/name}}`` block.  ``offset`` is the placeholder's position
    in the expanded document.  ``resolve`` expands macros in a string with
    the caller's env; macros that delay argument resolution use it to
    expand only what they need.
    """

    name: str
    unnamed: list[Any] = field(default_factory=list)
    raw: list[str] = field(default_factory=list)
    tail: Optional[list[str]] = None
    flags: str = ""
    scoped: bool = False
    offset: int = 0
    resolve: Resolver = _unresolved

    @property
    def preserve_whitespace(self) -> bool:
        return PRESERVE_WHITESPACE_FLAG in self.flags

    def __iter__(self) -> Iterator[Any]:
        return iter(self.unnamed)

    def __getitem__(self, index: int) -> Any:
        return self.unnamed[index]

    def __len__(self) -> int:
        return len(self.unnamed)


def _expectation(desc: MacroDescriptor) -> str:
    lo = desc.min_args + (desc.list_spec.min if desc.list_spec else 0)
    if desc.list_spec is None:
        hi: Optional[int] = desc.max_args
    elif desc.list_spec.max is not None:
        hi = desc.max_args + desc.list_spec.max
    else:
        hi = None
    if hi is None:
        return f"at least {lo}"
    if hi == lo:
        return str(lo)
    return f"between {lo} and {hi}"


def _count_ok(desc: MacroDescriptor, n: int) -> bool:
    if desc.list_spec is None:
        return desc.min_args <= n <= desc.max_args
    if n < desc.min_args + desc.list_spec.min:
        return False
    tail = max(0, n - desc.max_args)
    return desc.list_spec.max is None or tail <= desc.list_spec.max


def accepts_scoped_content(desc: MacroDescriptor, arg_count: int) -> bool:
    """Whether one more argument (the block content) still fits *desc*."""
    if desc.list_spec is not None:
        return False
    return desc.min_args <= arg_count + 1 <= desc.max_args


def bind_macro_args(desc: MacroDescriptor, raw_args: list[str], **context: Any) -> MacroArgs:
    """
    Bind *raw_args* positionally to *desc*.

    A value that fails its declared type falls back to the declared default.
    Without a default, strict macros raise ArgumentValidationError and
    lenient ones keep the raw string.  *context* fills the remaining
    MacroArgs fields (flags, scoped, offset, resolve).
    """
    if not _count_ok(desc, len(raw_args)):
        msg = (f'Macro "{desc.name}" called with {len(raw_args)} unnamed arguments '
               f"but expects {_expectation(desc)}")
        if desc.strict_args:
            raise ArgumentValidationError(msg, name=desc.name)
        logger.warning(msg)

    positional = raw_args[:desc.max_args]
    tail = None
    if desc.list_spec is not None:
        tail = raw_args[desc.max_args:] if len(raw_args) > desc.max_args else []

    values: list[Any] = []
    for i, spec in enumerate(desc.unnamed_args):
        if i >= len(positional):
            values.append(_default(spec.default_value, spec.type))
            continue
        value = positional[i]
        try:
            values.append(coerce_first(value, spec.type))
        except ValueError:
            label = f'Macro "{desc.name}" argument "{spec.name}" (position {i + 1})'
            if spec.default_value is not None:
                logger.warning("%s expected %s but got %r; using default %r",
                               label, "/".join(spec.type), value, spec.default_value)
                values.append(_default(spec.default_value, spec.type))
            elif desc.strict_args:
                raise ArgumentValidationError(
                    f"{label} expected type {'/'.join(spec.type)} but got value {value!r}",
                    name=desc.name, argument=spec.name,
                )
            else:
                logger.warning("%s expected %s but got %r", label, "/".join(spec.type), value)
                values.append(value)

    if not desc.unnamed_args and desc.list_spec is None:
        values = list(raw_args)

    return MacroArgs(name=desc.name, unnamed=values, raw=list(raw_args), tail=tail, **context)


def _default(value: Optional[str], types: tuple[str, ...]) -> Any:
    if value is None:
        return None
    try:
        return coerce_first(value, types)
    except ValueError:
        return value
