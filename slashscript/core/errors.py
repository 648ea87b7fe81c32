#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Error hierarchy
===============
Every error the engine raises derives from ``SlashScriptError``.

  ParseError               malformed script text (aborts before any side effect)
  UnknownCommandError      no command registered under the name/alias
  ArgumentValidationError  a value fails its declared type/shape
  CommandExecutionError    a command callback raised (wraps the cause)
  DuplicateNameError       registry name/alias collision
  MacroDefinitionError     invalid macro/command descriptor options
  ScopeError               scoped variable misuse
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

from typing import Optional


class SlashScriptError(Exception):
    pass


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Registration
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class DuplicateNameError(SlashScriptError):

    def __init__(self, name: str, existing: str, kind: str = "macro") -> None:
        self.name = name
        self.existing = existing
        if name.lower() == existing.lower():
            msg = f"{kind.capitalize()} name '{name}' is already registered"
        else:
            msg = f"{kind.capitalize()} name '{name}' collides with '{existing}'"
        super().__init__(msg)


class MacroDefinitionError(SlashScriptError):
    pass


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Parsing
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class ParseError(SlashScriptError):
    """Malformed script text.

    ``start``/``end`` are offsets into the parsed text; ``line`` and
    ``column`` are 1-based; ``hint`` is the offending source line with a
    caret under ``start``.
    """

    def __init__(self, message: str, text: str = "", start: int = 0, end: Optional[int] = None) -> None:
        self.start = start
        self.end = start if end is None else end
        self.line, self.column, self.hint = _locate(text, start)
        self.message = message
        super().__init__(message)

    def __str__(self) -> str:
        return f"{self.message} (line {self.line}, column {self.column})"


def _locate(text: str, offset: int) -> tuple[int, int, str]:
    offset = max(0, min(offset, len(text)))
    line_start = text.rfind("\n", 0, offset) + 1
    line_end = text.find("\n", offset)
    if line_end == -1:
        line_end = len(text)
    line = text.count("\n", 0, offset) + 1
    column = offset - line_start + 1
    source_line = text[line_start:line_end]
    hint = f"{source_line}\n{' ' * (column - 1)}^"
    return line, column, hint


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Execution
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class UnknownCommandError(SlashScriptError):

    def __init__(self, name: str, start: int = 0, end: int = 0) -> None:
        self.name = name
        self.start = start
        self.end = end
        super().__init__(f"Unknown command: /{name}")


class ArgumentValidationError(SlashScriptError):

    def __init__(self, message: str, name: str = "", argument: str = "") -> None:
        self.name = name
        self.argument = argument
        super().__init__(message)


class CommandExecutionError(SlashScriptError):
    """A command callback raised; the original exception is ``__cause__``."""

    def __init__(self, name: str, cause: BaseException, start: int = 0, end: int = 0) -> None:
        self.name = name
        self.cause = cause
        self.start = start
        self.end = end
        super().__init__(f"/{name} failed: {cause}")


# -----------------------------------------------------------------------------

class ScopeError(SlashScriptError):
    pass


class ScopeVariableNotFoundError(ScopeError):

    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(f"No such scoped variable: '{key}'")


class ScopeVariableExistsError(ScopeError):

    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(f"Scoped variable '{key}' is already defined in this scope")


# -----------------------------------------------------------------------------
