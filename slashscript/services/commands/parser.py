"""
ScriptParser
============
Turns script text into a Closure tree.

  /name key=value key2="quoted value" unnamed text | /next {: /nested :}

Syntax summary
--------------
  /name                 a command; whitespace and newlines separate tokens
  |                     pipe: the previous result feeds the next command
  ||                    pipe break: the next command gets no implicit input
  key=value             named argument (bare word, "quoted", or {: closure :})
  {: ... :}             nested closure
  /name::a::b           shorthand for /name a b
  // ... and /# ...     comments, up to the next |
  /parser-flag F on     toggles a parser flag for the rest of the text
  \\|  \\{:  \\:}          literal operator characters

An unescaped :} with no open {: is a ParseError, like an unclosed {:.

Text inside {{...}} is copied verbatim, so a | inside a macro never splits
a command.  Macros are not expanded here; that happens at run time.
"""

from __future__ import annotations

import logging
import re
from typing import Mapping, Optional

from slashscript.core.errors import ParseError
from slashscript.schemas import ParserFlag, default_parser_flags

from .arguments import NamedArgumentAssignment, UnnamedArgumentAssignment
from .closure import Closure
from .executor import Executor
from .registry import CommandRegistry, command_registry

logger = logging.getLogger(__name__)

OPEN_CLOSURE, CLOSE_CLOSURE = "{:", ":}"
SHORTHAND = "::"

_NAMED_KEY = re.compile(r"([a-zA-Z][\w-]*)=")
_GETVAR_MACRO = re.compile(r"\{\{(getvar|getglobalvar)::((?:(?!\}\}).)+?)\}\}")
_SPLIT_TOKEN = re.compile(r'"((?:\\.|[^"\\])*)"|(\S+)')
_ESCAPABLE = ("|", OPEN_CLOSURE, CLOSE_CLOSURE)


class ScriptParser:
    """
    Usage::

        parser = ScriptParser()
        closure = parser.parse("/echo hello | /echo world")

    A parser instance is not re-entrant; use one per thread of parsing.
    """

    def __init__(self, registry: Optional[CommandRegistry] = None) -> None:
        self._registry = registry if registry is not None else command_registry
        self.text = ""
        self.index = 0
        self.flags: dict[ParserFlag, bool] = {}
        self._depth = 0

    @property
    def registry(self) -> CommandRegistry:
        return self._registry

    # ----------------------------------------------------------------- public

    def parse(self, text: str, flags: Optional[Mapping[ParserFlag, bool]] = None) -> Closure:
        self.text = text or ""
        self.index = 0
        self._depth = 0
        self.flags = default_parser_flags()
        if flags:
            self.flags.update({ParserFlag(k): bool(v) for k, v in flags.items()})

        closure = self._parse_closure(open_at=None)
        logger.debug("Parsed %d command(s) from %d characters", closure.command_count, len(self.text))
        return closure

    # ----------------------------------------------------------------- helpers

    def _error(self, message: str, start: int, end: Optional[int] = None) -> ParseError:
        return ParseError(message, text=self.text, start=start, end=end)

    def _at(self, token: str) -> bool:
        return self.text.startswith(token, self.index)

    @property
    def _done(self) -> bool:
        return self.index >= len(self.text)

    def _at_closure_end(self) -> bool:
        return self._depth > 0 and self._at(CLOSE_CLOSURE)

    def _check_stray_close(self) -> None:
        if self._depth == 0 and self._at(CLOSE_CLOSURE):
            raise self._error("Unexpected ':}' outside of a closure", self.index, self.index + len(CLOSE_CLOSURE))

    def _skip_whitespace(self) -> None:
        while not self._done and self.text[self.index].isspace():
            self.index += 1

    def _read_escape(self) -> Optional[str]:
        """Consume an escape sequence at the cursor, returning its literal text."""
        if not self._at("\\"):
            return None
        after = self.index + 1
        for token in _ESCAPABLE:
            if self.text.startswith(token, after):
                self.index = after + len(token)
                return token
        if self.flags.get(ParserFlag.STRICT_ESCAPING) and self.text[after:after + 1] in ("\\", '"'):
            self.index = after + 1
            return self.text[after]
        return None

    def _read_macro(self) -> Optional[str]:
        """Consume a balanced {{...}} span at the cursor, returning it verbatim."""
        if not self._at("{{"):
            return None
        depth = 0
        i = self.index
        while i < len(self.text) - 1:
            if self.text.startswith("{{", i):
                depth += 1
                i += 2
            elif self.text.startswith("}}", i):
                depth -= 1
                i += 2
                if depth == 0:
                    span = self.text[self.index:i]
                    self.index = i
                    return span
            else:
                i += 1
        return None

    def _read_quoted(self) -> str:
        """Consume a double-quoted string; \\" and \\\\ are escapes."""
        opener = self.index
        self.index += 1
        chars: list[str] = []
        while not self._done:
            ch = self.text[self.index]
            if ch == "\\" and self.text[self.index + 1:self.index + 2] in ('"', "\\"):
                chars.append(self.text[self.index + 1])
                self.index += 2
                continue
            if ch == '"':
                self.index += 1
                return "".join(chars)
            chars.append(ch)
            self.index += 1
        raise self._error("Unclosed quote", opener, opener + 1)

    # ---------------------------------------------------------------- closures

    def _parse_closure(self, open_at: Optional[int]) -> Closure:
        closure = Closure(start=self.index if open_at is None else open_at)
        inject_pipe = True

        while True:
            self._skip_whitespace()
            if self._done:
                if open_at is not None:
                    raise self._error("Unclosed closure: missing ':}'", open_at, open_at + len(OPEN_CLOSURE))
                break
            if self._at_closure_end():
                self.index += len(CLOSE_CLOSURE)
                break
            if self._at("||"):
                self.index += 2
                inject_pipe = False
                continue
            if self._at("|"):
                self.index += 1
                continue
            self._check_stray_close()
            if not self._at("/"):
                raise self._error("Expected a command starting with '/'", self.index, self.index + 1)
            if self._at("//") or self._at("/#"):
                self._skip_comment()
                continue

            executor = self._parse_executor()
            if executor is None:
                continue
            executor.inject_pipe = inject_pipe
            inject_pipe = True
            closure.add_executor(executor)

        closure.end = self.index
        closure.text = self.text[closure.start:closure.end]
        return closure

    def _parse_nested_closure(self) -> Closure:
        open_at = self.index
        self.index += len(OPEN_CLOSURE)
        self._depth += 1
        try:
            return self._parse_closure(open_at=open_at)
        finally:
            self._depth -= 1

    def _skip_comment(self) -> None:
        while not self._done and not self._at("|") and not self._at_closure_end():
            if self._read_escape() is None:
                self.index += 1

    # --------------------------------------------------------------- executors

    def _read_name(self) -> str:
        start = self.index
        while not self._done:
            ch = self.text[self.index]
            if ch.isspace() or ch == "|" or self._at(SHORTHAND) or self._at_closure_end():
                break
            self._check_stray_close()
            self.index += 1
        return self.text[start:self.index]

    def _parse_executor(self) -> Optional[Executor]:
        executor = Executor(start=self.index)
        self.index += 1
        name = self._read_name()
        if not name:
            raise self._error("Missing command name after '/'", executor.start, self.index)
        if name == "parser-flag":
            self._parse_parser_flag(executor.start)
            return None

        executor.name = name
        executor.command = self._registry.get(name)
        executor.parser_flags = dict(self.flags)
        executor.split_unnamed = bool(executor.command and executor.command.split_unnamed)

        if self._at(SHORTHAND):
            executor.unnamed_argument_list.extend(self._parse_shorthand())
            executor.split_unnamed = True

        executor.start_named_args = self.index
        self._parse_named(executor)
        executor.end_named_args = self.index

        self._skip_whitespace()
        executor.start_unnamed_args = self.index
        executor.unnamed_argument_list.extend(self._parse_unnamed(executor.split_unnamed))
        executor.end_unnamed_args = self.index

        executor.end = self.index
        return executor

    def _parse_parser_flag(self, start: int) -> None:
        self._skip_whitespace()
        flag_name = self._read_word()
        self._skip_whitespace()
        state = self._read_word().lower()
        try:
            flag = ParserFlag(flag_name.upper())
        except ValueError:
            raise self._error(f"Unknown parser flag: {flag_name!r}", start, self.index) from None
        if state not in ("on", "off"):
            raise self._error(f"Parser flag state must be 'on' or 'off', got {state!r}", start, self.index)
        self.flags[flag] = state == "on"

    def _read_word(self) -> str:
        start = self.index
        while not self._done and not self.text[self.index].isspace() and not self._at("|") \
                and not self._at_closure_end():
            self.index += 1
        return self.text[start:self.index]

    def _parse_shorthand(self) -> list[UnnamedArgumentAssignment]:
        values: list[UnnamedArgumentAssignment] = []
        while self._at(SHORTHAND):
            self.index += len(SHORTHAND)
            start = self.index
            chars: list[str] = []
            while not self._done:
                ch = self.text[self.index]
                if ch.isspace() or ch == "|" or self._at(SHORTHAND) or self._at_closure_end():
                    break
                literal = self._read_escape()
                if literal is None:
                    self._check_stray_close()
                    literal = self._read_macro()
                if literal is None:
                    literal = ch
                    self.index += 1
                chars.append(literal)
            values.append(UnnamedArgumentAssignment("".join(chars), start, self.index))
        return values

    # ----------------------------------------------------------- named values

    def _parse_named(self, executor: Executor) -> None:
        while True:
            self._skip_whitespace()
            m = _NAMED_KEY.match(self.text, self.index)
            if not m:
                return
            key = m.group(1)
            key_start, key_end = m.start(1), m.end(1)
            if executor.command is not None and executor.command.named_spec(key) is None:
                raise self._error(f"/{executor.name} does not accept named argument '{key}'", key_start, key_end)

            self.index = m.end()
            if self._at(OPEN_CLOSURE):
                value: str | Closure = self._parse_nested_closure()
            elif self._at('"'):
                value = self._read_quoted()
            else:
                value = self._read_bare_word()
            executor.named_argument_list.append(NamedArgumentAssignment(key, value, key_start, self.index))

    def _read_bare_word(self) -> str:
        chars: list[str] = []
        while not self._done:
            ch = self.text[self.index]
            if ch.isspace() or ch == "|" or self._at_closure_end():
                break
            literal = self._read_escape()
            if literal is None:
                self._check_stray_close()
                literal = self._read_macro()
            if literal is None:
                literal = ch
                self.index += 1
            chars.append(literal)
        return "".join(chars)

    # --------------------------------------------------------- unnamed values

    def _parse_unnamed(self, split: bool) -> list[UnnamedArgumentAssignment]:
        """
        Read unnamed text up to the next unescaped |, the enclosing :} or the
        end of text.  Nested closures become separate assignments.
        """
        parts: list[UnnamedArgumentAssignment] = []
        chars: list[str] = []
        seg_start = self.index
        strict = self.flags.get(ParserFlag.STRICT_ESCAPING, False)
        replace_getvar = self.flags.get(ParserFlag.REPLACE_GETVAR, False)

        def flush() -> None:
            if chars:
                parts.append(UnnamedArgumentAssignment("".join(chars), seg_start, self.index))
                chars.clear()

        while not self._done:
            if self._at("|") or self._at_closure_end():
                break

            literal = self._read_escape()
            if literal is not None:
                chars.append(literal)
                continue

            self._check_stray_close()
            if self._at(OPEN_CLOSURE):
                flush()
                closure = self._parse_nested_closure()
                parts.append(UnnamedArgumentAssignment(closure, closure.start, closure.end))
                seg_start = self.index
                continue

            if replace_getvar:
                m = _GETVAR_MACRO.match(self.text, self.index)
                if m:
                    flush()
                    parts.append(UnnamedArgumentAssignment(self._getvar_closure(m), m.start(), m.end()))
                    self.index = m.end()
                    seg_start = self.index
                    continue

            span = self._read_macro()
            if span is not None:
                chars.append(span)
                continue

            if strict and self._at('"'):
                quoted = self._read_quoted()
                chars.append(f'"{quoted}"' if split else quoted)
                continue

            chars.append(self.text[self.index])
            self.index += 1

        flush()
        return self._tidy(parts, split)

    def _getvar_closure(self, m: re.Match) -> Closure:
        closure = Closure(start=m.start(), end=m.end(), text=m.group(0))
        executor = Executor(start=m.start(), end=m.end())
        executor.name = m.group(1)
        executor.command = self._registry.get(executor.name)
        executor.parser_flags = dict(self.flags)
        executor.unnamed_argument_list.append(UnnamedArgumentAssignment(m.group(2), m.start(2), m.end(2)))
        closure.add_executor(executor)
        return closure

    @staticmethod
    def _tidy(parts: list[UnnamedArgumentAssignment], split: bool) -> list[UnnamedArgumentAssignment]:
        """Trim the outer whitespace of the unnamed text; split into tokens if asked."""
        if parts and not parts[0].is_closure:
            parts[0] = UnnamedArgumentAssignment(parts[0].value.lstrip(), parts[0].start, parts[0].end)
        if parts and not parts[-1].is_closure:
            parts[-1] = UnnamedArgumentAssignment(parts[-1].value.rstrip(), parts[-1].start, parts[-1].end)

        result: list[UnnamedArgumentAssignment] = []
        for part in parts:
            if part.is_closure:
                result.append(part)
            elif split:
                for m in _SPLIT_TOKEN.finditer(part.value):
                    token = m.group(2) if m.group(1) is None else re.sub(r"\\(.)", r"\1", m.group(1))
                    result.append(UnnamedArgumentAssignment(token, part.start + m.start(), part.start + m.end()))
            elif part.value:
                result.append(part)
        return result
