"""
MacroEngine
===========
The core expansion loop.  Scans text for {{macro}} and {{macro::args}}
placeholders and replaces them with their handler output.

expand() is a single pass: placeholders nested inside another
placeholder's arguments are resolved first, but handler output is not
rescanned.  expand_all() re-runs the pass until the text is stable, a
cycle is detected, or the pass limit is reached.

Scoped blocks ``{{name::a}}content{{/name}}`` pass the content as the last
argument.  The content is expanded and then trimmed and dedented, unless
the opener carries the ``#`` flag.  Only known macros with room for one
more argument open a block; a closing tag without an opener stays as text.

Unknown macros are left in place, verbatim.

``\\{\\{`` and ``\\}\\}`` are not scanned and come out as ``{{`` and
``}}``.  An escaped placeholder therefore counts as a placeholder: a
second expand() over the output will expand it.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Callable, Iterator, Mapping, Optional

from slashscript.core.config import get_settings
from slashscript.core.errors import MacroDefinitionError
from slashscript.schemas import COMMENT_MACRO, MacroDescriptor

from .context import MacroEnv, MacroEnvBuilder
from .macro_variables import evaluate_shorthand
from .params import (
    ARG_SEPARATOR,
    CLOSE,
    OPEN,
    Placeholder,
    VariableExpression,
    accepts_scoped_content,
    parse_placeholder,
    scan_placeholders,
    trim_scoped_content,
)
from .registry import MacroRegistry, build_descriptor, macro_registry

logger = logging.getLogger(__name__)

TextProcessor = Callable[[str, MacroEnv], str]

# ---------------------------------------------------------------------------
# Legacy markers rewritten into macros before scanning.
# ---------------------------------------------------------------------------
_LEGACY_MARKERS = [
    (re.compile(r"<USER>", re.IGNORECASE), "{{user}}"),
    (re.compile(r"<BOT>", re.IGNORECASE), "{{char}}"),
    (re.compile(r"<CHAR>", re.IGNORECASE), "{{char}}"),
    (re.compile(r"<GROUP>", re.IGNORECASE), "{{group}}"),
]
_ESCAPED_BRACES = re.compile(r"\\([{}])\\\1")
_LEGACY_TRIM = re.compile(r"(?:\r?\n)*\{\{trim\}\}(?:\r?\n)*", re.IGNORECASE)


def _legacy_markers(text: str, env: MacroEnv) -> str:
    for pattern, replacement in _LEGACY_MARKERS:
        text = pattern.sub(replacement, text)
    return text


def _unescape_braces(text: str, env: MacroEnv) -> str:
    return _ESCAPED_BRACES.sub(r"\1\1", text)


def _legacy_trim(text: str, env: MacroEnv) -> str:
    return _LEGACY_TRIM.sub("", text)


class MacroEngine:
    """
    Expand all macros embedded in a piece of text.

    Usage::

        engine = MacroEngine()
        result = await engine.expand(raw_text, env)
    """

    def __init__(
        self,
        registry: Optional[MacroRegistry] = None,
        env_builder: Optional[MacroEnvBuilder] = None,
    ) -> None:
        self._registry = registry if registry is not None else macro_registry
        self._env_builder = env_builder if env_builder is not None else MacroEnvBuilder()
        self._pre: list[tuple[int, str, TextProcessor]] = []
        self._post: list[tuple[int, str, TextProcessor]] = []

        self.add_pre_processor(_legacy_markers, priority=20, source="core:legacy-markers")
        self.add_post_processor(_unescape_braces, priority=10, source="core:unescape-braces")
        self.add_post_processor(_legacy_trim, priority=20, source="core:legacy-trim")

    @property
    def registry(self) -> MacroRegistry:
        return self._registry

    @property
    def env_builder(self) -> MacroEnvBuilder:
        return self._env_builder

    # ------------------------------------------------------------- processors

    def add_pre_processor(self, fn: TextProcessor, priority: int = 100, source: str = "unknown") -> None:
        self._pre.append((priority, source, fn))
        self._pre.sort(key=lambda p: p[0])

    def add_post_processor(self, fn: TextProcessor, priority: int = 100, source: str = "unknown") -> None:
        self._post.append((priority, source, fn))
        self._post.sort(key=lambda p: p[0])

    def remove_processor(self, fn: TextProcessor) -> bool:
        """Unregister *fn* from either stage. Returns False if it was never added."""
        return self._remove(self._pre, fn) or self._remove(self._post, fn)

    @staticmethod
    def _remove(processors: list, fn: TextProcessor) -> bool:
        for i, (_prio, _src, f) in enumerate(processors):
            if f is fn:
                del processors[i]
                return True
        return False

    def _run_processors(self, processors: list, text: str, env: MacroEnv) -> str:
        for _prio, source, fn in processors:
            try:
                text = fn(text, env)
            except Exception:
                logger.exception("Macro text processor %s failed", source)
        return text

    # ----------------------------------------------------------------- public

    async def expand(self, text: str, env: Optional[MacroEnv] = None) -> str:
        """Run a single expansion pass over *text* and return the result."""
        if not text:
            return text or ""
        env = env if env is not None else self._env_builder.build(content=text)

        text = self._run_processors(self._pre, text, env)
        text = await self._expand_once(text, env)
        return self._run_processors(self._post, text, env)

    async def expand_all(
        self,
        text: str,
        env: Optional[MacroEnv] = None,
        max_passes: Optional[int] = None,
    ) -> str:
        """
        Expand repeatedly so that macros whose output contains other macros
        are also expanded.

        Stops when the text is stable, when a pass reproduces an earlier
        text (a cycle), or after *max_passes* passes.
        """
        if not text:
            return text or ""
        env = env if env is not None else self._env_builder.build(content=text)
        limit = max_passes if max_passes is not None else get_settings().macro_max_passes

        text = self._run_processors(self._pre, text, env)
        seen = {text}
        for _pass in range(limit):
            expanded = await self._expand_once(text, env)
            if expanded == text:
                break   # stable
            if expanded in seen:
                logger.warning("Macro expansion cycle detected after %d passes", _pass + 1)
                text = expanded
                break
            seen.add(expanded)
            text = expanded
        else:
            logger.warning("Macro expansion reached pass limit (%d)", limit)

        return self._run_processors(self._post, text, env)

    # ----------------------------------------------------------------- private

    async def _expand_once(self, text: str, env: MacroEnv, base: int = 0) -> str:
        """
        Run a single scan-and-replace pass over *text*.  *base* is the
        position of *text* inside the top-level document.
        """
        spans = list(scan_placeholders(text))
        calls = [parse_placeholder(text[s + len(OPEN):e - len(CLOSE)]) for s, e in spans]
        kept_raw: set[int] = set()
        result_parts: list[str] = []
        last_end = 0

        i = 0
        while i < len(spans):
            start, end = spans[i]
            call = calls[i]
            # Append literal text before this placeholder
            result_parts.append(text[last_end:start])
            last_end = end

            if isinstance(call, VariableExpression):
                result_parts.append(await self._evaluate_variable(text[start:end], call, env, base + start))
            elif call is None or call.is_closing or i in kept_raw:
                result_parts.append(text[start:end])
            else:
                close = self._match_closing(calls, i, env, kept_raw)
                if close == -1:
                    result_parts.append(await self._resolve(text[start:end], call, env, base + start))
                elif not self._accepts_scoped(call, env):
                    kept_raw.add(close)
                    result_parts.append(text[start:end])
                else:
                    close_start, close_end = spans[close]
                    result_parts.append(await self._resolve(
                        text[start:close_end], call, env, base + start,
                        content=text[end:close_start], content_offset=base + end,
                    ))
                    last_end = close_end
                    i = close
            i += 1

        # Append any trailing literal text
        result_parts.append(text[last_end:])
        return "".join(result_parts)

    def _match_closing(self, calls: list, index: int, env: MacroEnv, kept_raw: set[int]) -> int:
        """Index of the ``{{/name}}`` closing ``calls[index]``, or -1."""
        name = calls[index].name.lower()
        depth = 1
        for j in range(index + 1, len(calls)):
            call = calls[j]
            if not isinstance(call, Placeholder) or call.name.lower() != name or j in kept_raw:
                continue
            if call.is_closing:
                depth -= 1
                if depth == 0:
                    return j
            elif self._accepts_scoped(call, env):
                depth += 1
        return -1

    def _accepts_scoped(self, call: Placeholder, env: MacroEnv) -> bool:
        desc = self._descriptor(call.name, env)
        return desc is not None and accepts_scoped_content(desc, len(call.args))

    async def _resolve(
        self,
        raw: str,
        call: Placeholder,
        env: MacroEnv,
        offset: int,
        content: Optional[str] = None,
        content_offset: int = 0,
    ) -> str:
        desc = self._descriptor(call.name, env)
        delayed = desc is not None and desc.delay_arg_resolution

        if call.name == COMMENT_MACRO or delayed:
            args = list(call.args)
        else:
            args = [await self._expand_once(a, env, pos)
                    for a, pos in zip(call.args, _arg_offsets(raw, call, offset))]

        if content is not None:
            if delayed:
                args.append(content)
            else:
                value = await self._expand_once(content, env, content_offset)
                args.append(value if call.preserve_whitespace else trim_scoped_content(value))
            fallback = raw
        else:
            fallback = raw if args == call.args else _rebuild(raw, call, args)

        async def resolve(text: str) -> str:
            return await self._expand_once(text, env, offset)

        return await self._registry.call(
            call.name, args, env, fallback, descriptor=desc,
            flags=call.flags, scoped=content is not None, offset=offset, resolve=resolve,
        )

    async def _evaluate_variable(self, raw: str, expr: VariableExpression, env: MacroEnv, offset: int) -> str:
        async def resolve(text: str) -> str:
            return await self._expand_once(text, env, offset)

        try:
            return await evaluate_shorthand(expr, env, resolve)
        except Exception:
            logger.exception("Variable shorthand %s failed", raw)
            return raw

    def _descriptor(self, name: str, env: MacroEnv) -> Optional[MacroDescriptor]:
        dynamic = self._dynamic_descriptor(name, env)
        return dynamic if dynamic is not None else self._registry.get(name)

    def _dynamic_descriptor(self, name: str, env: MacroEnv) -> Optional[MacroDescriptor]:
        """Build a one-off descriptor from ``env.dynamic_macros``, if any."""
        if not env.dynamic_macros:
            return None
        impl: Any = None
        for key, value in env.dynamic_macros.items():
            if key.lower() == name.lower():
                impl = value
                break
        else:
            return None

        try:
            if isinstance(impl, Mapping) and callable(impl.get("handler")):
                return build_descriptor(name, impl)
            if callable(impl):
                return build_descriptor(name, {"handler": impl, "category": "dynamic", "list_spec": True,
                                               "strict_args": False})
            if isinstance(impl, (str, int, float, bool)) or impl is None:
                value = "" if impl is None else impl
                return build_descriptor(name, {"handler": lambda _env, _args: value, "category": "dynamic",
                                               "list_spec": True, "strict_args": False})
        except MacroDefinitionError as exc:
            logger.warning("Dynamic macro %r has invalid options: %s", name, exc)
            return None
        logger.warning("Dynamic macro %r is not defined correctly", name)
        return None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _arg_offsets(raw: str, call: Placeholder, offset: int) -> Iterator[int]:
    """Document position of each argument of *call*, whose text starts at *offset*."""
    cursor = raw.find(call.name) + len(call.name)
    for arg in call.args:
        pos = raw.find(arg, cursor)
        yield offset + pos
        cursor = pos + len(arg)


def _rebuild(raw: str, call: Placeholder, args: list[str]) -> str:
    inner = raw[len(OPEN):-len(CLOSE)].strip()
    head = inner[:inner.find(call.name) + len(call.name)]
    if inner[len(head):].startswith(ARG_SEPARATOR):
        return f"{OPEN}{head}{ARG_SEPARATOR}{ARG_SEPARATOR.join(args)}{CLOSE}"
    return f"{OPEN}{head} {' '.join(args)}{CLOSE}"


# Engine bound to the shared registry
macro_engine = MacroEngine()
