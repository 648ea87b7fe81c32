"""
ScriptRunner: the entry point for running scripts.

    runner = ScriptRunner()
    result = await runner.run("/setvar key=x 1 | /getvar x")

``run`` raises on failure; ``run_with_result`` reports failures in a
ClosureResult instead.  Every node of one top-level run shares one
provenance id (``options.source`` or a fresh uuid).
"""

from __future__ import annotations

import logging
import os
import uuid
from typing import Any, Optional

import aiofiles

from slashscript.core.config import Settings, get_settings
from slashscript.core.errors import SlashScriptError
from slashscript.schemas import ClosureResult, ParserFlag, RunOptions
from slashscript.services.macros.context import MacroEnv, MacroEnvBuilder
from slashscript.services.macros.engine import MacroEngine
from slashscript.services.variables import VariableStore, variable_store

from .closure import Closure
from .interpreter import Interpreter
from .parser import ScriptParser
from .registry import CommandRegistry, command_registry
from .scope import Scope

logger = logging.getLogger(__name__)


class ScriptRunner:

    def __init__(
        self,
        registry: Optional[CommandRegistry] = None,
        macro_engine: Optional[MacroEngine] = None,
        env_builder: Optional[MacroEnvBuilder] = None,
        variables: Optional[VariableStore] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings if settings is not None else get_settings()
        self._registry = registry if registry is not None else command_registry
        self._variables = variables if variables is not None else variable_store
        if env_builder is None:
            env_builder = MacroEnvBuilder(variables=self._variables)
        self._engine = macro_engine if macro_engine is not None else MacroEngine(env_builder=env_builder)
        self._parser = ScriptParser(self._registry)
        self._interpreter = Interpreter(self._registry, self._engine, self._variables)

    @property
    def registry(self) -> CommandRegistry:
        return self._registry

    @property
    def macro_engine(self) -> MacroEngine:
        return self._engine

    @property
    def variables(self) -> VariableStore:
        return self._variables

    # ----------------------------------------------------------------- public

    def parse(self, text: str, flags: Optional[dict[ParserFlag, bool]] = None) -> Closure:
        merged = {
            ParserFlag.STRICT_ESCAPING: self._settings.strict_escaping,
            ParserFlag.REPLACE_GETVAR: self._settings.replace_getvar,
        }
        merged.update(flags or {})
        return self._parser.parse(text, merged)

    async def run(
        self,
        script: str | Closure,
        initial_scope: Optional[Scope] = None,
        *,
        options: Optional[RunOptions] = None,
    ) -> str:
        """Run *script* and return the final pipe value; raises on failure."""
        options = self._options(options)
        closure = self._prepare(script, options)
        scope = self._scope(initial_scope)
        logger.debug("[%s] run: %d command(s)", closure.source, closure.command_count)
        return await self._interpreter.run_closure(closure, scope, options)

    async def run_with_result(
        self,
        script: str | Closure,
        initial_scope: Optional[Scope] = None,
        *,
        options: Optional[RunOptions] = None,
    ) -> ClosureResult:
        """Run *script*; engine errors are reported in the result, not raised."""
        options = self._options(options)
        scope = self._scope(initial_scope)
        errors: list[str] = []
        source = options.source
        try:
            closure = self._prepare(script, options)
            source = closure.source
            pipe = await self._interpreter.run_closure(closure, scope, options, errors)
        except SlashScriptError as exc:
            logger.warning("[%s] run failed: %s", source, exc)
            errors.append(str(exc))
            return ClosureResult(
                pipe=scope.pipe or "",
                is_error=True,
                error_message=str(exc),
                errors=errors,
                source=source,
            )
        return ClosureResult(
            pipe=pipe,
            is_error=bool(errors),
            error_message=errors[0] if errors else None,
            errors=errors,
            source=source,
        )

    async def run_file(
        self,
        path: str | os.PathLike,
        initial_scope: Optional[Scope] = None,
        *,
        options: Optional[RunOptions] = None,
        encoding: str = "utf-8",
    ) -> str:
        async with aiofiles.open(path, mode="r", encoding=encoding) as fh:
            text = await fh.read()
        logger.debug("Loaded script %s (%d characters)", path, len(text))
        return await self.run(text, initial_scope, options=options)

    async def expand(self, text: str, env: Optional[MacroEnv] = None, **env_fields: Any) -> str:
        """Single macro pass over *text*."""
        if env is None:
            env = self._engine.env_builder.build(content=text, variables=self._variables, **env_fields)
        return await self._engine.expand(text, env)

    # ----------------------------------------------------------------- private

    def _options(self, options: Optional[RunOptions]) -> RunOptions:
        if options is None:
            return RunOptions(abort_on_error=self._settings.abort_on_error)
        return options

    def _prepare(self, script: str | Closure, options: RunOptions) -> Closure:
        closure = script if isinstance(script, Closure) else self.parse(script, options.parser_flags)
        closure.propagate_source(options.source or str(uuid.uuid4()))
        if options.on_progress is not None:
            closure.propagate_progress(options.on_progress)
        return closure

    @staticmethod
    def _scope(initial_scope: Optional[Scope]) -> Scope:
        if initial_scope is None:
            return Scope()
        return initial_scope.child(initial_scope.pipe)
