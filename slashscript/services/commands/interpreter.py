"""
Interpreter
===========
Evaluates a Closure tree against a Scope.

For every Executor, in source order:

  1. closure-valued arguments are run in a child Scope seeded with the
     current pipe (named first, then unnamed, left to right); arguments
     declared with type "closure" get the Closure itself instead
  2. literal values are macro-expanded
  3. the command is looked up (UnknownCommandError)
  4. values are bound to the command's specs (ArgumentValidationError)
  5. the callback runs; exceptions are wrapped in CommandExecutionError
  6. the normalised result becomes the pipe for the next sibling

Whether a failing Executor aborts the whole run or only itself is
``RunOptions.abort_on_error``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from slashscript.core.coercion import normalize_value
from slashscript.core.errors import CommandExecutionError, SlashScriptError, UnknownCommandError
from slashscript.schemas import ArgumentSpec, CommandDescriptor, RunOptions
from slashscript.services.macros.engine import MacroEngine, macro_engine
from slashscript.services.macros.registry import invoke
from slashscript.services.variables import VariableStore, variable_store

from .arguments import ArgumentAssignment, bind_arguments
from .closure import Closure
from .executor import Executor
from .registry import CommandRegistry, command_registry
from .scope import Scope

logger = logging.getLogger(__name__)


class RunState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Context handed to command callbacks
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

@dataclass
class CommandContext:
    scope: Scope
    source: str
    executor: Executor
    variables: VariableStore
    options: RunOptions
    interpreter: "Interpreter"
    errors: list[str] = field(default_factory=list)

    @property
    def pipe(self) -> Optional[str]:
        return self.scope.pipe

    @property
    def cancel_token(self) -> Any:
        return self.options.cancel_token

    async def run_closure(self, closure: Closure, pipe: Optional[str] = None) -> str:
        """Run *closure* in a child of the current scope and return its pipe."""
        child = self.scope.child(self.scope.pipe if pipe is None else pipe)
        return await self.interpreter.run_closure(closure, child, self.options, self.errors)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# One run of one Closure
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class ClosureRun:
    """Tracks ``Idle → Running → Completed | Failed`` for a single run."""

    def __init__(
        self,
        interpreter: "Interpreter",
        closure: Closure,
        scope: Scope,
        options: RunOptions,
        errors: list[str],
    ) -> None:
        self.interpreter = interpreter
        self.closure = closure
        self.scope = scope
        self.options = options
        self.errors = errors
        self.state = RunState.IDLE
        self.done = 0

    async def execute(self) -> str:
        self.state = RunState.RUNNING
        total = self.closure.command_count

        for executor in self.closure.executor_list:
            try:
                result = await self.interpreter.run_executor(executor, self.scope, self.options, self.errors)
            except SlashScriptError as exc:
                if self.options.abort_on_error:
                    self.state = RunState.FAILED
                    raise
                logger.warning("[%s] /%s failed, continuing: %s", executor.source, executor.name, exc)
                self.errors.append(str(exc))
                result = ""

            self.scope.pipe = result
            self.done += executor.command_count
            if self.closure.on_progress is not None:
                self.closure.on_progress(self.done, total)

        self.state = RunState.COMPLETED
        return self.scope.pipe or ""


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Interpreter
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class Interpreter:

    def __init__(
        self,
        registry: Optional[CommandRegistry] = None,
        engine: Optional[MacroEngine] = None,
        variables: Optional[VariableStore] = None,
    ) -> None:
        self._registry = registry if registry is not None else command_registry
        self._engine = engine if engine is not None else macro_engine
        self._variables = variables if variables is not None else variable_store

    async def run_closure(
        self,
        closure: Closure,
        scope: Scope,
        options: RunOptions,
        errors: Optional[list[str]] = None,
    ) -> str:
        run = ClosureRun(self, closure, scope, options, [] if errors is None else errors)
        return await run.execute()

    async def run_executor(
        self,
        executor: Executor,
        scope: Scope,
        options: RunOptions,
        errors: list[str],
    ) -> str:
        name = executor.name
        command = self._registry.get(name) or executor.command
        logger.debug("[%s] /%s start", executor.source, name)

        # 1. closures
        named: list[Any] = [
            await self._evaluate_closure(a, _named_spec(command, a.name), scope, options, errors)
            for a in executor.named_argument_list
        ]
        unnamed: list[Any] = [
            await self._evaluate_closure(a, _unnamed_spec(command, i), scope, options, errors)
            for i, a in enumerate(executor.unnamed_argument_list)
        ]

        # 2. macros
        named = [await self._expand(v, scope) for v in named]
        unnamed = [await self._expand(v, scope) for v in unnamed]

        # 3. lookup
        if command is None:
            raise UnknownCommandError(name, executor.start, executor.end)

        # 4. binding
        bound = bind_arguments(
            command,
            [(a.name, v) for a, v in zip(executor.named_argument_list, named)],
            unnamed,
            pipe=scope.pipe,
            inject_pipe=executor.inject_pipe,
            split=executor.split_unnamed or command.split_unnamed,
        )

        # 5. callback
        ctx = CommandContext(
            scope=scope,
            source=executor.source,
            executor=executor,
            variables=self._variables,
            options=options,
            interpreter=self,
            errors=errors,
        )
        try:
            result = await invoke(command.callback, bound, ctx)
        except Exception as exc:
            raise CommandExecutionError(name, exc, executor.start, executor.end) from exc

        logger.debug("[%s] /%s done", executor.source, name)
        return normalize_value(result)

    # ----------------------------------------------------------------- private

    async def _evaluate_closure(
        self,
        arg: ArgumentAssignment,
        spec: Optional[ArgumentSpec],
        scope: Scope,
        options: RunOptions,
        errors: list[str],
    ) -> Any:
        if not arg.is_closure:
            return arg.value
        if spec is not None and spec.accepts_closure:
            return arg.value
        return await self.run_closure(arg.value, scope.child(scope.pipe), options, errors)

    async def _expand(self, value: Any, scope: Scope) -> Any:
        if not isinstance(value, str) or not value:
            return value
        env = self._engine.env_builder.build(
            content=value,
            variables=self._variables,
            scope=scope,
            pipe=scope.pipe,
        )
        return await self._engine.expand(value, env)


def _named_spec(command: Optional[CommandDescriptor], key: str) -> Optional[ArgumentSpec]:
    return command.named_spec(key) if command is not None else None


def _unnamed_spec(command: Optional[CommandDescriptor], index: int) -> Optional[ArgumentSpec]:
    if command is None or not command.unnamed_argument_list:
        return None
    specs = command.unnamed_argument_list
    return specs[index] if index < len(specs) else specs[-1]
