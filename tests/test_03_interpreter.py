#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Interpreter Test Suite
======================
Coverage:
  - Closure / Executor tree operations: command_count, progress and
    source propagation
  - Scope: let / set / get through the parent chain
  - Argument binding: pipe injection, defaults, enums, types, closures
  - Executor evaluation order, failure policy, run states
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

import random

import pytest

from slashscript.core.errors import (
    ArgumentValidationError,
    CommandExecutionError,
    ScopeVariableExistsError,
    ScopeVariableNotFoundError,
    UnknownCommandError,
)
from slashscript.schemas import CommandDescriptor, RunOptions
from slashscript.services.commands.arguments import (
    NamedArgumentAssignment,
    UnnamedArgumentAssignment,
    bind_arguments,
)
from slashscript.services.commands.closure import Closure
from slashscript.services.commands.executor import Executor
from slashscript.services.commands.interpreter import ClosureRun, Interpreter, RunState
from slashscript.services.commands.parser import ScriptParser
from slashscript.services.commands.scope import Scope


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Helpers
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

def random_closure(rng: random.Random, depth: int = 0) -> Closure:
    closure = Closure()
    for _ in range(rng.randint(1, 3)):
        executor = Executor()
        executor.name = "echo"
        if depth < 3:
            for i in range(rng.randint(0, 2)):
                executor.named_argument_list.append(
                    NamedArgumentAssignment(f"k{i}", random_closure(rng, depth + 1)))
            for _ in range(rng.randint(0, 2)):
                value = random_closure(rng, depth + 1) if rng.random() < 0.6 else "text"
                executor.unnamed_argument_list.append(UnnamedArgumentAssignment(value))
        closure.add_executor(executor)
    return closure


def walk_closures(closure: Closure):
    yield closure
    for nested in closure.nested_closures():
        yield from walk_closures(nested)


def walk_executors(closure: Closure):
    for c in walk_closures(closure):
        yield from c.executor_list


def descriptor(**options) -> CommandDescriptor:
    options.setdefault("name", "cmd")
    options.setdefault("callback", lambda args, ctx: "")
    return CommandDescriptor.model_validate(options)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# 1. Tree operations
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class TestCommandCount:
    def test_randomized_trees(self):
        rng = random.Random(1234)
        for _ in range(50):
            closure = random_closure(rng)
            for executor in walk_executors(closure):
                assert executor.command_count == 1 + sum(c.command_count for c in executor.closures())
            for c in walk_closures(closure):
                assert c.command_count == sum(e.command_count for e in c.executor_list)
            assert closure.command_count == sum(1 for _ in walk_executors(closure))

    def test_single_executor_closure(self):
        rng = random.Random(99)
        for _ in range(20):
            inner = random_closure(rng, depth=1)
            executor = Executor()
            executor.unnamed_argument_list.append(UnnamedArgumentAssignment(inner))
            closure = Closure()
            closure.add_executor(executor)
            assert closure.command_count == 1 + sum(c.command_count for c in closure.nested_closures())

    def test_recomputed_after_change(self):
        closure = Closure()
        executor = Executor()
        closure.add_executor(executor)
        assert closure.command_count == 1
        nested = Closure()
        nested.add_executor(Executor())
        executor.unnamed_argument_list.append(UnnamedArgumentAssignment(nested))
        assert closure.command_count == 2


class TestPropagation:
    def test_progress_reaches_every_nested_closure(self):
        closure = random_closure(random.Random(7))

        def callback(done, total):
            pass

        closure.propagate_progress(callback)
        assert all(c.on_progress is callback for c in walk_closures(closure))

    def test_source_reaches_everything(self):
        closure = random_closure(random.Random(8))
        closure.propagate_source("run-42")
        assert all(c.source == "run-42" for c in walk_closures(closure))
        assert all(e.source == "run-42" for e in walk_executors(closure))

    def test_source_order_named_before_unnamed(self):
        order: list[str] = []

        class Recording(Closure):
            def __init__(self, label):
                super().__init__()
                self.label = label

            def propagate_source(self, source):
                order.append(self.label)
                super().propagate_source(source)

        executor = Executor()
        executor.unnamed_argument_list.append(UnnamedArgumentAssignment(Recording("u1")))
        executor.named_argument_list.append(NamedArgumentAssignment("a", Recording("n1")))
        executor.unnamed_argument_list.append(UnnamedArgumentAssignment(Recording("u2")))
        executor.named_argument_list.append(NamedArgumentAssignment("b", Recording("n2")))

        executor.propagate_source("s")
        assert order == ["n1", "n2", "u1", "u2"]
        assert executor.source == "s"


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# 2. Scope
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class TestScope:
    def setup_method(self):
        self.root = Scope(pipe="p")
        self.root.let_variable("x", "1")
        self.child = self.root.child()

    def test_lookup_walks_parents(self):
        assert self.child.get_variable("x") == "1"
        assert self.child.has_variable("x")
        assert not self.child.has_variable("y")

    def test_set_updates_owner(self):
        self.child.set_variable("x", "2")
        assert self.root.get_variable("x") == "2"
        assert "x" not in self.child.variables

    def test_let_shadows(self):
        self.child.let_variable("x", "inner")
        assert self.child.get_variable("x") == "inner"
        assert self.root.get_variable("x") == "1"

    def test_errors(self):
        with pytest.raises(ScopeVariableExistsError):
            self.root.let_variable("x", "again")
        with pytest.raises(ScopeVariableNotFoundError):
            self.child.set_variable("nope", "1")
        with pytest.raises(ScopeVariableNotFoundError):
            self.child.get_variable("nope")

    def test_child_pipe(self):
        assert self.root.child("seed").pipe == "seed"
        assert self.child.pipe is None


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# 3. Argument binding
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class TestBindArguments:
    def test_pipe_injected_without_unnamed(self):
        bound = bind_arguments(descriptor(), [], [], pipe="piped")
        assert bound.unnamed == ["piped"]

    def test_pipe_not_injected_with_unnamed(self):
        bound = bind_arguments(descriptor(), [], ["mine"], pipe="piped")
        assert bound.unnamed == ["mine"]

    def test_pipe_break(self):
        bound = bind_arguments(descriptor(), [], [], pipe="piped", inject_pipe=False)
        assert bound.unnamed == []

    def test_values_joined_unless_split(self):
        assert bind_arguments(descriptor(), [], ["a ", "b"]).unnamed == ["a b"]
        assert bind_arguments(descriptor(split_unnamed=True), [], ["a", "b"]).unnamed == ["a", "b"]

    def test_named_defaults_and_required(self):
        cmd = descriptor(named_argument_list=[
            {"name": "n", "type_list": ["number"], "default_value": 5},
            {"name": "req", "is_required": True},
        ])
        bound = bind_arguments(cmd, [("req", "x")], [])
        assert bound.named == {"n": 5, "req": "x"}
        assert bind_arguments(cmd, [("req", "x"), ("n", "2.5")], []).get("n") == 2.5
        with pytest.raises(ArgumentValidationError):
            bind_arguments(cmd, [], [])

    def test_type_and_enum(self):
        cmd = descriptor(named_argument_list=[
            {"name": "n", "type_list": ["integer"]},
            {"name": "mode", "enum_list": ["a", "b"]},
        ])
        with pytest.raises(ArgumentValidationError):
            bind_arguments(cmd, [("n", "x")], [])
        with pytest.raises(ArgumentValidationError):
            bind_arguments(cmd, [("mode", "c")], [])
        assert bind_arguments(cmd, [("n", "3"), ("mode", "b")], []).named == {"n": 3, "mode": "b"}

    def test_accepts_multiple(self):
        cmd = descriptor(named_argument_list=[
            {"name": "tag", "accepts_multiple": True}, {"name": "one"},
        ])
        assert bind_arguments(cmd, [("tag", "a"), ("tag", "b")], []).get("tag") == ["a", "b"]
        with pytest.raises(ArgumentValidationError):
            bind_arguments(cmd, [("one", "a"), ("one", "b")], [])

    def test_undeclared_named(self):
        with pytest.raises(ArgumentValidationError):
            bind_arguments(descriptor(), [("zzz", "1")], [])

    def test_unnamed_specs(self):
        cmd = descriptor(unnamed_argument_list=[
            {"name": "count", "type_list": ["integer"], "is_required": True},
            {"name": "label", "default_value": "none"},
        ])
        assert bind_arguments(cmd, [], ["3"]).unnamed == [3, "none"]
        with pytest.raises(ArgumentValidationError):
            bind_arguments(cmd, [], [])
        with pytest.raises(ArgumentValidationError):
            bind_arguments(cmd, [], ["x"])

    def test_closure_needs_closure_type(self):
        closure = Closure()
        cmd = descriptor(unnamed_argument_list=[{"name": "body", "type_list": ["closure"]}])
        assert bind_arguments(cmd, [], [closure]).unnamed == [closure]
        with pytest.raises(ArgumentValidationError):
            bind_arguments(cmd, [], ["text"])
        with pytest.raises(ArgumentValidationError):
            bind_arguments(descriptor(unnamed_argument_list=[{"name": "s"}]), [], [closure])


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# 4. Evaluation
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class TestInterpreter:
    @pytest.fixture(autouse=True)
    def _setup(self, commands, engine, variables, echo_calls):
        @commands.register("pair", named_argument_list=[{"name": "a"}])
        def pair(args, ctx):
            return f"{args.get('a')}{args.value}"

        @commands.register("fail")
        def fail(args, ctx):
            raise RuntimeError("bad")

        @commands.register("slow")
        async def slow(args, ctx):
            return f"async:{args.value}"

        self.parser = ScriptParser(commands)
        self.interpreter = Interpreter(commands, engine, variables)
        self.calls = echo_calls

    async def run(self, text: str, abort: bool = True, errors: list | None = None) -> str:
        options = RunOptions(abort_on_error=abort)
        return await self.interpreter.run_closure(self.parser.parse(text), Scope(), options, errors)

    async def test_strict_left_to_right(self):
        assert await self.run("/echo a | /echo b | /echo c") == "c"
        assert self.calls == ["a", "b", "c"]

    async def test_echo_ignores_pipe_with_arguments(self):
        assert await self.run("/echo a | /echo b") == "b"

    async def test_pipe_injection(self):
        assert await self.run("/echo a | /echo") == "a"
        assert await self.run("/echo a || /echo") == ""

    async def test_closures_run_first_in_child_scope(self):
        result = await self.run("/echo p | /echo {: /echo n :} {: /echo :}")
        assert result == "n p"
        assert self.calls == ["p", "n", "p", "n p"]

    async def test_named_closures_before_unnamed(self):
        assert await self.run("/pair a={: /echo A :} {: /echo B :}") == "AB"
        assert self.calls == ["A", "B"]

    async def test_async_callback(self):
        assert await self.run("/slow x") == "async:x"

    async def test_macros_expanded_in_values(self, variables):
        variables.local.set("who", "Ann")
        assert await self.run("/pair a={{getvar::who}} {{reverse::abc}}") == "Anncba"

    async def test_unknown_command(self):
        with pytest.raises(UnknownCommandError) as exc:
            await self.run("/echo a | /nope")
        assert exc.value.name == "nope"
        assert exc.value.start == 10

    async def test_unknown_command_after_side_effects(self, variables):
        with pytest.raises(UnknownCommandError):
            await self.run("/setvar key=z 1 | /nope")
        assert variables.local.get("z") == "1"

    async def test_callback_error_wrapped(self):
        with pytest.raises(CommandExecutionError) as exc:
            await self.run("/fail")
        assert isinstance(exc.value.__cause__, RuntimeError)
        assert exc.value.name == "fail"

    async def test_continue_on_error(self):
        errors: list[str] = []
        assert await self.run("/echo a | /fail | /echo b", abort=False, errors=errors) == "b"
        assert errors == ["/fail failed: bad"]
        assert self.calls == ["a", "b"]

    async def test_failed_command_clears_pipe(self):
        assert await self.run("/echo a | /fail | /echo", abort=False) == ""

    async def test_run_states(self, commands, engine, variables):
        closure = self.parser.parse("/echo a")
        run = ClosureRun(self.interpreter, closure, Scope(), RunOptions(abort_on_error=True), [])
        assert run.state is RunState.IDLE
        await run.execute()
        assert run.state is RunState.COMPLETED

        run = ClosureRun(self.interpreter, self.parser.parse("/fail"), Scope(), RunOptions(abort_on_error=True), [])
        with pytest.raises(CommandExecutionError):
            await run.execute()
        assert run.state is RunState.FAILED
