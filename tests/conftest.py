#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Test fixtures
=============
Every test gets its own registries and variable store, so nothing leaks
between tests through the shared singletons.

The ``echo`` stub command returns its explicit unnamed arguments joined by
a space.  With no explicit arguments it returns the incoming pipe (which
is injected as its unnamed value), so ``/echo a | /echo b`` gives "b".
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

import os

import pytest

os.environ.setdefault("SLASHSCRIPT_ENVIRONMENT", "testing")

from slashscript.core.config import Settings
from slashscript.core.coercion import normalize_value
from slashscript.services.commands import CommandRegistry, ScriptRunner
from slashscript.services.commands import register_all_builtins as register_commands
from slashscript.services.macros import MacroEngine, MacroEnvBuilder, MacroRegistry
from slashscript.services.macros import register_all_builtins as register_macros
from slashscript.services.variables import VariableStore


# ── Echo stub ─────────────────────────────────────────────────────────────────

def add_echo(registry: CommandRegistry, calls: list | None = None) -> None:
    @registry.register("echo", help_string="Test stub: returns its unnamed arguments.")
    def echo(args, ctx):
        text = " ".join(normalize_value(v) for v in args.unnamed)
        if calls is not None:
            calls.append(text)
        return text


# ── Isolated services ─────────────────────────────────────────────────────────

@pytest.fixture
def settings() -> Settings:
    return Settings(environment="testing", abort_on_error=True,
                    strict_escaping=False, replace_getvar=False)


@pytest.fixture
def variables() -> VariableStore:
    return VariableStore()


@pytest.fixture
def macros() -> MacroRegistry:
    registry = MacroRegistry()
    register_macros(registry)
    return registry


@pytest.fixture
def engine(macros: MacroRegistry, variables: VariableStore) -> MacroEngine:
    return MacroEngine(registry=macros, env_builder=MacroEnvBuilder(variables=variables))


@pytest.fixture
def echo_calls() -> list[str]:
    return []


@pytest.fixture
def commands(echo_calls: list[str]) -> CommandRegistry:
    registry = CommandRegistry()
    register_commands(registry)
    add_echo(registry, echo_calls)
    return registry


@pytest.fixture
def runner(commands, engine, variables, settings) -> ScriptRunner:
    return ScriptRunner(registry=commands, macro_engine=engine, variables=variables, settings=settings)


# -----------------------------------------------------------------------------
