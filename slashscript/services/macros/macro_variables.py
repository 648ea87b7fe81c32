"""
Variable macros
---------------
Local (per-conversation) and global variables live in the VariableStore;
the handlers write to the store, never to the env.

  {{setvar::name::value}}    → ""        {{setglobalvar::name::value}}
  {{addvar::name::value}}    → ""        {{addglobalvar::name::value}}
  {{incvar::name}}           → new value {{incglobalvar::name}}
  {{decvar::name}}           → new value {{decglobalvar::name}}
  {{getvar::name}}           → value     {{getglobalvar::name}}
  {{hasvar::name}}           → true/false {{hasglobalvar::name}}
  {{deletevar::name}}        → ""        {{deleteglobalvar::name}}

  {{var::name}}              → scoped variable of the running script ("" if unset)
  {{.name}} {{$name}}        → local / global shorthand with operators (see below)
"""

from __future__ import annotations

import logging
import operator
from typing import Any, Optional

from slashscript.core.coercion import is_false_boolean, normalize_value
from slashscript.core.errors import ScopeError
from slashscript.schemas import MacroCategory
from slashscript.services.variables import VariableNamespace, to_number, variable_store

from .context import MacroEnv
from .params import Resolver, VariableExpression
from .registry import MacroRegistry

logger = logging.getLogger(__name__)

_NAME = {"name": "name", "description": "The variable name."}
_VALUE = {"name": "value", "type": ["string", "number"], "description": "The value."}


def _namespace(env, is_global: bool) -> VariableNamespace:
    store = env.variables if env.variables is not None else variable_store
    return store.namespace(is_global)


def _register_family(registry: MacroRegistry, is_global: bool) -> None:
    infix = "global" if is_global else ""
    label = "global" if is_global else "local"

    def name(verb: str) -> str:
        return f"{verb}{infix}var"

    def setvar(env, args):
        _namespace(env, is_global).set(args[0], args[1])
        return ""

    def addvar(env, args):
        _namespace(env, is_global).add(args[0], args[1])
        return ""

    def incvar(env, args):
        return _namespace(env, is_global).inc(args[0])

    def decvar(env, args):
        return _namespace(env, is_global).dec(args[0])

    def getvar(env, args):
        return _namespace(env, is_global).get(args[0])

    def hasvar(env, args):
        return _namespace(env, is_global).has(args[0])

    def deletevar(env, args):
        _namespace(env, is_global).delete(args[0])
        return ""

    registry.register_macro(name("set"), {
        "category": MacroCategory.VARIABLE, "unnamed_args": [_NAME, _VALUE],
        "description": f"Sets a {label} variable.", "returns": "", "handler": setvar,
    })
    registry.register_macro(name("add"), {
        "category": MacroCategory.VARIABLE, "unnamed_args": [_NAME, _VALUE],
        "description": f"Adds to a {label} variable (numeric add or string append).",
        "returns": "", "handler": addvar,
    })
    registry.register_macro(name("inc"), {
        "category": MacroCategory.VARIABLE, "unnamed_args": [_NAME], "return_type": "number",
        "description": f"Increments a {label} variable and returns the new value.", "handler": incvar,
    })
    registry.register_macro(name("dec"), {
        "category": MacroCategory.VARIABLE, "unnamed_args": [_NAME], "return_type": "number",
        "description": f"Decrements a {label} variable and returns the new value.", "handler": decvar,
    })
    registry.register_macro(name("get"), {
        "category": MacroCategory.VARIABLE, "unnamed_args": [_NAME],
        "return_type": ["string", "number"],
        "description": f"Gets the value of a {label} variable.", "handler": getvar,
    })
    registry.register_macro(name("has"), {
        "aliases": [f"{infix}varexists"], "category": MacroCategory.VARIABLE,
        "unnamed_args": [_NAME], "return_type": "boolean",
        "description": f"Whether a {label} variable exists.", "handler": hasvar,
    })
    registry.register_macro(name("delete"), {
        "aliases": [f"flush{infix}var"], "category": MacroCategory.VARIABLE,
        "unnamed_args": [_NAME], "returns": "",
        "description": f"Deletes a {label} variable.", "handler": deletevar,
    })


def register(registry: MacroRegistry) -> None:
    _register_family(registry, is_global=False)
    _register_family(registry, is_global=True)

    @registry.register("var", category=MacroCategory.VARIABLE, unnamed_args=[_NAME],
                       description="A scoped variable of the running script.")
    def var_macro(env, args):
        if env.scope is None:
            return ""
        try:
            return env.scope.get_variable(args[0])
        except ScopeError:
            return ""


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Shorthand: {{.name}} (local) and {{$name}} (global)
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
#
#   {{.x}}         get                  {{.x = v}}     set, → ""
#   {{.x++}}       increment, → value   {{.x--}}       decrement, → value
#   {{.x += v}}    add, → ""            {{.x -= v}}    subtract, → ""
#   {{.x || v}}    x unless falsy       {{.x ?? v}}    x unless unset
#   {{.x ||= v}}   assign if falsy      {{.x ??= v}}   assign if unset
#   {{.x == v}}    "true"/"false"       {{.x != v}}
#   {{.x > v}} {{.x >= v}} {{.x < v}} {{.x <= v}}   numeric, "false" on non-numbers
#
# The value is expanded at most once, and only when the operator needs it.

_COMPARISONS = {
    ">": operator.gt,
    ">=": operator.ge,
    "<": operator.lt,
    "<=": operator.le,
}


def _is_falsy(value: Any) -> bool:
    text = normalize_value(value)
    return not text or is_false_boolean(text)


def _number(value: Any) -> Optional[int | float]:
    return 0 if value == "" else to_number(value)


async def evaluate_shorthand(expr: VariableExpression, env: MacroEnv, resolve: Resolver) -> str:
    ns = _namespace(env, expr.is_global)
    name, op = expr.name, expr.operator
    cache: list[str] = []

    async def value() -> str:
        if not cache:
            cache.append(await resolve(expr.value))
        return cache[0]

    if op is None:
        return normalize_value(ns.get(name))
    if op == "=":
        ns.set(name, await value())
        return ""
    if op == "++":
        return normalize_value(ns.inc(name))
    if op == "--":
        return normalize_value(ns.dec(name))
    if op == "+=":
        ns.add(name, await value())
        return ""
    if op == "-=":
        amount = to_number(await value())
        if amount is None:
            logger.warning('Variable shorthand "-=" needs a number, got %r', await value())
        else:
            ns.add(name, -amount)
        return ""
    if op == "||":
        current = ns.get(name)
        return await value() if _is_falsy(current) else normalize_value(current)
    if op == "??":
        return normalize_value(ns.get(name)) if ns.has(name) else await value()
    if op == "||=":
        current = ns.get(name)
        if _is_falsy(current):
            ns.set(name, await value())
            return await value()
        return normalize_value(current)
    if op == "??=":
        if not ns.has(name):
            ns.set(name, await value())
            return await value()
        return normalize_value(ns.get(name))
    if op == "==":
        return normalize_value(normalize_value(ns.get(name)) == await value())
    if op == "!=":
        return normalize_value(normalize_value(ns.get(name)) != await value())

    left, right = _number(ns.get(name)), _number(await value())
    if left is None or right is None:
        logger.warning('Variable shorthand "%s" needs numbers, got %r %s %r',
                       op, ns.get(name), op, await value())
        return "false"
    return normalize_value(_COMPARISONS[op](left, right))
