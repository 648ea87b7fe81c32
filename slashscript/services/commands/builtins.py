"""
Core slash commands.

Call register_all_builtins() once at application startup.

  /pass value            returns its input (alias /return)
  /let key=x value       defines a scoped variable in the current scope
  /var key=x [value]     reads or updates a scoped variable
  /setvar key=x value    local store      /setglobalvar key=x value
  /getvar x              local store      /getglobalvar x
  /addvar /incvar /decvar /flushvar       and their global variants
  /run {: ... :}         runs a closure (or a scoped variable holding one)

For the variable commands the name can also be the first unnamed word:
``/setvar x 1`` and ``/setvar::x::1`` both set ``x``.
"""

from __future__ import annotations

from typing import Any, Optional

from slashscript.core.coercion import normalize_value

from .arguments import BoundArguments
from .closure import Closure
from .registry import CommandRegistry, command_registry

_KEY = {"name": "key", "description": "The variable name.", "type_list": ["variable_name"]}
_VALUE = {"name": "value", "description": "The value.", "type_list": ["string", "number"],
          "accepts_multiple": True}
_CLOSURE_VALUE = {"name": "value", "description": "The value, or a closure.",
                  "type_list": ["string", "number", "closure"], "accepts_multiple": True}


def _key_and_values(args: BoundArguments) -> tuple[str, list[Any]]:
    values = list(args.unnamed)
    key = args.get("key")
    if key is None:
        words = [] if not values or isinstance(values[0], Closure) else normalize_value(values[0]).split(None, 1)
        if not words:
            raise ValueError("a variable name is required")
        key = words[0]
        values = words[1:] + values[1:]
    return str(key).strip(), values


def _join(values: list[Any]) -> Any:
    if not values:
        return ""
    if len(values) == 1:
        return values[0]
    return " ".join(normalize_value(v) for v in values)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Pipe and closures
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

def _register_core(registry: CommandRegistry) -> None:

    @registry.register("pass", aliases=["return"],
                       help_string="Returns the provided value (or the incoming pipe).")
    def pass_command(args, ctx):
        return args.value

    @registry.register("run",
                       unnamed_argument_list=[{"name": "closure", "is_required": True,
                                               "type_list": ["closure", "variable_name"]}],
                       help_string="Runs a closure, or the closure stored in a scoped variable.")
    async def run_command(args, ctx):
        target = args.unnamed[0]
        if not isinstance(target, Closure):
            name = normalize_value(target).strip()
            target = ctx.scope.get_variable(name)
            if not isinstance(target, Closure):
                raise ValueError(f"scoped variable '{name}' does not hold a closure")
        return await ctx.run_closure(target)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Scoped variables
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

def _register_scoped(registry: CommandRegistry) -> None:

    @registry.register("let", named_argument_list=[_KEY], unnamed_argument_list=[_CLOSURE_VALUE],
                       help_string="Defines a scoped variable in the current scope.")
    def let_command(args, ctx):
        key, values = _key_and_values(args)
        value = _join(values)
        ctx.scope.let_variable(key, value)
        return value

    @registry.register("var", named_argument_list=[_KEY], unnamed_argument_list=[_CLOSURE_VALUE],
                       help_string="Gets a scoped variable, or sets it when a value is given.")
    def var_command(args, ctx):
        key, values = _key_and_values(args)
        if not values:
            return ctx.scope.get_variable(key)
        value = _join(values)
        ctx.scope.set_variable(key, value)
        return value


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Store variables
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

def _register_store_family(registry: CommandRegistry, is_global: bool) -> None:
    infix = "global" if is_global else ""
    label = "global" if is_global else "local"

    def namespace(ctx):
        return ctx.variables.namespace(is_global)

    @registry.register(f"set{infix}var", named_argument_list=[_KEY], unnamed_argument_list=[_VALUE],
                       help_string=f"Sets a {label} variable and returns the value.")
    def setvar(args, ctx):
        key, values = _key_and_values(args)
        return namespace(ctx).set(key, _join(values))

    @registry.register(f"get{infix}var", named_argument_list=[_KEY],
                       help_string=f"Gets a {label} variable; unset variables read as an empty string.")
    def getvar(args, ctx):
        key: Optional[str] = args.get("key")
        return namespace(ctx).get(key if key is not None else args.value.strip())

    @registry.register(f"add{infix}var", named_argument_list=[_KEY], unnamed_argument_list=[_VALUE],
                       help_string=f"Adds to a {label} variable (numeric add or string append).")
    def addvar(args, ctx):
        key, values = _key_and_values(args)
        return namespace(ctx).add(key, _join(values))

    @registry.register(f"inc{infix}var", named_argument_list=[_KEY],
                       help_string=f"Increments a {label} variable and returns the new value.")
    def incvar(args, ctx):
        key, _values = _key_and_values(args)
        return namespace(ctx).inc(key)

    @registry.register(f"dec{infix}var", named_argument_list=[_KEY],
                       help_string=f"Decrements a {label} variable and returns the new value.")
    def decvar(args, ctx):
        key, _values = _key_and_values(args)
        return namespace(ctx).dec(key)

    @registry.register(f"flush{infix}var", named_argument_list=[_KEY],
                       help_string=f"Deletes a {label} variable.")
    def flushvar(args, ctx):
        key, _values = _key_and_values(args)
        namespace(ctx).delete(key)
        return ""


def register(registry: CommandRegistry) -> None:
    _register_core(registry)
    _register_scoped(registry)
    _register_store_family(registry, is_global=False)
    _register_store_family(registry, is_global=True)


def register_all_builtins(registry: Optional[CommandRegistry] = None) -> None:
    """Register the core commands (on the shared registry by default)."""
    register(registry if registry is not None else command_registry)
