"""
Utility macros
--------------
{{space}} {{space::4}}       — one or more spaces
{{newline}} {{newline::2}}   — one or more newlines
{{noop}}                     — empty string
{{reverse::text}}            — reversed text
{{// any comment}}           — removed from the output
{{pipe}}                     — current pipe value when expanded inside a script
{{if cond}}…{{else}}…{{/if}} — conditional block; also {{if cond::content}}
{{else}}                     — branch marker, empty outside {{if}}

{{trim}} is not a macro: the engine's post-processor removes it together
with the newlines around it.
"""

from __future__ import annotations

import re
from typing import Optional

from slashscript.core.coercion import is_false_boolean
from slashscript.schemas import MacroCategory

from .params import (
    OPEN,
    CLOSE,
    VARIABLE_NAME,
    Placeholder,
    parse_placeholder,
    scan_placeholders,
    trim_scoped_content,
)
from .registry import MacroRegistry

_COUNT = {"name": "count", "optional": True, "default_value": "1", "type": "integer"}
_NEGATION = re.compile(r"^\s*!\s*")
_VARIABLE_CONDITION = re.compile(rf"^([.$])({VARIABLE_NAME})$")


def split_else(content: str) -> tuple[str, Optional[str]]:
    """
    Split raw ``{{if}}`` content at its own ``{{else}}``.

    Only block openers (``{{if cond}}`` with one argument) and ``{{/if}}``
    change the nesting; an inline ``{{if cond::x}}`` does not.  The else
    branch is None when there is no top-level ``{{else}}``.
    """
    depth = 0
    for start, end in scan_placeholders(content):
        call = parse_placeholder(content[start + len(OPEN):end - len(CLOSE)])
        if not isinstance(call, Placeholder):
            continue
        name = call.name.lower()
        if name == "if" and call.is_closing:
            depth -= 1
        elif name == "if" and len(call.args) == 1:
            depth += 1
        elif name == "else" and depth == 0 and not call.is_closing:
            return content[:start], content[end:]
    return content, None


def register(registry: MacroRegistry) -> None:

    @registry.register("space", category=MacroCategory.UTILITY, unnamed_args=[_COUNT],
                       description="One or more spaces.")
    def space_macro(env, args):
        return " " * max(0, args[0])

    @registry.register("newline", category=MacroCategory.UTILITY, unnamed_args=[_COUNT],
                       description="One or more newlines.")
    def newline_macro(env, args):
        return "\n" * max(0, args[0])

    @registry.register("noop", category=MacroCategory.UTILITY, description="Produces an empty string.")
    def noop_macro(env, args):
        return ""

    @registry.register("reverse", category=MacroCategory.UTILITY,
                       unnamed_args=[{"name": "value"}],
                       description="Reverses the characters of the argument.")
    def reverse_macro(env, args):
        return args[0][::-1]

    @registry.register("//", aliases=["comment"], category=MacroCategory.UTILITY,
                       list_spec=True, strict_args=False,
                       description="Comment; produces an empty string.")
    def comment_macro(env, args):
        return ""

    @registry.register("pipe", category=MacroCategory.UTILITY,
                       description="The pipe value of the running script.")
    def pipe_macro(env, args):
        return env.pipe

    @registry.register("if", category=MacroCategory.UTILITY, delay_arg_resolution=True,
                       unnamed_args=[{"name": "condition"}, {"name": "content"}],
                       description="The content when the condition is truthy, else the "
                                   "{{else}} branch or nothing. Prefix ! inverts.")
    async def if_macro(env, args):
        condition, content = args.raw[0], args.raw[1]
        negation = _NEGATION.match(condition)
        if negation:
            condition = condition[negation.end():]

        condition = await args.resolve(condition)
        variable = _VARIABLE_CONDITION.match(condition)
        if variable:
            getter = "getvar" if variable.group(1) == "." else "getglobalvar"
            condition = await args.resolve(f"{OPEN}{getter}::{variable.group(2)}{CLOSE}")
        else:
            desc = registry.get(condition)
            if desc is not None and desc.min_args == 0:
                condition = await args.resolve(f"{OPEN}{condition}{CLOSE}")

        falsy = condition == "" or is_false_boolean(condition)
        if negation:
            falsy = not falsy

        then_branch, else_branch = split_else(content)
        chosen = else_branch if falsy else then_branch
        if chosen is None:
            return ""
        result = await args.resolve(chosen)
        return result if args.preserve_whitespace else trim_scoped_content(result)

    @registry.register("else", category=MacroCategory.UTILITY,
                       description="Marks the else branch of an {{if}} block.")
    def else_macro(env, args):
        return ""
