"""
Random macros
-------------
{{random::a::b::c}}   — one item, re-rolled on every expansion
{{random a,b,c}}      — same, single argument split on commas (\\, keeps a comma)
{{pick::a::b::c}}     — one item, stable for the same text and position
{{roll::2d6+1}}       — dice total; {{roll::20}} means 1d20
"""

from __future__ import annotations

import hashlib
import logging
import random
import re

from slashscript.schemas import MacroCategory

from .params import ARG_SEPARATOR
from .registry import MacroRegistry

logger = logging.getLogger(__name__)

_DICE = re.compile(r"^(\d*)d(\d+)(?:([+-])(\d+))?$", re.IGNORECASE)
_ESCAPED_COMMA = "\\,"
_COMMA_MARKER = "\x00COMMA\x00"


def read_choices(items: list[str]) -> list[str]:
    """A single argument is the legacy list form, split on ``::`` or commas."""
    if len(items) != 1:
        return items
    text = items[0]
    if ARG_SEPARATOR in text:
        return [item.strip() for item in text.split(ARG_SEPARATOR)]
    return [item.strip().replace(_COMMA_MARKER, ",")
            for item in text.replace(_ESCAPED_COMMA, _COMMA_MARKER).split(",")]


def pick_seed(content: str, offset: int) -> int:
    digest = hashlib.sha256(f"{content}-{offset}".encode("utf-8")).hexdigest()
    return int(digest[:16], 16)


def roll_dice(formula: str, rng: random.Random) -> int:
    """Total of a ``NdM[+-K]`` roll.  Raises ValueError on a bad formula."""
    text = formula.strip()
    if text.isdigit():
        text = f"1d{text}"
    m = _DICE.match(text)
    if not m:
        raise ValueError(f"invalid roll formula: {formula!r}")
    count, sides = int(m.group(1) or 1), int(m.group(2))
    if count < 1 or sides < 1:
        raise ValueError(f"invalid roll formula: {formula!r}")
    total = sum(rng.randint(1, sides) for _ in range(count))
    if m.group(3):
        modifier = int(m.group(4))
        total += modifier if m.group(3) == "+" else -modifier
    return total


def register(registry: MacroRegistry) -> None:

    @registry.register("random", category=MacroCategory.RANDOM, list_spec=True,
                       description="A random item of the list, re-rolled on every expansion.")
    def random_macro(env, args):
        choices = read_choices(args.tail)
        return random.choice(choices) if choices else ""

    @registry.register("pick", category=MacroCategory.RANDOM, list_spec=True,
                       description="A random item of the list, stable for the same text and position.")
    def pick_macro(env, args):
        choices = read_choices(args.tail)
        if not choices:
            return ""
        rng = random.Random(pick_seed(env.content, args.offset))
        return choices[rng.randrange(len(choices))]

    @registry.register("roll", category=MacroCategory.RANDOM, return_type="integer",
                       unnamed_args=[{"name": "formula", "description": "Dice formula, e.g. 1d20 or 3d6+4."}],
                       description="Rolls dice and returns the total.")
    def roll_macro(env, args):
        try:
            return roll_dice(args[0], random.Random())
        except ValueError:
            logger.warning("Invalid roll formula: %s", args[0])
            return ""
