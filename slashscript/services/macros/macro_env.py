"""
Environment macros
------------------
Names:      {{user}} {{char}} {{group}} {{groupNotMuted}} {{notChar}}
Character:  {{charDescription}} {{charPersonality}} {{charScenario}}
            {{persona}} {{charVersion}}
System:     {{model}}

All values come from the MacroEnv snapshot; missing fields read as "".
"""

from __future__ import annotations

from slashscript.schemas import MacroCategory

from .registry import MacroRegistry

_NAME_FIELDS = {
    "user": "user",
    "char": "char",
    "group": "group",
    "groupNotMuted": "group_not_muted",
    "notChar": "not_char",
}

_CHARACTER_FIELDS = {
    "charDescription": ("description", ["description"]),
    "charPersonality": ("personality", ["personality"]),
    "charScenario": ("scenario", ["scenario"]),
    "persona": ("persona", []),
    "charVersion": ("version", ["version", "char_version"]),
}


def _name_getter(attr: str):
    def handler(env, args):
        return getattr(env.names, attr, "")
    return handler


def _character_getter(key: str):
    def handler(env, args):
        return env.character.get(key, "")
    return handler


def register(registry: MacroRegistry) -> None:
    for macro, attr in _NAME_FIELDS.items():
        registry.register_macro(macro, {
            "category": MacroCategory.NAMES,
            "description": f"The '{attr}' name from the environment.",
            "handler": _name_getter(attr),
        })

    for macro, (key, aliases) in _CHARACTER_FIELDS.items():
        registry.register_macro(macro, {
            "aliases": aliases,
            "category": MacroCategory.CHARACTER,
            "description": f"The character's {key}.",
            "handler": _character_getter(key),
        })

    @registry.register("model", category=MacroCategory.STATE, description="The active model name.")
    def model_macro(env, args):
        return env.system.get("model", "")
