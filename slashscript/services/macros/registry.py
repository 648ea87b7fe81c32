"""
MacroRegistry — central store of all registered macro handlers.

Handlers can be synchronous or async and receive the env snapshot and the
bound arguments:
    sync:  def my_macro(env: MacroEnv, args: MacroArgs) -> Any
    async: async def my_macro(env: MacroEnv, args: MacroArgs) -> Any

Register with the decorator:
    @macro_registry.register("greet", unnamed_args=[{"name": "who"}])
    def greet(env, args):
        return f"Hello, {args[0]}!"

or with a descriptor:
    macro_registry.register_macro("greet", MacroDescriptor(...))

Names and aliases are unique across the whole registry (case-insensitive).
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Iterable, Mapping, Optional

from pydantic import ValidationError

from slashscript.core.coercion import normalize_value
from slashscript.core.errors import DuplicateNameError, MacroDefinitionError
from slashscript.schemas import MacroDescriptor

from .context import MacroEnv
from .params import bind_macro_args

logger = logging.getLogger(__name__)

MacroHandler = Callable[..., Any]


def build_descriptor(name: str, options: MacroDescriptor | Mapping[str, Any]) -> MacroDescriptor:
    """Validate *options* into a MacroDescriptor named *name*."""
    if isinstance(options, MacroDescriptor) and options.name == name.strip():
        return options
    try:
        return MacroDescriptor.model_validate({**dict(options), "name": name})
    except ValidationError as exc:
        raise MacroDefinitionError(f"Invalid macro '{name}': {exc}") from exc


async def invoke(handler: MacroHandler, *args: Any) -> Any:
    """Call a sync or async handler and await the result if needed."""
    result = handler(*args)
    if asyncio.iscoroutine(result) or isinstance(result, asyncio.Future):
        result = await result
    return result


class MacroRegistry:
    def __init__(self) -> None:
        self._macros: dict[str, MacroDescriptor] = {}    # lower-case name/alias → descriptor

    # ---------------------------------------------------------------- register

    def register_macro(self, name: str, descriptor: MacroDescriptor | Mapping[str, Any]) -> MacroDescriptor:
        """
        Register a macro under *name* and its aliases.

        Raises DuplicateNameError if the name or any alias is already taken
        by another macro's name or alias.
        """
        desc = build_descriptor(name, descriptor)
        for key in desc.all_names:
            existing = self._macros.get(key.lower())
            if existing is not None:
                raise DuplicateNameError(key, existing.name)
        lowered = [k.lower() for k in desc.all_names]
        if len(set(lowered)) != len(lowered):
            raise DuplicateNameError(desc.name, desc.name)

        for key in lowered:
            self._macros[key] = desc
        logger.debug("Registered macro: %s (aliases=%s)", desc.name, list(desc.aliases))
        return desc

    def register(self, name: str, **options: Any):
        """
        Decorator that registers a function as a macro handler.

        Usage::

            @macro_registry.register("newline", category="utility")
            def newline(env, args):
                return "\\n"
        """
        def decorator(fn: MacroHandler) -> MacroHandler:
            self.register_macro(name, {**options, "handler": fn})
            return fn
        return decorator

    # ------------------------------------------------------------------ lookup

    def has(self, name: str) -> bool:
        return name.strip().lower() in self._macros

    def get(self, name: str) -> Optional[MacroDescriptor]:
        return self._macros.get(name.strip().lower())

    async def call(
        self,
        name: str,
        raw_args: list[str],
        env: MacroEnv,
        fallback: str,
        descriptor: Optional[MacroDescriptor] = None,
        **context: Any,
    ) -> str:
        """
        Invoke a macro handler (sync or async) and normalise its result.

        Returns *fallback* (the placeholder text) when the macro is unknown
        or its handler fails; failures are logged, never raised.  *context*
        is passed on to bind_macro_args().
        """
        desc = descriptor if descriptor is not None else self.get(name)
        if desc is None:
            return fallback

        try:
            args = bind_macro_args(desc, raw_args, **context)
            result = await invoke(desc.handler, env, args)
        except Exception:
            logger.exception("Macro %s raised an error", name)
            return fallback
        return normalize_value(result)

    # ---------------------------------------------------------- introspection

    def registered_names(self, include_aliases: bool = True) -> list[str]:
        names: Iterable[str]
        if include_aliases:
            names = (n for d in self.all_macros() for n in d.all_names)
        else:
            names = (d.name for d in self.all_macros())
        return sorted(names, key=str.lower)

    def all_macros(self) -> list[MacroDescriptor]:
        unique = {id(d): d for d in self._macros.values()}
        return sorted(unique.values(), key=lambda d: d.name.lower())

    def __len__(self) -> int:
        return len(self.all_macros())


# Singleton shared across the application
macro_registry = MacroRegistry()
