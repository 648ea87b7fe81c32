"""
CommandRegistry — the name → CommandDescriptor table.

Callbacks may be sync or async and receive the bound arguments and the
run context:
    def my_command(args: BoundArguments, ctx: CommandContext) -> Any

Register with the decorator:
    @command_registry.register("echo", unnamed_argument_list=[{"name": "text"}])
    def echo(args, ctx):
        return args.value

Names are case-sensitive and unique across names and aliases.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Mapping, Optional

from pydantic import ValidationError

from slashscript.core.errors import DuplicateNameError, MacroDefinitionError
from slashscript.schemas import CommandDescriptor

logger = logging.getLogger(__name__)

CommandCallback = Callable[..., Any]


class CommandRegistry:
    def __init__(self) -> None:
        self._commands: dict[str, CommandDescriptor] = {}    # name/alias → descriptor

    def add_command_object(self, descriptor: CommandDescriptor | Mapping[str, Any]) -> CommandDescriptor:
        """Register *descriptor* under its name and aliases."""
        if not isinstance(descriptor, CommandDescriptor):
            try:
                descriptor = CommandDescriptor.model_validate(dict(descriptor))
            except ValidationError as exc:
                raise MacroDefinitionError(f"Invalid command: {exc}") from exc

        names = descriptor.all_names
        for key in names:
            existing = self._commands.get(key)
            if existing is not None:
                raise DuplicateNameError(key, existing.name, kind="command")
        if len(set(names)) != len(names):
            raise DuplicateNameError(descriptor.name, descriptor.name, kind="command")

        for key in names:
            self._commands[key] = descriptor
        logger.debug("Registered command: /%s (aliases=%s)", descriptor.name, list(descriptor.aliases))
        return descriptor

    def register(self, name: str, **options: Any):
        """Decorator that registers a function as a command callback."""
        def decorator(fn: CommandCallback) -> CommandCallback:
            self.add_command_object({**options, "name": name, "callback": fn})
            return fn
        return decorator

    def has(self, name: str) -> bool:
        return name in self._commands

    def get(self, name: str) -> Optional[CommandDescriptor]:
        return self._commands.get(name)

    def registered_names(self, include_aliases: bool = True) -> list[str]:
        if include_aliases:
            return sorted(self._commands)
        return sorted({d.name for d in self._commands.values()})

    def __len__(self) -> int:
        return len({id(d) for d in self._commands.values()})


command_registry = CommandRegistry()
