"""
MacroEnv — the read-only snapshot every macro handler receives.

A fresh env is built for each expansion call.  Handlers never mutate it;
side effects go to the VariableStore reachable through ``env.variables``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Callable, Mapping, Optional

from slashscript.services.variables import VariableStore, variable_store

if TYPE_CHECKING:
    from slashscript.services.commands.scope import Scope

logger = logging.getLogger(__name__)


def _empty() -> Mapping[str, Any]:
    return MappingProxyType({})


@dataclass(frozen=True)
class MacroNames:
    user: str = "User"
    char: str = ""
    group: str = ""
    group_not_muted: str = ""
    not_char: str = ""


@dataclass(frozen=True)
class MacroEnv:
    content: str = ""
    names: MacroNames = field(default_factory=MacroNames)
    character: Mapping[str, str] = field(default_factory=_empty)   # description, personality, scenario, persona, version, ...
    system: Mapping[str, str] = field(default_factory=_empty)      # model, ...
    functions: Mapping[str, Callable[..., Any]] = field(default_factory=_empty)
    dynamic_macros: Mapping[str, Any] = field(default_factory=_empty)
    variables: Optional[VariableStore] = None
    scope: Optional["Scope"] = None
    pipe: Optional[str] = None
    extra: Mapping[str, Any] = field(default_factory=_empty)


# -----------------------------------------------------------------------------

EnvProvider = Callable[[dict[str, Any]], None]


class MacroEnvBuilder:
    """
    Builds a MacroEnv from raw inputs plus registered providers.

    Providers run in ascending ``order`` and may fill or override any
    field of the env before it is frozen::

        builder.register_provider(lambda fields: fields.update(system={"model": "gpt"}))
    """

    EARLIEST, EARLY, NORMAL, LATE, LATEST = 0, 10, 50, 90, 100

    def __init__(self, variables: Optional[VariableStore] = None, **defaults: Any) -> None:
        self._variables = variables if variables is not None else variable_store
        self._defaults = defaults
        self._providers: list[tuple[int, EnvProvider]] = []

    def register_provider(self, provider: EnvProvider, order: int = NORMAL) -> None:
        if not callable(provider):
            raise TypeError("Provider must be callable")
        self._providers.append((order, provider))
        self._providers.sort(key=lambda p: p[0])

    def build(self, content: str = "", **overrides: Any) -> MacroEnv:
        fields: dict[str, Any] = {"variables": self._variables}
        fields.update(self._defaults)
        fields.update(overrides)
        fields["content"] = content
        for _order, provider in self._providers:
            try:
                provider(fields)
            except Exception:
                logger.exception("Macro env provider %r failed", provider)
        if isinstance(fields.get("names"), Mapping):
            fields["names"] = MacroNames(**fields["names"])
        for key in ("character", "system", "functions", "dynamic_macros", "extra"):
            if key in fields:
                fields[key] = MappingProxyType(dict(fields[key]))
        return MacroEnv(**fields)
