"""
Scope — the per-run environment of a Closure.

Holds the current pipe value and the scoped variables defined with /let.
Lookups walk the ``parent`` chain; ``parent`` is a lexical back-reference
only and is never modified through a child.
"""

from __future__ import annotations

from typing import Any, Iterator, Optional

from slashscript.core.errors import ScopeVariableExistsError, ScopeVariableNotFoundError


class Scope:

    def __init__(self, parent: Optional["Scope"] = None, pipe: Optional[str] = None) -> None:
        self.parent = parent
        self.pipe = pipe
        self.variables: dict[str, Any] = {}

    def child(self, pipe: Optional[str] = None) -> "Scope":
        return Scope(parent=self, pipe=pipe)

    # ------------------------------------------------------------- variables

    def _owner(self, key: str) -> Optional["Scope"]:
        for scope in self._chain():
            if key in scope.variables:
                return scope
        return None

    def _chain(self) -> Iterator["Scope"]:
        scope: Optional[Scope] = self
        while scope is not None:
            yield scope
            scope = scope.parent

    def let_variable(self, key: str, value: Any = None) -> Any:
        """Define *key* in this scope; it must not already be defined here."""
        if key in self.variables:
            raise ScopeVariableExistsError(key)
        self.variables[key] = value
        return value

    def set_variable(self, key: str, value: Any) -> Any:
        """Assign *key* in the nearest scope that defines it."""
        owner = self._owner(key)
        if owner is None:
            raise ScopeVariableNotFoundError(key)
        owner.variables[key] = value
        return value

    def get_variable(self, key: str) -> Any:
        owner = self._owner(key)
        if owner is None:
            raise ScopeVariableNotFoundError(key)
        return owner.variables[key]

    def has_variable(self, key: str) -> bool:
        return self._owner(key) is not None

    def __repr__(self) -> str:
        return f"Scope(pipe={self.pipe!r}, variables={sorted(self.variables)!r})"
