"""
Executor — one parsed command invocation inside a Closure.
"""

from __future__ import annotations

import uuid
from typing import Iterator, Optional

from slashscript.schemas import CommandDescriptor, ParserFlag

from .arguments import NamedArgumentAssignment, UnnamedArgumentAssignment
from .closure import Closure, ProgressCallback


class Executor:
    """
    ``command`` is the descriptor resolved at parse time, or None when the
    name was unknown then; the interpreter looks the name up again before
    running.  ``inject_pipe`` is False after a ``||`` pipe break;
    ``split_unnamed`` keeps unnamed values as separate tokens (split
    commands and the ``/name::a::b`` shorthand).
    """

    def __init__(self, start: int = 0, end: int = 0) -> None:
        self.start = start
        self.end = end
        self.name: str = ""
        self.command: Optional[CommandDescriptor] = None
        self.named_argument_list: list[NamedArgumentAssignment] = []
        self.unnamed_argument_list: list[UnnamedArgumentAssignment] = []
        self.source: str = str(uuid.uuid4())
        self.parser_flags: dict[ParserFlag, bool] = {}
        self.inject_pipe = True
        self.split_unnamed = False

        self.start_named_args = 0
        self.end_named_args = 0
        self.start_unnamed_args = 0
        self.end_unnamed_args = 0

    def closures(self) -> Iterator[Closure]:
        """Closure-valued arguments, named ones first, in source order."""
        for arg in self.named_argument_list:
            if arg.is_closure:
                yield arg.value
        for arg in self.unnamed_argument_list:
            if arg.is_closure:
                yield arg.value

    @property
    def command_count(self) -> int:
        return 1 + sum(closure.command_count for closure in self.closures())

    def propagate_source(self, source: str) -> None:
        self.source = source
        for closure in self.closures():
            closure.propagate_source(source)

    def propagate_progress(self, callback: Optional[ProgressCallback]) -> None:
        for closure in self.closures():
            closure.propagate_progress(callback)

    def __repr__(self) -> str:
        return f"Executor(/{self.name} {self.named_argument_list!r} {self.unnamed_argument_list!r})"
