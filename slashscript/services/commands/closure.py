"""
Closure — an ordered list of Executors sharing one Scope per run.

A Closure is plain tree data.  Evaluation lives in the interpreter; the
tree walks that keep provenance and progress consistent across nesting
levels are explicit operations here:

  command_count          depth-first, recomputed on every access
  propagate_source(id)   cascades into every Executor and nested Closure
  propagate_progress(cb) cascades the same callback into every nested Closure
"""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING, Any, Callable, Iterator, Optional

if TYPE_CHECKING:
    from .executor import Executor

ProgressCallback = Callable[[int, int], Any]


class Closure:

    def __init__(self, start: int = 0, end: int = 0, text: str = "") -> None:
        self.executor_list: list["Executor"] = []
        self.source: str = str(uuid.uuid4())
        self.on_progress: Optional[ProgressCallback] = None
        self.start = start
        self.end = end
        self.text = text

    def add_executor(self, executor: "Executor") -> None:
        self.executor_list.append(executor)

    @property
    def command_count(self) -> int:
        """
        Sum of the executors' counts. The closure itself is not a command,
        so an empty Closure counts 0 and a single-executor one counts the
        same as that executor (1 plus its argument closures).
        """
        return sum(executor.command_count for executor in self.executor_list)

    def nested_closures(self) -> Iterator["Closure"]:
        """Closures held directly by this Closure's executors' arguments."""
        for executor in self.executor_list:
            yield from executor.closures()

    def propagate_source(self, source: str) -> None:
        self.source = source
        for executor in self.executor_list:
            executor.propagate_source(source)

    def propagate_progress(self, callback: Optional[ProgressCallback]) -> None:
        self.on_progress = callback
        for executor in self.executor_list:
            executor.propagate_progress(callback)

    def __repr__(self) -> str:
        names = " | ".join(f"/{e.name}" for e in self.executor_list)
        return f"Closure({names})"
