"""
Slash-command subsystem — public API.
"""

from .registry import CommandRegistry, command_registry
from .arguments import BoundArguments, NamedArgumentAssignment, UnnamedArgumentAssignment
from .closure import Closure
from .executor import Executor
from .scope import Scope
from .parser import ScriptParser
from .interpreter import ClosureRun, CommandContext, Interpreter, RunState
from .runner import ScriptRunner
from .builtins import register_all_builtins

__all__ = [
    "CommandRegistry",
    "command_registry",
    "BoundArguments",
    "NamedArgumentAssignment",
    "UnnamedArgumentAssignment",
    "Closure",
    "Executor",
    "Scope",
    "ScriptParser",
    "ClosureRun",
    "CommandContext",
    "Interpreter",
    "RunState",
    "ScriptRunner",
    "register_all_builtins",
]
