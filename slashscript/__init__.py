"""
slashscript — an embedded slash-command interpreter with {{macro}} expansion.
"""

from slashscript.core.errors import (
    ArgumentValidationError,
    CommandExecutionError,
    DuplicateNameError,
    MacroDefinitionError,
    ParseError,
    ScopeError,
    SlashScriptError,
    UnknownCommandError,
)
from slashscript.schemas import ClosureResult, ParserFlag, RunOptions
from slashscript.services.commands import ScriptRunner, command_registry
from slashscript.services.macros import macro_engine, macro_registry
from slashscript.services.variables import variable_store

__version__ = "0.1.0"

__all__ = [
    "ArgumentValidationError",
    "CommandExecutionError",
    "DuplicateNameError",
    "MacroDefinitionError",
    "ParseError",
    "ScopeError",
    "SlashScriptError",
    "UnknownCommandError",
    "ClosureResult",
    "ParserFlag",
    "RunOptions",
    "ScriptRunner",
    "command_registry",
    "macro_engine",
    "macro_registry",
    "variable_store",
]
