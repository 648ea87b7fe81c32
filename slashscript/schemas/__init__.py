"""
Pydantic v2 schemas for macro/command registration and run results.
"""

from __future__ import annotations

import re
from enum import Enum
from typing import Any, Callable, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from slashscript.core.config import get_settings

MACRO_IDENTIFIER = r"^[a-zA-Z][\w-]*$"
COMMENT_MACRO = "//"

MacroValueType = Literal["string", "integer", "number", "boolean"]
ArgumentType = Literal[
    "string", "integer", "number", "boolean",
    "variable_name", "closure", "list", "dictionary",
]


def _as_tuple(v: Any) -> Any:
    if v is None:
        return ()
    if isinstance(v, (str, dict, BaseModel)):
        return (v,)
    return tuple(v)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Macros
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class MacroCategory(str, Enum):
    UTILITY = "utility"
    RANDOM = "random"
    NAMES = "names"
    CHARACTER = "character"
    TIME = "time"
    VARIABLE = "variable"
    STATE = "state"
    UNCATEGORIZED = "uncategorized"


# -----------------------------------------------------------------------------

class MacroArgSpec(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1)
    type: tuple[MacroValueType, ...] = ("string",)
    optional: bool = False
    default_value: Optional[str] = None
    description: str = ""

    @field_validator("type", mode="before")
    @classmethod
    def type_as_tuple(cls, v: Any) -> Any:
        return _as_tuple(v) or ("string",)


# -----------------------------------------------------------------------------

class MacroListSpec(BaseModel):
    model_config = ConfigDict(frozen=True)

    min: int = Field(default=0, ge=0)
    max: Optional[int] = None

    @model_validator(mode="after")
    def max_not_below_min(self) -> "MacroListSpec":
        if self.max is not None and self.max < self.min:
            raise ValueError("list max must be >= list min")
        return self


# -----------------------------------------------------------------------------

class MacroDescriptor(BaseModel):
    """A registered macro. Immutable once built."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    name: str
    aliases: tuple[str, ...] = ()
    category: str = MacroCategory.UNCATEGORIZED.value
    unnamed_args: tuple[MacroArgSpec, ...] = ()
    list_spec: Optional[MacroListSpec] = None
    strict_args: bool = Field(default_factory=lambda: get_settings().macro_strict_args)
    delay_arg_resolution: bool = False     # handler receives raw arguments and expands them itself
    description: str = ""
    returns: Optional[str] = None
    return_type: tuple[MacroValueType, ...] = ("string",)
    handler: Callable[..., Any]

    @field_validator("name")
    @classmethod
    def name_is_identifier(cls, v: str) -> str:
        v = v.strip()
        if v != COMMENT_MACRO and not re.match(MACRO_IDENTIFIER, v):
            raise ValueError(f"Macro name '{v}' is invalid: must start with a letter, "
                             "followed by word characters or hyphens")
        return v

    @field_validator("category", mode="before")
    @classmethod
    def category_value(cls, v: Any) -> Any:
        if isinstance(v, Enum):
            return v.value
        return (v or "").strip() or MacroCategory.UNCATEGORIZED.value

    @field_validator("aliases", mode="before")
    @classmethod
    def aliases_as_tuple(cls, v: Any) -> Any:
        # accept ["a", "b"] as well as [{"alias": "a", "visible": True}]
        return tuple(a["alias"] if isinstance(a, dict) else a for a in _as_tuple(v))

    @field_validator("aliases")
    @classmethod
    def aliases_are_identifiers(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        for alias in v:
            if not re.match(MACRO_IDENTIFIER, alias):
                raise ValueError(f"Alias '{alias}' is invalid")
        return tuple(a.strip() for a in v)

    @field_validator("unnamed_args", mode="before")
    @classmethod
    def unnamed_args_from_count(cls, v: Any) -> Any:
        if isinstance(v, int) and not isinstance(v, bool):
            if v < 0:
                raise ValueError("unnamed_args count must be non-negative")
            return tuple({"name": f"arg{i + 1}"} for i in range(v))
        return _as_tuple(v)

    @field_validator("list_spec", mode="before")
    @classmethod
    def list_spec_from_bool(cls, v: Any) -> Any:
        if v is True:
            return {"min": 0}
        if v is False:
            return None
        return v

    @field_validator("return_type", mode="before")
    @classmethod
    def return_type_as_tuple(cls, v: Any) -> Any:
        return _as_tuple(v) or ("string",)

    @model_validator(mode="after")
    def check_consistency(self) -> "MacroDescriptor":
        if any(a.lower() == self.name.lower() for a in self.aliases):
            raise ValueError(f"Macro '{self.name}' cannot alias itself")
        seen_optional = False
        for spec in self.unnamed_args:
            if seen_optional and not spec.optional:
                raise ValueError(f"Macro '{self.name}' argument '{spec.name}' is required "
                                 "but follows an optional argument")
            seen_optional = seen_optional or spec.optional
        return self

    @property
    def min_args(self) -> int:
        return sum(1 for a in self.unnamed_args if not a.optional)

    @property
    def max_args(self) -> int:
        return len(self.unnamed_args)

    @property
    def all_names(self) -> tuple[str, ...]:
        return (self.name, *self.aliases)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Commands
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class ArgumentSpec(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str = ""
    description: str = ""
    type_list: tuple[ArgumentType, ...] = ("string",)
    is_required: bool = False
    accepts_multiple: bool = False
    default_value: Optional[Any] = None
    enum_list: tuple[str, ...] = ()

    @field_validator("type_list", mode="before")
    @classmethod
    def type_list_as_tuple(cls, v: Any) -> Any:
        return _as_tuple(v) or ("string",)

    @field_validator("enum_list", mode="before")
    @classmethod
    def enum_list_as_tuple(cls, v: Any) -> Any:
        return tuple(str(e) for e in _as_tuple(v))

    @property
    def accepts_closure(self) -> bool:
        return "closure" in self.type_list


class NamedArgumentSpec(ArgumentSpec):
    name: str = Field(..., pattern=MACRO_IDENTIFIER)


class UnnamedArgumentSpec(ArgumentSpec):
    pass


# -----------------------------------------------------------------------------

class CommandDescriptor(BaseModel):
    """A registered slash command. Immutable once built."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    name: str = Field(..., min_length=1, pattern=r"^[^\s|{}\"=]+$")
    aliases: tuple[str, ...] = ()
    named_argument_list: tuple[NamedArgumentSpec, ...] = ()
    unnamed_argument_list: tuple[UnnamedArgumentSpec, ...] = ()
    callback: Callable[..., Any]
    help_string: str = ""
    split_unnamed: bool = False
    return_type: str = "string"

    @field_validator("aliases", "named_argument_list", "unnamed_argument_list", mode="before")
    @classmethod
    def as_tuple(cls, v: Any) -> Any:
        return _as_tuple(v)

    @model_validator(mode="after")
    def names_are_valid(self) -> "CommandDescriptor":
        for n in self.all_names:
            if "::" in n or not n.strip() or any(ch.isspace() for ch in n):
                raise ValueError(f"Command name '{n}' is invalid")
        if self.name in self.aliases:
            raise ValueError(f"Command '{self.name}' cannot alias itself")
        return self

    @property
    def all_names(self) -> tuple[str, ...]:
        return (self.name, *self.aliases)

    def named_spec(self, key: str) -> Optional[NamedArgumentSpec]:
        for spec in self.named_argument_list:
            if spec.name == key:
                return spec
        return None


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Runs
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class ParserFlag(str, Enum):
    STRICT_ESCAPING = "STRICT_ESCAPING"
    REPLACE_GETVAR = "REPLACE_GETVAR"


def default_parser_flags() -> dict[ParserFlag, bool]:
    settings = get_settings()
    return {
        ParserFlag.STRICT_ESCAPING: settings.strict_escaping,
        ParserFlag.REPLACE_GETVAR: settings.replace_getvar,
    }


# -----------------------------------------------------------------------------

class RunOptions(BaseModel):
    """Caller-supplied options for one top-level run."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    abort_on_error: bool                # required: each caller picks its failure policy
    cancel_token: Any = None            # handed to callbacks untouched
    on_progress: Optional[Callable[..., Any]] = None
    source: Optional[str] = None        # provenance id; generated if missing
    parser_flags: Optional[dict[ParserFlag, bool]] = None


# -----------------------------------------------------------------------------

class ClosureResult(BaseModel):
    pipe: str = ""
    is_error: bool = False
    error_message: Optional[str] = None
    errors: list[str] = Field(default_factory=list)
    source: Optional[str] = None

