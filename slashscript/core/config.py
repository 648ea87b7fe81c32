#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Engine configuration.

All values can be overridden via environment variables (prefix
``SLASHSCRIPT_``) or a .env file.
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


# -----------------------------------------------------------------------------

class Settings(BaseSettings):

    model_config = SettingsConfigDict(
        env_prefix="SLASHSCRIPT_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── Application ────────────────────────────────────────────────────────

    app_name: str = "slashscript"
    app_version: str = "0.1.0"
    debug: bool = False
    environment: Literal["development", "testing", "production"] = "development"
    log_level: str = "INFO"

    # ── Macros ─────────────────────────────────────────────────────────────

    macro_max_passes: int = 20      # cap for expand_all() re-expansion
    macro_strict_args: bool = True  # default for descriptors that don't say

    # ── Scripts ────────────────────────────────────────────────────────────

    abort_on_error: bool = True     # a failing command stops its siblings
    strict_escaping: bool = False   # default parser flags
    replace_getvar: bool = False


# -----------------------------------------------------------------------------

@lru_cache
def get_settings() -> Settings:
    return Settings()


# -----------------------------------------------------------------------------
