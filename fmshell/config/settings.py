"""fmshell configuration via environment / .env file."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Literal

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # --- Sandbox ---
    ALLOWED_ROOT_DIR: str = ""
    PROTECTED_BASE: str = ""

    # --- Logging ---
    LOG_LEVEL: Literal["debug", "info", "warning", "error"] = "info"
    LOG_TO_FILE: bool = False
    LOG_FILE: str = "app.log"

    # --- Plugins ---
    PLUGIN_DIR: str = ""
    PLUGIN_TIMEOUT: float = 30.0
    PLUGIN_MAX_RETRIES: int = 1

    # --- Commands ---
    COMMANDS_FILE: str = ""

    @field_validator("LOG_LEVEL", mode="before")
    @classmethod
    def _normalise_level(cls, v: object) -> object:
        if isinstance(v, str):
            v = v.strip().lower()
            if v == "warn":
                return "warning"
        return v

    @field_validator("PLUGIN_TIMEOUT")
    @classmethod
    def _positive_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("PLUGIN_TIMEOUT must be positive")
        return v

    @field_validator("PLUGIN_MAX_RETRIES")
    @classmethod
    def _at_least_one_attempt(cls, v: int) -> int:
        if v < 1:
            raise ValueError("PLUGIN_MAX_RETRIES must be at least 1")
        return v

    @model_validator(mode="after")
    def _default_root(self) -> "Settings":
        if not self.ALLOWED_ROOT_DIR:
            self.ALLOWED_ROOT_DIR = os.getcwd()
        return self

    @property
    def root_dir(self) -> Path:
        """The allowed root with symlinks collapsed."""
        return Path(os.path.realpath(os.path.expanduser(self.ALLOWED_ROOT_DIR)))

    @property
    def protected_base(self) -> Path | None:
        if not self.PROTECTED_BASE:
            return None
        return Path(os.path.realpath(os.path.expanduser(self.PROTECTED_BASE)))

    @property
    def plugin_dir(self) -> Path | None:
        if not self.PLUGIN_DIR:
            return None
        return Path(self.PLUGIN_DIR).expanduser()
