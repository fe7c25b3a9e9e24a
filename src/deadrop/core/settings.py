"""Deadrop settings and configuration.

Settings are loaded from environment variables (and an optional ``.env``
file) with defaults that match a per-user store under ``~/.openclaw``.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_DB_PATH = Path("~") / ".openclaw" / "workspace" / "deadrop.sqlite"


class Settings(BaseSettings):
    """Settings loaded from environment variables.

    Every field can be overridden through its ``DEADROP_*`` alias or passed
    by name when constructing an instance directly.
    """

    # Store location
    db_path: Path = Field(default=DEFAULT_DB_PATH, alias="DEADROP_DB")

    # Lock handling
    busy_timeout_ms: int = Field(default=5000, ge=0, alias="DEADROP_BUSY_TIMEOUT_MS")
    retry_attempts: int = Field(default=5, ge=1, alias="DEADROP_RETRY_ATTEMPTS")
    retry_backoff_seconds: float = Field(
        default=0.05,
        ge=0.0,
        alias="DEADROP_RETRY_BACKOFF_SECONDS",
    )
    retry_backoff_max_seconds: float = Field(
        default=1.0,
        ge=0.0,
        alias="DEADROP_RETRY_BACKOFF_MAX_SECONDS",
    )

    # Diagnostics
    log_level: str = Field(default="WARNING", alias="DEADROP_LOG_LEVEL")
    sql_debug: bool = Field(default=False, alias="DEADROP_SQL_DEBUG")

    model_config = SettingsConfigDict(
        env_file=".env",
        validate_assignment=True,
        validate_default=True,
        populate_by_name=True,
        extra="ignore",
    )

    @field_validator("db_path", mode="after")
    @classmethod
    def _expand_user(cls, value: Path) -> Path:
        return value.expanduser()

    @field_validator("log_level", mode="after")
    @classmethod
    def _normalize_level(cls, value: str) -> str:
        level = value.strip().upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"unknown log level {value!r}")
        return level

    def backoff_delay(self, attempt: int) -> float:
        """Return the sleep before retry number ``attempt`` (zero-based).

        Args:
            attempt: Index of the attempt that just failed.

        Returns:
            Exponential backoff capped at ``retry_backoff_max_seconds``.
        """
        return min(self.retry_backoff_seconds * (2**attempt), self.retry_backoff_max_seconds)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the process-wide settings, resolved once on first use."""
    return Settings()
