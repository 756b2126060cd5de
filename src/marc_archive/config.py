"""Configuration management for marc-archive.

This module handles application configuration using Pydantic settings.
Configuration can be loaded from environment variables or .env files.
"""

import os
import re
from functools import lru_cache
from pathlib import Path
from typing import Any

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_TIMEOUT = 60.0
MIN_TIMEOUT = 10.0
MAX_TIMEOUT = 15 * 60.0

_DURATION_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*([smh]?)\s*$")
_DURATION_UNITS = {"": 1.0, "s": 1.0, "m": 60.0, "h": 3600.0}


def default_cache_db_path() -> Path:
    """Return the per-user cache database location."""
    cache_home = os.environ.get("XDG_CACHE_HOME")
    base = Path(cache_home) if cache_home else Path.home() / ".cache"
    return base / "marc-archive" / "cache.db"


def parse_timeout(value: Any) -> float:
    """Parse a timeout such as ``45``, ``"30s"``, ``"2m"`` or ``"1h"`` into seconds.

    Unparsable values fall back to the default; parsed values are clamped to
    ``[MIN_TIMEOUT, MAX_TIMEOUT]``.
    """
    if value is None or value == "":
        return DEFAULT_TIMEOUT

    if isinstance(value, (int, float)) and not isinstance(value, bool):
        seconds = float(value)
    else:
        match = _DURATION_RE.match(str(value))
        if match is None:
            return DEFAULT_TIMEOUT
        seconds = float(match.group(1)) * _DURATION_UNITS[match.group(2)]

    return min(max(seconds, MIN_TIMEOUT), MAX_TIMEOUT)


class Settings(BaseSettings):
    """Application settings with environment variable support.

    All settings can be overridden via environment variables with
    the MARC_ prefix (e.g., MARC_TIMEOUT, MARC_CACHE_TTL_HOURS).
    """

    model_config = SettingsConfigDict(
        env_prefix="MARC_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Upstream archive
    base_url: str = Field(
        default="https://marc.info/",
        description="Base URL of the mailing-list archive",
    )
    timeout: float = Field(
        default=DEFAULT_TIMEOUT,
        description="Per-fetch timeout in seconds (accepts 30, 30s, 2m, 1h)",
    )
    user_agent: str = Field(
        default="marc-archive/0.1.0",
        description="User-Agent header sent with every upstream request",
    )

    # Cache
    cache_db_path: Path = Field(
        default_factory=default_cache_db_path,
        description="Path to the local SQLite cache database",
    )
    cache_ttl_hours: float = Field(
        default=24.0,
        gt=0,
        description="Freshness window of cached records in hours",
    )

    # Application Configuration
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    debug: bool = Field(
        default=False,
        description="Enable debug mode (forces DEBUG logging)",
    )

    @field_validator("timeout", mode="before")
    @classmethod
    def _coerce_timeout(cls, value: Any) -> float:
        return parse_timeout(value)

    @field_validator("log_level", mode="before")
    @classmethod
    def _upper_log_level(cls, value: Any) -> str:
        return str(value).upper()

    @property
    def cache_ttl_seconds(self) -> float:
        return self.cache_ttl_hours * 3600.0

    @property
    def effective_log_level(self) -> str:
        return "DEBUG" if self.debug else self.log_level


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings.

    Returns:
        Settings: Application settings instance.
    """
    return Settings()
