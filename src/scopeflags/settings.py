"""
Settings for scopeflags.

All fields can be set via ``SCOPEFLAGS_*`` environment variables (e.g.
``SCOPEFLAGS_DATABASE_URL=data/flags.db``) or a ``.env`` file.

Examples:
    >>> from scopeflags.settings import get_settings
    >>> settings = get_settings()
    >>> settings.settings_key
    'feature_flags'

Tags:
    settings, configuration, pydantic, environment
"""

from __future__ import annotations

from enum import Enum

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseBackend(str, Enum):
    """Where flag state is persisted."""

    SQLITE = "sqlite"
    MEMORY = "memory"


class FlagSettings(BaseSettings):
    """scopeflags configuration."""

    model_config = SettingsConfigDict(
        env_prefix="SCOPEFLAGS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Persistence ──────────────────────────────────────────────
    database_backend: DatabaseBackend = Field(default=DatabaseBackend.SQLITE)
    database_url: str = Field(default="data/scopeflags.db", description="SQLite path or ':memory:'")
    create_tables: bool = Field(default=True, description="Create flag tables on startup")

    # ── Storage layout ───────────────────────────────────────────
    settings_table: str = Field(default="app_settings")
    overrides_table: str = Field(default="feature_flag_overrides")
    settings_key: str = Field(default="feature_flags", description="Key of the global snapshot row")

    # ── Logging ──────────────────────────────────────────────────
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="json", description="json or console")
    service_name: str = Field(default="scopeflags")


_settings_cache: dict[str, FlagSettings] = {}


def get_settings(*, _force_reload: bool = False) -> FlagSettings:
    """Load, validate, and cache a :class:`FlagSettings` instance."""
    if not _force_reload and "default" in _settings_cache:
        return _settings_cache["default"]
    settings = FlagSettings()
    _settings_cache["default"] = settings
    return settings


def clear_settings_cache() -> None:
    """Drop the cached settings (tests, CLI option changes)."""
    _settings_cache.clear()


__all__ = ["DatabaseBackend", "FlagSettings", "clear_settings_cache", "get_settings"]
