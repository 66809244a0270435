"""
Shared pytest fixtures for scopeflags tests.

This module provides:
- A small flag catalog with known defaults
- In-memory and SQLite gateways
- A recording logging collaborator
- Settings cache cleanup for test isolation
"""

from __future__ import annotations

import os
import sys
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import pytest
import structlog

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from scopeflags.catalog import FlagCatalog
from scopeflags.gateway import InMemoryFlagGateway, SqlFlagGateway
from scopeflags.models import FlagCategory, FlagDefinition, FlagGroup, FlagValue
from scopeflags.service import FeatureFlagService
from scopeflags.settings import clear_settings_cache
from scopeflags.sqlite_conn import SqliteConnection

FIXED_NOW = datetime(2026, 1, 15, 9, 30, tzinfo=UTC)


# =============================================================================
# Catalog
# =============================================================================


BETA_SEARCH = FlagDefinition(
    key="beta_search",
    name="Beta Search",
    description="Cross-module search",
    category=FlagCategory.EXPERIMENTAL,
    default_value=FlagValue(enabled=False, visible=False),
)
JOURNEY = FlagDefinition(
    key="journey",
    name="Journey",
    description="Journey steps",
    category=FlagCategory.NAVIGATION,
    default_value=FlagValue(enabled=True, visible=True),
)
AI_COFOUNDER = FlagDefinition(
    key="ai_cofounder",
    name="AI Co-founder",
    description="Dashboard AI panel",
    category=FlagCategory.AI,
    default_value=FlagValue(enabled=True, visible=False),
)


@pytest.fixture
def catalog() -> FlagCatalog:
    return FlagCatalog(
        [BETA_SEARCH, JOURNEY, AI_COFOUNDER],
        groups=[
            FlagGroup("Navigation", FlagCategory.NAVIGATION, "Sidebar", (JOURNEY,)),
            FlagGroup("Other", FlagCategory.FEATURE, "Everything else", (BETA_SEARCH, AI_COFOUNDER)),
        ],
    )


# =============================================================================
# Logging collaborator
# =============================================================================


class RecordingLogger:
    """FlagLogger that keeps every call for assertions."""

    def __init__(self) -> None:
        self.records: list[tuple[str, Any, dict[str, Any]]] = []

    def log_info(self, message: str, **meta: Any) -> None:
        self.records.append(("info", message, meta))

    def log_warn(self, message: str, **meta: Any) -> None:
        self.records.append(("warn", message, meta))

    def log_error(self, error: BaseException | str, **meta: Any) -> None:
        self.records.append(("error", error, meta))

    def events(self, level: str | None = None) -> list[str]:
        """Event names, using ``meta['event']`` for exception records."""
        names = []
        for lvl, message, meta in self.records:
            if level is not None and lvl != level:
                continue
            names.append(meta.get("event", message) if not isinstance(message, str) else message)
        return names


@pytest.fixture
def recording_logger() -> RecordingLogger:
    return RecordingLogger()


# =============================================================================
# Gateways and service
# =============================================================================


@pytest.fixture
def gateway() -> InMemoryFlagGateway:
    return InMemoryFlagGateway()


@pytest.fixture
def sqlite_conn():
    conn = SqliteConnection(":memory:")
    yield conn
    conn.close()


@pytest.fixture
def sql_gateway(sqlite_conn) -> SqlFlagGateway:
    gw = SqlFlagGateway(sqlite_conn)
    gw.create_tables()
    return gw


@pytest.fixture
def service(gateway, catalog, recording_logger) -> FeatureFlagService:
    return FeatureFlagService(
        gateway,
        catalog,
        logger=recording_logger,
        clock=lambda: FIXED_NOW,
    )


@pytest.fixture(autouse=True)
def clean_settings(monkeypatch):
    """Isolate settings from the developer's environment."""
    for var in [v for v in os.environ if v.startswith("SCOPEFLAGS_")]:
        monkeypatch.delenv(var, raising=False)
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture(autouse=True)
def reset_structlog():
    """Drop logging config left behind by CLI runs and configure_logging tests."""
    structlog.reset_defaults()
    yield
    structlog.reset_defaults()
