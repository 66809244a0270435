"""
Factory functions that build the flag service from settings.

The process entry point calls :func:`create_service` once and passes the
returned :class:`~scopeflags.service.FeatureFlagService` to everything that
needs flags.

Features:
    - ``create_gateway()``: InMemory / SQLite gateway from settings
    - ``create_service()``: gateway + catalog + structlog collaborator
    - ``configure_logging_from_settings()``: structlog setup from settings

Tags:
    configuration, factory-pattern, composition-root

Doc-Types:
    api-reference
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from scopeflags.catalog import DEFAULT_CATALOG, FlagCatalog
from scopeflags.gateway import FlagGateway, InMemoryFlagGateway, SqlFlagGateway
from scopeflags.logging import FlagLogger, StructlogFlagLogger, configure_logging
from scopeflags.service import FeatureFlagService
from scopeflags.settings import DatabaseBackend, get_settings
from scopeflags.sqlite_conn import SqliteConnection

if TYPE_CHECKING:
    from scopeflags.settings import FlagSettings


def create_gateway(settings: FlagSettings) -> FlagGateway:
    """Create the persistence gateway selected by ``settings.database_backend``."""
    if settings.database_backend == DatabaseBackend.MEMORY:
        return InMemoryFlagGateway()

    gateway = SqlFlagGateway(
        SqliteConnection(settings.database_url),
        settings_table=settings.settings_table,
        overrides_table=settings.overrides_table,
    )
    if settings.create_tables:
        gateway.create_tables()
    return gateway


def create_service(
    settings: FlagSettings | None = None,
    *,
    gateway: FlagGateway | None = None,
    catalog: FlagCatalog = DEFAULT_CATALOG,
    logger: FlagLogger | None = None,
) -> FeatureFlagService:
    """Create a :class:`FeatureFlagService` wired from *settings*.

    Explicit ``gateway`` / ``logger`` arguments win over the settings.
    """
    settings = settings or get_settings()
    return FeatureFlagService(
        gateway if gateway is not None else create_gateway(settings),
        catalog,
        logger=logger if logger is not None else StructlogFlagLogger(service=settings.service_name),
        settings_key=settings.settings_key,
    )


def configure_logging_from_settings(settings: FlagSettings | None = None) -> None:
    """Apply ``log_level`` / ``log_format`` / ``service_name`` to structlog."""
    settings = settings or get_settings()
    configure_logging(
        level=settings.log_level,
        json_format=settings.log_format.lower() == "json",
        service=settings.service_name,
    )


__all__ = ["configure_logging_from_settings", "create_gateway", "create_service"]
