"""
scopeflags - feature flags resolved through global, company and user scopes.

Quick start::

    from scopeflags import create_service

    flags = create_service()
    flags.load_feature_flags()
    flags.load_user_overrides(user_id)
    if flags.is_enabled("journey") and flags.is_visible("journey"):
        ...

Modules::

    catalog.py      FlagCatalog + DEFAULT_CATALOG (definitions, groups, defaults)
    models.py       FlagValue, ResolvedFlag, FlagDefinition, ScopeOverrideRecord
    merge.py        merge_flags / merge_with_defaults / apply_override
    service.py      FeatureFlagService (resolver + consumer API)
    gateway.py      FlagGateway protocol, InMemoryFlagGateway, SqlFlagGateway
    codec.py        canonical JSON encoding of stored flags
    errors.py       FlagError hierarchy
    logging.py      structlog setup + FlagLogger collaborator
    settings.py     FlagSettings (pydantic-settings, SCOPEFLAGS_*)
    factory.py      create_gateway / create_service / configure_logging_from_settings
"""

__version__ = "0.1.0"

from scopeflags.catalog import DEFAULT_CATALOG, FlagCatalog
from scopeflags.errors import (
    FlagDecodeError,
    FlagError,
    FlagReadError,
    FlagWriteError,
    PersistenceError,
    UnknownFlagError,
)
from scopeflags.factory import configure_logging_from_settings, create_gateway, create_service
from scopeflags.gateway import FlagGateway, InMemoryFlagGateway, SqlFlagGateway
from scopeflags.logging import (
    FlagLogger,
    NullFlagLogger,
    StructlogFlagLogger,
    configure_logging,
    get_logger,
)
from scopeflags.models import (
    FlagCategory,
    FlagDefinition,
    FlagGroup,
    FlagStore,
    FlagValue,
    ResolvedFlag,
    ScopeOverrideRecord,
    ScopeType,
)
from scopeflags.service import FeatureFlagService
from scopeflags.settings import FlagSettings, get_settings

__all__ = [
    "DEFAULT_CATALOG",
    "FeatureFlagService",
    "FlagCatalog",
    "FlagCategory",
    "FlagDecodeError",
    "FlagDefinition",
    "FlagError",
    "FlagGateway",
    "FlagGroup",
    "FlagLogger",
    "FlagReadError",
    "FlagSettings",
    "FlagStore",
    "FlagValue",
    "FlagWriteError",
    "InMemoryFlagGateway",
    "NullFlagLogger",
    "PersistenceError",
    "ResolvedFlag",
    "ScopeOverrideRecord",
    "ScopeType",
    "SqlFlagGateway",
    "StructlogFlagLogger",
    "UnknownFlagError",
    "configure_logging",
    "configure_logging_from_settings",
    "create_gateway",
    "create_service",
    "get_logger",
    "get_settings",
]
