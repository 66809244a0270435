"""
Persistence gateway for feature flags.

The gateway is the only I/O the flag service performs. It stores two kinds
of records:

- the **global snapshot**: the full resolved store under a fixed settings
  key (``"feature_flags"`` by default), and
- **scope override records**: partial stores keyed by
  ``(scope_id, scope_type)``, written with insert-or-replace semantics.

Both are held as JSON text in the canonical :mod:`scopeflags.codec`
encoding; gateways encode on write and decode on read, so callers only
ever see Python mappings.

Architecture:
    ::

        FeatureFlagService
              │
              ▼
        FlagGateway (protocol)
        ├── InMemoryFlagGateway   dicts of JSON text, for tests and demos
        └── SqlFlagGateway        BaseRepository over any Connection
                                  (app_settings, feature_flag_overrides)

Failure contract:
    - Reads raise :class:`~scopeflags.errors.FlagReadError` on driver errors
      and :class:`~scopeflags.errors.FlagDecodeError` on malformed values.
    - Writes raise :class:`~scopeflags.errors.FlagWriteError`.
    - A missing row is ``None``, not an error.

Tags:
    persistence, gateway, repository, sqlite, feature-flags
"""

from __future__ import annotations

import threading
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any, Protocol, runtime_checkable

from scopeflags.codec import decode_flags, encode_flags
from scopeflags.dialect import Dialect
from scopeflags.errors import ErrorContext, FlagDecodeError, FlagReadError, FlagWriteError
from scopeflags.models import PartialFlag, PartialFlags, ScopeOverrideRecord, ScopeType
from scopeflags.protocols import Connection
from scopeflags.repository import BaseRepository
from scopeflags.schema import FLAG_TABLES, create_flag_tables


@runtime_checkable
class FlagGateway(Protocol):
    """Load/save contract used by :class:`~scopeflags.service.FeatureFlagService`."""

    def load_global(self, key: str) -> PartialFlags | None:
        """Read the global snapshot, or ``None`` when nothing is stored."""
        ...

    def save_global(self, key: str, flags: Mapping[str, PartialFlag], updated_at: datetime) -> None:
        """Upsert the global snapshot."""
        ...

    def load_scope(self, scope_id: str, scope_type: ScopeType) -> ScopeOverrideRecord | None:
        """Read one scope override record, or ``None`` when absent."""
        ...

    def save_scope(self, record: ScopeOverrideRecord) -> None:
        """Insert or replace a scope override record."""
        ...


class InMemoryFlagGateway:
    """Thread-safe in-process gateway.

    Values go through the codec exactly as the SQL gateway's do, so a
    snapshot saved here decodes the same way a stored row would.
    """

    def __init__(self) -> None:
        self._settings: dict[str, tuple[str, datetime]] = {}
        self._scopes: dict[tuple[str, ScopeType], tuple[str, datetime]] = {}
        self._lock = threading.Lock()

    def load_global(self, key: str) -> PartialFlags | None:
        with self._lock:
            stored = self._settings.get(key)
        return decode_flags(stored[0]) if stored else None

    def save_global(self, key: str, flags: Mapping[str, PartialFlag], updated_at: datetime) -> None:
        payload = encode_flags(flags)
        with self._lock:
            self._settings[key] = (payload, updated_at)

    def load_scope(self, scope_id: str, scope_type: ScopeType) -> ScopeOverrideRecord | None:
        with self._lock:
            stored = self._scopes.get((scope_id, ScopeType(scope_type)))
        if stored is None:
            return None
        payload, updated_at = stored
        return ScopeOverrideRecord(
            scope_id=scope_id,
            scope_type=ScopeType(scope_type),
            flags=decode_flags(payload),
            updated_at=updated_at,
        )

    def save_scope(self, record: ScopeOverrideRecord) -> None:
        payload = encode_flags(record.flags)
        with self._lock:
            self._scopes[(record.scope_id, ScopeType(record.scope_type))] = (payload, record.updated_at)

    def put_raw_global(self, key: str, payload: str) -> None:
        """Store already-encoded text (tests use this for malformed values)."""
        with self._lock:
            self._settings[key] = (payload, datetime.now(UTC))


class SqlFlagGateway(BaseRepository):
    """Gateway over the ``app_settings`` / ``feature_flag_overrides`` tables.

    Parameters:
        conn: Any object satisfying the :class:`Connection` protocol.
        dialect: SQL dialect.  Defaults to SQLite.
        settings_table: Name of the settings table.
        overrides_table: Name of the scope override table.
    """

    def __init__(
        self,
        conn: Connection,
        dialect: Dialect | None = None,
        *,
        settings_table: str = FLAG_TABLES["settings"],
        overrides_table: str = FLAG_TABLES["overrides"],
    ) -> None:
        super().__init__(conn, dialect)
        self.settings_table = settings_table
        self.overrides_table = overrides_table

    def create_tables(self) -> None:
        """Create both tables if they do not exist."""
        create_flag_tables(
            self.conn,
            settings_table=self.settings_table,
            overrides_table=self.overrides_table,
        )

    # -- Global snapshot ---------------------------------------------------

    def load_global(self, key: str) -> PartialFlags | None:
        try:
            row = self.query_one(
                f"SELECT value FROM {self.settings_table} WHERE key = {self.ph(1)}",
                (key,),
            )
        except Exception as e:  # noqa: BLE001 - driver errors vary by backend
            raise FlagReadError(
                f"Failed to read settings key {key!r}",
                context=ErrorContext(settings_key=key),
                cause=e,
            ) from e
        if row is None or not row.get("value"):
            return None
        return decode_flags(row["value"])

    def save_global(self, key: str, flags: Mapping[str, PartialFlag], updated_at: datetime) -> None:
        data = {
            "key": key,
            "value": encode_flags(flags),
            "updated_at": _iso(updated_at),
        }
        self._write(
            lambda: self.upsert(self.settings_table, data, ["key"]),
            f"Failed to save settings key {key!r}",
            ErrorContext(settings_key=key),
        )

    # -- Scope records -----------------------------------------------------

    def load_scope(self, scope_id: str, scope_type: ScopeType) -> ScopeOverrideRecord | None:
        scope_type = ScopeType(scope_type)
        try:
            row = self.query_one(
                f"SELECT id, type, flags, updated_at FROM {self.overrides_table} "
                f"WHERE id = {self.ph(1)} AND type = {self.ph(1)}",
                (scope_id, scope_type.value),
            )
        except Exception as e:  # noqa: BLE001 - driver errors vary by backend
            raise FlagReadError(
                f"Failed to read {scope_type.value} overrides",
                context=ErrorContext(scope_id=scope_id, scope_type=scope_type.value),
                cause=e,
            ) from e
        if row is None or not row.get("flags"):
            return None
        flags = decode_flags(row["flags"])
        try:
            updated_at = _parse_ts(row.get("updated_at"))
        except (TypeError, ValueError) as e:
            raise FlagDecodeError(
                f"Stored {scope_type.value} overrides have an invalid updated_at",
                context=ErrorContext(scope_id=scope_id, scope_type=scope_type.value),
                cause=e,
            ) from e
        return ScopeOverrideRecord(
            scope_id=row["id"],
            scope_type=scope_type,
            flags=flags,
            updated_at=updated_at,
        )

    def save_scope(self, record: ScopeOverrideRecord) -> None:
        scope_type = ScopeType(record.scope_type)
        data = {
            "id": record.scope_id,
            "type": scope_type.value,
            "flags": encode_flags(record.flags),
            "updated_at": _iso(record.updated_at),
        }
        self._write(
            lambda: self.upsert(self.overrides_table, data, ["id", "type"]),
            f"Failed to save {scope_type.value} overrides",
            ErrorContext(scope_id=record.scope_id, scope_type=scope_type.value),
        )

    # -- Internals ---------------------------------------------------------

    def _write(self, statement: Any, message: str, context: ErrorContext) -> None:
        try:
            statement()
            self.commit()
        except Exception as e:  # noqa: BLE001 - driver errors vary by backend
            self.rollback()
            raise FlagWriteError(message, context=context, cause=e) from e


def _iso(ts: datetime) -> str:
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=UTC)
    return ts.astimezone(UTC).isoformat()


def _parse_ts(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if not value:
        return datetime.now(UTC)
    return datetime.fromisoformat(str(value))


__all__ = ["FlagGateway", "InMemoryFlagGateway", "SqlFlagGateway"]
