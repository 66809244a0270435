"""
Feature flag resolution with global, company and user scopes.

:class:`FeatureFlagService` owns the single resolved flag store for a
process. It is built once by the entry point (see
:func:`scopeflags.factory.create_service`) and handed to every consumer;
there is no module-level instance.

Manifesto:
    Flag reads must never fail. Whatever happens to the backing store, a
    caller asking ``is_enabled("journey")`` gets a coherent answer, falling
    back to catalog defaults. Only explicit writes (save, reset) can raise.

    - **Catalog first:** Every load starts from catalog defaults
    - **One scope at a time:** A user scope suppresses company scopes
    - **Reset, not undo:** Clearing overrides returns to defaults
    - **Persist, then apply:** A failed write leaves memory untouched

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────────┐
        │                     Resolution Order                         │
        │  1. Catalog defaults          (FlagCatalog.defaults())       │
        │  2. Global snapshot           (gateway.load_global)          │
        │  3. ONE of:                                                  │
        │       user scope              (load/save_user_override)      │
        │       company scope           (skipped while a user scope    │
        │                                is active, loads AND writes)  │
        └─────────────────────────────────────────────────────────────┘

        Locks:
        ┌─────────────────────────────────────────────────────────────┐
        │ _init_lock  held across check-and-load in load_feature_flags │
        │             → concurrent first callers share one load        │
        │ _lock       held across every read-modify-write of the store │
        │             (including the gateway write it depends on)      │
        └─────────────────────────────────────────────────────────────┘

        The store dict is replaced, never mutated, so readers see a
        consistent snapshot without taking a lock.

Examples:
    >>> from scopeflags.gateway import InMemoryFlagGateway
    >>> service = FeatureFlagService(InMemoryFlagGateway())
    >>> service.load_feature_flags()["beta_search"]
    ResolvedFlag(enabled=False, visible=False, override=False)
    >>> service.save_feature_flags({"beta_search": {"enabled": True}})
    >>> service.save_company_override("acme", {"beta_search": {"visible": True}})
    True
    >>> service.get_feature_flag("beta_search")
    ResolvedFlag(enabled=True, visible=True, override=True)
    >>> service.clear_overrides()
    >>> service.get_feature_flag("beta_search")
    ResolvedFlag(enabled=False, visible=False, override=False)

Guardrails:
    ❌ DON'T: Cache ``get_feature_flags()`` results across requests
    ✅ DO: Ask the service each time; reads are O(1) dict lookups

    ❌ DON'T: Expect ``clear_overrides()`` to restore pre-override values
    ✅ DO: Treat it as "back to catalog defaults" for overridden keys

Tags:
    feature-flags, overrides, precedence, thread-safe, resolver
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable, Mapping
from dataclasses import replace
from datetime import UTC, datetime
from typing import Any

from scopeflags.catalog import DEFAULT_CATALOG, FlagCatalog
from scopeflags.errors import FlagDecodeError, FlagReadError, FlagWriteError
from scopeflags.gateway import FlagGateway
from scopeflags.logging import FlagLogger, NullFlagLogger
from scopeflags.merge import apply_override, merge_flags, merge_with_defaults
from scopeflags.models import (
    VALUE_FIELDS,
    FlagDefinition,
    FlagGroup,
    FlagStore,
    PartialFlags,
    ResolvedFlag,
    ScopeOverrideRecord,
    ScopeType,
    normalize_partial,
)

DEFAULT_SETTINGS_KEY = "feature_flags"


def _utcnow() -> datetime:
    return datetime.now(UTC)


class FeatureFlagService:
    """Resolved flag store plus the operations that read and change it.

    Args:
        gateway: Persistence for the global snapshot and scope records
        catalog: Flag definitions and defaults
        logger: Logging collaborator; defaults to a no-op logger
        settings_key: Key of the global snapshot in the settings table
        clock: Timestamp source for persisted records
    """

    def __init__(
        self,
        gateway: FlagGateway,
        catalog: FlagCatalog = DEFAULT_CATALOG,
        *,
        logger: FlagLogger | None = None,
        settings_key: str = DEFAULT_SETTINGS_KEY,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._gateway = gateway
        self._catalog = catalog
        self._logger: FlagLogger = logger or NullFlagLogger()
        self._settings_key = settings_key
        self._clock = clock

        self._flags: FlagStore = catalog.defaults()
        self._user_override_id: str | None = None
        self._company_override_id: str | None = None
        self._initialized = False

        self._lock = threading.RLock()
        self._init_lock = threading.Lock()

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def catalog(self) -> FlagCatalog:
        return self._catalog

    @property
    def initialized(self) -> bool:
        return self._initialized

    @property
    def user_override_id(self) -> str | None:
        return self._user_override_id

    @property
    def company_override_id(self) -> str | None:
        return self._company_override_id

    @property
    def active_scope(self) -> tuple[ScopeType, str] | None:
        """The scope currently applied to the store, user first."""
        with self._lock:
            if self._user_override_id:
                return ScopeType.USER, self._user_override_id
            if self._company_override_id:
                return ScopeType.COMPANY, self._company_override_id
            return None

    # ------------------------------------------------------------------
    # Global snapshot
    # ------------------------------------------------------------------

    def load_feature_flags(self) -> FlagStore:
        """Load the global snapshot over catalog defaults, once per service.

        Later calls return the current store without touching the gateway.
        Read and decode failures fall back to defaults and are logged;
        the service counts as initialized either way.
        """
        if self._initialized:
            return self.get_feature_flags()

        with self._init_lock:
            if self._initialized:
                return self.get_feature_flags()

            self._logger.log_info("feature_flags_loading", settings_key=self._settings_key)
            started = time.perf_counter()
            try:
                persisted = self._gateway.load_global(self._settings_key)
            except FlagReadError as e:
                self._logger.log_warn(
                    "feature_flags_load_failed",
                    settings_key=self._settings_key,
                    error=e.message,
                    fallback="defaults",
                )
            except FlagDecodeError as e:
                self._logger.log_error(
                    e,
                    event="feature_flags_decode_failed",
                    settings_key=self._settings_key,
                    fallback="defaults",
                )
            else:
                if persisted:
                    with self._lock:
                        self._flags = merge_with_defaults(
                            persisted, self._catalog, logger=self._logger
                        )
                    self._logger.log_info(
                        "feature_flags_loaded",
                        settings_key=self._settings_key,
                        flag_count=len(self._flags),
                    )
                else:
                    self._logger.log_info(
                        "feature_flags_defaults_used",
                        settings_key=self._settings_key,
                        reason="not_found",
                    )
            finally:
                self._initialized = True
                self._logger.log_info(
                    "feature_flags_load_completed",
                    duration_ms=round((time.perf_counter() - started) * 1000, 2),
                )

        return self.get_feature_flags()

    def save_feature_flags(self, flags: Mapping[str, Mapping[str, Any]]) -> None:
        """Merge *flags* into the store and persist the full snapshot.

        The snapshot is written first; the store only changes once the
        write succeeded.

        Raises:
            FlagWriteError: The snapshot could not be persisted.
        """
        partial = normalize_partial(flags)
        self._logger.log_info("feature_flags_saving", flag_count=len(partial))
        with self._lock:
            merged = merge_flags(self._flags, partial, catalog=self._catalog, logger=self._logger)
            self._persist_snapshot(merged, context="save_feature_flags")
            self._flags = merged
        self._logger.log_info("feature_flags_saved", flag_count=len(partial))

    def update_feature_flag(self, key: str, value: Mapping[str, Any]) -> None:
        """Persist a change to a single flag (admin toggle)."""
        self.save_feature_flags({key: value})

    def reset_to_defaults(self) -> None:
        """Replace the store with catalog defaults and persist them.

        Any active scope is dropped along with its overrides.

        Raises:
            FlagWriteError: The snapshot could not be persisted.
        """
        with self._lock:
            defaults = self._catalog.defaults()
            self._persist_snapshot(defaults, context="reset_to_defaults")
            self._flags = defaults
            self._user_override_id = None
            self._company_override_id = None
        self._logger.log_info("feature_flags_reset", flag_count=len(defaults))

    # ------------------------------------------------------------------
    # Scope overrides
    # ------------------------------------------------------------------

    def load_user_overrides(self, user_id: str) -> None:
        """Apply the stored overrides for *user_id*.

        No-op for an empty id. Read failures are logged, not raised.
        """
        if not user_id:
            return
        record = self._read_scope(user_id, ScopeType.USER)
        if record is None:
            return
        with self._lock:
            self._flags = apply_override(
                self._flags, record.flags, catalog=self._catalog, logger=self._logger
            )
            self._user_override_id = user_id
        self._logger.log_info(
            "user_overrides_applied", user_id=user_id, override_count=len(record.flags)
        )

    def load_company_overrides(self, company_id: str) -> None:
        """Apply the stored overrides for *company_id*.

        Skipped entirely while a user override is active. No-op for an
        empty id. Read failures are logged, not raised.
        """
        if not company_id:
            return
        if self._user_override_id:
            self._log_company_skipped(company_id)
            return
        record = self._read_scope(company_id, ScopeType.COMPANY)
        if record is None:
            return
        with self._lock:
            # a user scope may have landed while we were reading
            if self._user_override_id:
                self._log_company_skipped(company_id)
                return
            self._flags = apply_override(
                self._flags, record.flags, catalog=self._catalog, logger=self._logger
            )
            self._company_override_id = company_id
        self._logger.log_info(
            "company_overrides_applied", company_id=company_id, override_count=len(record.flags)
        )

    def save_user_override(self, user_id: str, flags: Mapping[str, Mapping[str, Any]]) -> None:
        """Persist *flags* as the overrides for *user_id* and apply them.

        Raises:
            FlagWriteError: The record could not be persisted.
        """
        if not user_id:
            return
        partial = normalize_partial(flags, VALUE_FIELDS)
        self._logger.log_info("user_overrides_saving", user_id=user_id, flag_count=len(partial))
        with self._lock:
            self._persist_scope(user_id, ScopeType.USER, partial)
            self._flags = apply_override(
                self._flags, partial, catalog=self._catalog, logger=self._logger
            )
            self._user_override_id = user_id
        self._logger.log_info("user_overrides_saved", user_id=user_id, flag_count=len(partial))

    def save_company_override(
        self, company_id: str, flags: Mapping[str, Mapping[str, Any]]
    ) -> bool:
        """Persist *flags* as the overrides for *company_id*.

        The overrides are applied to the store only when no user override
        is active.

        Returns:
            True when the overrides were applied to the store.

        Raises:
            FlagWriteError: The record could not be persisted.
        """
        if not company_id:
            return False
        partial = normalize_partial(flags, VALUE_FIELDS)
        self._logger.log_info(
            "company_overrides_saving", company_id=company_id, flag_count=len(partial)
        )
        with self._lock:
            self._persist_scope(company_id, ScopeType.COMPANY, partial)
            applied = not self._user_override_id
            if applied:
                self._flags = apply_override(
                    self._flags, partial, catalog=self._catalog, logger=self._logger
                )
                self._company_override_id = company_id
        self._logger.log_info(
            "company_overrides_saved",
            company_id=company_id,
            flag_count=len(partial),
            applied=applied,
        )
        return applied

    def clear_overrides(self) -> None:
        """Return every overridden flag to its catalog default.

        Flags the catalog does not define keep their value and only lose
        the ``override`` marker. Persisted scope records are left alone.
        """
        with self._lock:
            if not self._user_override_id and not self._company_override_id:
                return
            cleared: FlagStore = {}
            reset_count = 0
            for key, flag in self._flags.items():
                if not flag.override:
                    cleared[key] = flag
                    continue
                reset_count += 1
                definition = self._catalog.get_definition(key)
                if definition is not None:
                    cleared[key] = ResolvedFlag.from_value(definition.default_value)
                else:
                    cleared[key] = replace(flag, override=False)
            self._flags = cleared
            self._user_override_id = None
            self._company_override_id = None
        self._logger.log_info("feature_flag_overrides_cleared", reset_count=reset_count)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_feature_flags(self) -> FlagStore:
        """Copy of the resolved store."""
        return dict(self._flags)

    def get_feature_flag(self, key: str) -> ResolvedFlag | None:
        return self._flags.get(key)

    def is_enabled(self, key: str) -> bool:
        flag = self._flags.get(key)
        return flag.enabled if flag is not None else False

    def is_visible(self, key: str) -> bool:
        flag = self._flags.get(key)
        return flag.visible if flag is not None else False

    def set_feature_flag(self, key: str, value: Mapping[str, Any]) -> None:
        """Change one flag in memory only (optimistic UI state).

        An unknown key starts from ``enabled=False, visible=False``.
        """
        partial = normalize_partial({key: value})
        with self._lock:
            self._flags = merge_flags(
                self._flags, partial, catalog=self._catalog, logger=self._logger
            )

    def get_all_definitions(self) -> list[FlagDefinition]:
        return self._catalog.get_all_definitions()

    def get_grouped_definitions(self) -> list[FlagGroup]:
        return self._catalog.get_grouped_definitions()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _persist_snapshot(self, store: FlagStore, *, context: str) -> None:
        snapshot = {key: flag.value.to_dict() for key, flag in store.items()}
        try:
            self._gateway.save_global(self._settings_key, snapshot, self._clock())
        except FlagWriteError as e:
            self._logger.log_error(
                e,
                event="feature_flags_save_failed",
                context=context,
                settings_key=self._settings_key,
            )
            raise

    def _persist_scope(self, scope_id: str, scope_type: ScopeType, partial: PartialFlags) -> None:
        record = ScopeOverrideRecord(
            scope_id=scope_id,
            scope_type=scope_type,
            flags=partial,
            updated_at=self._clock(),
        )
        try:
            self._gateway.save_scope(record)
        except FlagWriteError as e:
            self._logger.log_error(
                e,
                event=f"{scope_type.value}_overrides_save_failed",
                scope_id=scope_id,
            )
            raise

    def _read_scope(self, scope_id: str, scope_type: ScopeType) -> ScopeOverrideRecord | None:
        self._logger.log_info(
            f"{scope_type.value}_overrides_loading", scope_id=scope_id
        )
        try:
            record = self._gateway.load_scope(scope_id, scope_type)
        except FlagReadError as e:
            self._logger.log_warn(
                f"{scope_type.value}_overrides_load_failed", scope_id=scope_id, error=e.message
            )
            return None
        except FlagDecodeError as e:
            self._logger.log_error(
                e, event=f"{scope_type.value}_overrides_decode_failed", scope_id=scope_id
            )
            return None
        if record is None or not record.flags:
            self._logger.log_info(f"{scope_type.value}_overrides_not_found", scope_id=scope_id)
            return None
        return record

    def _log_company_skipped(self, company_id: str) -> None:
        self._logger.log_info(
            "company_overrides_skipped",
            company_id=company_id,
            reason="user_override_active",
            user_id=self._user_override_id,
        )


__all__ = ["DEFAULT_SETTINGS_KEY", "FeatureFlagService"]
