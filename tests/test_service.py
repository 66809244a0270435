"""Tests for FeatureFlagService resolution, precedence and write ordering."""

from __future__ import annotations

import threading
import time
from datetime import UTC, datetime
from unittest.mock import MagicMock

import pytest

from scopeflags.errors import FlagReadError, FlagWriteError
from scopeflags.gateway import InMemoryFlagGateway
from scopeflags.models import ResolvedFlag, ScopeOverrideRecord, ScopeType
from scopeflags.service import FeatureFlagService

NOW = datetime(2026, 1, 15, 9, 30, tzinfo=UTC)


def _scope(scope_id: str, scope_type: ScopeType, flags: dict) -> ScopeOverrideRecord:
    return ScopeOverrideRecord(scope_id=scope_id, scope_type=scope_type, flags=flags)


class TestLoadFeatureFlags:
    """Global snapshot loading."""

    def test_defaults_when_nothing_persisted(self, service, catalog):
        """Every catalog key resolves to its default, not overridden."""
        store = service.load_feature_flags()

        assert set(store) == set(catalog.keys())
        for definition in catalog.get_all_definitions():
            flag = service.get_feature_flag(definition.key)
            assert flag.value == definition.default_value
            assert flag.override is False

    def test_load_is_idempotent(self, catalog):
        """Second load does not hit the gateway and returns the same snapshot."""
        gateway = MagicMock(wraps=InMemoryFlagGateway())
        service = FeatureFlagService(gateway, catalog)

        first = service.load_feature_flags()
        second = service.load_feature_flags()

        gateway.load_global.assert_called_once_with("feature_flags")
        assert first == second
        assert service.initialized

    def test_persisted_snapshot_merged_over_defaults(self, gateway, service):
        gateway.save_global("feature_flags", {"beta_search": {"enabled": True}}, NOW)

        service.load_feature_flags()

        assert service.get_feature_flag("beta_search") == ResolvedFlag(enabled=True, visible=False)
        # keys missing from the snapshot keep their defaults
        assert service.get_feature_flag("journey") == ResolvedFlag(enabled=True, visible=True)

    def test_custom_settings_key(self, gateway, catalog):
        gateway.save_global("flags_v2", {"journey": {"visible": False}}, NOW)
        service = FeatureFlagService(gateway, catalog, settings_key="flags_v2")

        service.load_feature_flags()

        assert not service.is_visible("journey")

    def test_read_failure_falls_back_to_defaults(self, catalog, recording_logger):
        gateway = MagicMock()
        gateway.load_global.side_effect = FlagReadError("connection refused")
        service = FeatureFlagService(gateway, catalog, logger=recording_logger)

        store = service.load_feature_flags()

        assert store == catalog.defaults()
        assert service.initialized
        assert "feature_flags_load_failed" in recording_logger.events("warn")

        service.load_feature_flags()
        gateway.load_global.assert_called_once()

    def test_decode_failure_falls_back_to_defaults(self, gateway, service, catalog, recording_logger):
        gateway.put_raw_global("feature_flags", "{not json")

        store = service.load_feature_flags()

        assert store == catalog.defaults()
        assert service.initialized
        assert "feature_flags_decode_failed" in recording_logger.events("error")

    def test_undecodable_stored_bytes_fall_back_to_defaults(self, sql_gateway, sqlite_conn, catalog, recording_logger):
        sqlite_conn.execute(
            "INSERT INTO app_settings VALUES (?, ?, ?)", ("feature_flags", b"\xff\xfe{", NOW.isoformat())
        )
        service = FeatureFlagService(sql_gateway, catalog, logger=recording_logger)

        assert service.load_feature_flags() == catalog.defaults()
        assert service.initialized
        assert "feature_flags_decode_failed" in recording_logger.events("error")

    def test_unknown_persisted_key_is_admitted_with_warning(self, gateway, service, recording_logger):
        gateway.save_global("feature_flags", {"ghost_flag": {"enabled": True}}, NOW)

        service.load_feature_flags()

        assert service.get_feature_flag("ghost_flag") == ResolvedFlag(enabled=True, visible=False)
        assert "flag_unknown_key_admitted" in recording_logger.events("warn")

    def test_empty_snapshot_uses_defaults(self, gateway, service, catalog, recording_logger):
        gateway.save_global("feature_flags", {}, NOW)

        assert service.load_feature_flags() == catalog.defaults()
        assert "feature_flags_defaults_used" in recording_logger.events("info")


class TestConsumerReads:
    """Read accessors."""

    def test_unknown_keys_read_false(self, service):
        assert service.is_enabled("nope") is False
        assert service.is_visible("nope") is False
        assert service.get_feature_flag("nope") is None

    def test_is_enabled_and_visible(self, service):
        assert service.is_enabled("ai_cofounder")
        assert not service.is_visible("ai_cofounder")

    def test_get_feature_flags_returns_copy(self, service):
        store = service.get_feature_flags()
        store["journey"] = ResolvedFlag()

        assert service.is_enabled("journey")

    def test_definitions_come_from_catalog(self, service, catalog):
        assert service.get_all_definitions() == catalog.get_all_definitions()
        assert [g.name for g in service.get_grouped_definitions()] == ["Navigation", "Other"]


class TestLocalWrites:
    """set_feature_flag and save_feature_flags."""

    def test_set_feature_flag_is_local_only(self, catalog):
        gateway = MagicMock(wraps=InMemoryFlagGateway())
        service = FeatureFlagService(gateway, catalog)

        service.set_feature_flag("beta_search", {"enabled": True})

        assert service.is_enabled("beta_search")
        gateway.save_global.assert_not_called()

    def test_set_unknown_flag_starts_from_off(self, service):
        service.set_feature_flag("new_flag", {"visible": True})

        assert service.get_feature_flag("new_flag") == ResolvedFlag(enabled=False, visible=True)

    def test_save_merges_partially(self, service):
        """Saving enabled leaves visible untouched."""
        service.save_feature_flags({"beta_search": {"visible": True}})
        service.save_feature_flags({"beta_search": {"enabled": True}})

        flag = service.get_feature_flag("beta_search")
        assert flag.enabled is True
        assert flag.visible is True

    def test_save_persists_full_snapshot(self, gateway, service, catalog):
        service.save_feature_flags({"beta_search": {"enabled": True}})

        persisted = gateway.load_global("feature_flags")
        assert set(persisted) == set(catalog.keys())
        assert persisted["beta_search"] == {"enabled": True, "visible": False}
        assert "override" not in persisted["journey"]

    def test_update_feature_flag_saves_one_key(self, gateway, service):
        service.update_feature_flag("journey", {"visible": False})

        assert not service.is_visible("journey")
        assert gateway.load_global("feature_flags")["journey"] == {"enabled": True, "visible": False}

    def test_save_failure_leaves_store_untouched(self, catalog, recording_logger):
        gateway = MagicMock()
        gateway.save_global.side_effect = FlagWriteError("disk full")
        service = FeatureFlagService(gateway, catalog, logger=recording_logger)

        with pytest.raises(FlagWriteError, match="disk full"):
            service.save_feature_flags({"beta_search": {"enabled": True}})

        assert not service.is_enabled("beta_search")
        assert "feature_flags_save_failed" in recording_logger.events("error")


class TestResetToDefaults:
    def test_reset_replaces_store_and_persists(self, gateway, service, catalog):
        service.save_feature_flags({"journey": {"enabled": False}})
        service.save_user_override("u1", {"beta_search": {"enabled": True}})

        service.reset_to_defaults()

        assert service.get_feature_flags() == catalog.defaults()
        assert gateway.load_global("feature_flags")["journey"] == {"enabled": True, "visible": True}
        assert service.active_scope is None

    def test_reset_failure_leaves_store_untouched(self, catalog):
        gateway = MagicMock()
        gateway.load_global.return_value = None
        service = FeatureFlagService(gateway, catalog)
        service.set_feature_flag("journey", {"enabled": False})
        gateway.save_global.side_effect = FlagWriteError("read-only database")

        with pytest.raises(FlagWriteError):
            service.reset_to_defaults()

        assert not service.is_enabled("journey")


class TestUserOverrides:
    def test_empty_user_id_is_noop(self, catalog):
        gateway = MagicMock()
        service = FeatureFlagService(gateway, catalog)

        service.load_user_overrides("")
        service.save_user_override("", {"journey": {"enabled": False}})

        gateway.load_scope.assert_not_called()
        gateway.save_scope.assert_not_called()
        assert service.user_override_id is None

    def test_load_applies_and_marks_override(self, gateway, service):
        gateway.save_scope(_scope("u1", ScopeType.USER, {"journey": {"visible": False}}))

        service.load_feature_flags()
        service.load_user_overrides("u1")

        assert service.get_feature_flag("journey") == ResolvedFlag(enabled=True, visible=False, override=True)
        assert service.user_override_id == "u1"
        assert service.active_scope == (ScopeType.USER, "u1")

    def test_override_marked_even_when_value_matches_default(self, service):
        service.save_user_override("u1", {"journey": {"enabled": True}})

        assert service.get_feature_flag("journey").override is True

    def test_missing_record_does_not_activate_scope(self, service):
        service.load_user_overrides("nobody")

        assert service.user_override_id is None

    def test_read_failure_is_logged_not_raised(self, catalog, recording_logger):
        gateway = MagicMock()
        gateway.load_scope.side_effect = FlagReadError("timeout")
        service = FeatureFlagService(gateway, catalog, logger=recording_logger)

        service.load_user_overrides("u1")

        assert service.user_override_id is None
        assert service.get_feature_flags() == catalog.defaults()
        assert "user_overrides_load_failed" in recording_logger.events("warn")

    def test_invalid_stored_timestamp_is_logged_not_raised(self, sql_gateway, sqlite_conn, catalog, recording_logger):
        sqlite_conn.execute(
            "INSERT INTO feature_flag_overrides VALUES (?, ?, ?, ?)",
            ("u1", "user", '{"beta_search":{"enabled":true}}', "yesterday"),
        )
        service = FeatureFlagService(sql_gateway, catalog, logger=recording_logger)

        service.load_feature_flags()
        service.load_user_overrides("u1")

        assert service.user_override_id is None
        assert service.get_feature_flags() == catalog.defaults()
        assert "user_overrides_decode_failed" in recording_logger.events("error")

    def test_save_persists_whole_record(self, gateway, service):
        service.save_user_override("u1", {"journey": {"enabled": False}, "beta_search": {"enabled": True}})
        service.save_user_override("u1", {"beta_search": {"visible": True}})

        record = gateway.load_scope("u1", ScopeType.USER)
        assert record.flags == {"beta_search": {"visible": True}}

    def test_save_strips_override_field_from_record(self, gateway, service):
        service.save_user_override("u1", {"journey": {"enabled": False, "override": False}})

        assert gateway.load_scope("u1", ScopeType.USER).flags == {"journey": {"enabled": False}}
        assert service.get_feature_flag("journey").override is True

    def test_save_failure_leaves_store_untouched(self, catalog):
        gateway = MagicMock()
        gateway.save_scope.side_effect = FlagWriteError("constraint failed")
        service = FeatureFlagService(gateway, catalog)

        with pytest.raises(FlagWriteError):
            service.save_user_override("u1", {"journey": {"enabled": False}})

        assert service.is_enabled("journey")
        assert service.user_override_id is None


class TestCompanyOverrides:
    def test_load_applies_when_no_user_scope(self, gateway, service):
        gateway.save_scope(_scope("acme", ScopeType.COMPANY, {"beta_search": {"enabled": True}}))

        service.load_company_overrides("acme")

        assert service.get_feature_flag("beta_search") == ResolvedFlag(enabled=True, visible=False, override=True)
        assert service.company_override_id == "acme"

    def test_load_skipped_while_user_scope_active(self, catalog):
        gateway = MagicMock(wraps=InMemoryFlagGateway())
        service = FeatureFlagService(gateway, catalog)
        service.save_user_override("u1", {"journey": {"enabled": False}})

        service.load_company_overrides("acme")

        gateway.load_scope.assert_not_called()
        assert service.company_override_id is None

    def test_save_while_user_scope_active_persists_without_applying(self, gateway, service):
        service.save_user_override("u1", {"journey": {"enabled": False}})

        applied = service.save_company_override("acme", {"beta_search": {"enabled": True}})

        assert applied is False
        assert not service.is_enabled("beta_search")
        assert gateway.load_scope("acme", ScopeType.COMPANY).flags == {"beta_search": {"enabled": True}}
        assert service.company_override_id is None

        service.clear_overrides()
        service.load_company_overrides("acme")
        assert service.is_enabled("beta_search")

    def test_empty_company_id_is_noop(self, catalog):
        gateway = MagicMock()
        service = FeatureFlagService(gateway, catalog)

        assert service.save_company_override("", {"journey": {"enabled": False}}) is False
        service.load_company_overrides("")

        gateway.save_scope.assert_not_called()
        gateway.load_scope.assert_not_called()


class TestUserDominance:
    def test_user_layer_over_company_layer(self, gateway, service):
        service.save_company_override("acme", {"beta_search": {"visible": True}})
        gateway.save_scope(_scope("u1", ScopeType.USER, {"beta_search": {"enabled": False}}))

        service.load_user_overrides("u1")

        assert service.get_feature_flag("beta_search") == ResolvedFlag(enabled=False, visible=True, override=True)

    def test_company_load_after_user_does_not_change_flags(self, gateway, service):
        service.save_company_override("acme", {"beta_search": {"visible": True}})
        gateway.save_scope(_scope("u1", ScopeType.USER, {"beta_search": {"enabled": False}}))
        gateway.save_scope(_scope("other", ScopeType.COMPANY, {"beta_search": {"visible": False, "enabled": True}}))
        service.load_user_overrides("u1")
        before = service.get_feature_flag("beta_search")

        service.load_company_overrides("other")

        assert service.get_feature_flag("beta_search") == before
        assert service.company_override_id == "acme"


class TestClearOverrides:
    def test_clear_resets_to_catalog_default_not_previous_value(self, service):
        service.save_feature_flags({"beta_search": {"enabled": True}})
        service.save_user_override("u1", {"beta_search": {"visible": True}})

        service.clear_overrides()

        assert service.get_feature_flag("beta_search") == ResolvedFlag(enabled=False, visible=False, override=False)
        assert service.user_override_id is None
        assert service.company_override_id is None

    def test_clear_leaves_untouched_keys_alone(self, service):
        service.save_feature_flags({"journey": {"visible": False}})
        service.save_user_override("u1", {"beta_search": {"enabled": True}})

        service.clear_overrides()

        assert not service.is_visible("journey")

    def test_clear_without_active_scope_is_noop(self, service):
        service.set_feature_flag("beta_search", {"enabled": True, "override": True})

        service.clear_overrides()

        assert service.get_feature_flag("beta_search") == ResolvedFlag(enabled=True, visible=False, override=True)

    def test_clear_unknown_key_drops_marker_only(self, service):
        service.save_user_override("u1", {"ghost_flag": {"enabled": True}})

        service.clear_overrides()

        assert service.get_feature_flag("ghost_flag") == ResolvedFlag(enabled=True, visible=False, override=False)

    def test_clear_keeps_persisted_records(self, gateway, service):
        service.save_user_override("u1", {"journey": {"enabled": False}})

        service.clear_overrides()

        assert gateway.load_scope("u1", ScopeType.USER) is not None


class TestRoundTrip:
    def test_user_override_survives_new_process(self, gateway, catalog):
        first = FeatureFlagService(gateway, catalog)
        first.load_feature_flags()
        first.save_user_override("u1", {"journey": {"visible": False}})

        second = FeatureFlagService(gateway, catalog)
        second.load_feature_flags()
        second.load_user_overrides("u1")

        flag = second.get_feature_flag("journey")
        assert flag.visible is False
        assert flag.override is True

    def test_global_save_survives_new_process(self, gateway, catalog):
        FeatureFlagService(gateway, catalog).save_feature_flags({"beta_search": {"enabled": True}})

        second = FeatureFlagService(gateway, catalog)
        second.load_feature_flags()

        assert second.get_feature_flag("beta_search") == ResolvedFlag(enabled=True, visible=False)


class TestBetaSearchScenario:
    """End-to-end walk through the five resolution steps."""

    def test_scenario(self, gateway, service):
        service.load_feature_flags()
        assert service.get_feature_flag("beta_search") == ResolvedFlag(enabled=False, visible=False)

        service.save_feature_flags({"beta_search": {"enabled": True}})
        assert service.get_feature_flag("beta_search") == ResolvedFlag(enabled=True, visible=False)

        service.save_company_override("companyA", {"beta_search": {"visible": True}})
        assert service.get_feature_flag("beta_search") == ResolvedFlag(enabled=True, visible=True, override=True)

        gateway.save_scope(_scope("user1", ScopeType.USER, {"beta_search": {"enabled": False}}))
        service.load_user_overrides("user1")
        assert service.get_feature_flag("beta_search") == ResolvedFlag(enabled=False, visible=True, override=True)

        service.clear_overrides()
        assert service.get_feature_flag("beta_search") == ResolvedFlag(enabled=False, visible=False, override=False)


class _SlowGateway(InMemoryFlagGateway):
    def __init__(self) -> None:
        super().__init__()
        self.global_reads = 0
        self._count_lock = threading.Lock()

    def load_global(self, key):
        with self._count_lock:
            self.global_reads += 1
        time.sleep(0.05)
        return super().load_global(key)


class TestConcurrency:
    def test_concurrent_first_loads_share_one_read(self, catalog):
        gateway = _SlowGateway()
        gateway.save_global("feature_flags", {"beta_search": {"enabled": True}}, NOW)
        service = FeatureFlagService(gateway, catalog)
        results = []

        def load():
            results.append(service.load_feature_flags())

        threads = [threading.Thread(target=load) for _ in range(10)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert gateway.global_reads == 1
        assert len(results) == 10
        assert all(r["beta_search"].enabled for r in results)

    def test_concurrent_saves_do_not_lose_updates(self, gateway, catalog):
        service = FeatureFlagService(gateway, catalog)
        errors = []

        def save(i):
            try:
                service.save_feature_flags({f"flag_{i}": {"enabled": True}})
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=save, args=(i,)) for i in range(20)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        persisted = gateway.load_global("feature_flags")
        for i in range(20):
            assert service.is_enabled(f"flag_{i}")
            assert persisted[f"flag_{i}"]["enabled"] is True
