"""
Tables backing the flag gateway.

    app_settings             one row per settings key; the global flag
                             snapshot lives under "feature_flags"
    feature_flag_overrides   one row per (id, type); type is user|company

Values are JSON text in the encoding defined by :mod:`scopeflags.codec`.
Timestamps are ISO-8601 UTC strings.

Tags:
    schema, ddl, feature-flags
"""

from __future__ import annotations

from scopeflags.protocols import Connection

# =============================================================================
# TABLE NAMES
# =============================================================================

FLAG_TABLES = {
    "settings": "app_settings",
    "overrides": "feature_flag_overrides",
}


def settings_ddl(table: str = FLAG_TABLES["settings"]) -> str:
    return f"""
        CREATE TABLE IF NOT EXISTS {table} (
            key         TEXT PRIMARY KEY,
            value       TEXT NOT NULL,
            updated_at  TEXT NOT NULL
        )
    """


def overrides_ddl(table: str = FLAG_TABLES["overrides"]) -> str:
    return f"""
        CREATE TABLE IF NOT EXISTS {table} (
            id          TEXT NOT NULL,
            type        TEXT NOT NULL CHECK (type IN ('user', 'company')),
            flags       TEXT NOT NULL,
            updated_at  TEXT NOT NULL,
            PRIMARY KEY (id, type)
        )
    """


def create_flag_tables(
    conn: Connection,
    *,
    settings_table: str = FLAG_TABLES["settings"],
    overrides_table: str = FLAG_TABLES["overrides"],
) -> None:
    """
    Create the settings and override tables.

    Safe to call multiple times (CREATE IF NOT EXISTS).
    """
    conn.execute(settings_ddl(settings_table))
    conn.execute(overrides_ddl(overrides_table))
    conn.commit()


__all__ = ["FLAG_TABLES", "create_flag_tables", "overrides_ddl", "settings_ddl"]
