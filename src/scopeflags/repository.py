"""Base repository with dialect-aware database access.

Pairs a :class:`~scopeflags.protocols.Connection` with a
:class:`~scopeflags.dialect.Dialect` so repositories can write portable SQL
without referencing a specific driver.

Architecture::

    ┌────────────────────────────────────────────────────────────────────┐
    │                       BaseRepository                               │
    │                                                                    │
    │   conn: Connection        ← protocol from scopeflags.protocols     │
    │   dialect: Dialect        ← from scopeflags.dialect                │
    │                                                                    │
    │   query(sql, params)       → list[dict]                            │
    │   query_one(sql, params)   → dict | None                           │
    │   upsert(table, data, key) → cursor                                │
    └────────────────────────────────────────────────────────────────────┘
"""

from __future__ import annotations

from typing import Any

from scopeflags.dialect import Dialect, SQLiteDialect
from scopeflags.protocols import Connection


class BaseRepository:
    """Dialect-aware base class for data-access repositories.

    Parameters:
        conn: Any object satisfying the :class:`Connection` protocol.
        dialect: SQL dialect to use.  Defaults to :class:`SQLiteDialect`.
    """

    def __init__(self, conn: Connection, dialect: Dialect | None = None) -> None:
        self.conn = conn
        self.dialect: Dialect = dialect or SQLiteDialect()

    def ph(self, count: int) -> str:
        """Shortcut for ``self.dialect.placeholders(count)``.

        Embed directly in f-strings:

            f"SELECT * FROM t WHERE id = {self.ph(1)}"
        """
        return self.dialect.placeholders(count)

    # -- Query helpers -----------------------------------------------------

    def query(self, sql: str, params: tuple = ()) -> list[dict[str, Any]]:
        """Execute a SELECT and return rows as dicts.

        ``dict(row)`` covers ``sqlite3.Row`` and dict-row cursors; otherwise
        column names come from the DB-API ``description``.
        """
        cursor = self.conn.execute(sql, params)
        rows = cursor.fetchall()
        if not rows:
            return []

        try:
            return [dict(row) for row in rows]
        except (TypeError, ValueError):
            pass

        if hasattr(cursor, "description") and cursor.description:
            columns = [desc[0] for desc in cursor.description]
            return [dict(zip(columns, row, strict=False)) for row in rows]

        return [{i: v for i, v in enumerate(row)} for row in rows]

    def query_one(self, sql: str, params: tuple = ()) -> dict[str, Any] | None:
        """Execute a SELECT and return the first row as a dict (or None)."""
        results = self.query(sql, params)
        return results[0] if results else None

    # -- Write helpers -----------------------------------------------------

    def upsert(self, table: str, data: dict[str, Any], key_columns: list[str]) -> Any:
        """Insert a row, replacing non-key columns on key conflict."""
        columns = list(data.keys())
        sql = self.dialect.upsert(table, columns, key_columns)
        return self.conn.execute(sql, tuple(data.values()))

    def commit(self) -> None:
        """Commit the current transaction."""
        self.conn.commit()

    def rollback(self) -> None:
        """Roll back the current transaction."""
        self.conn.rollback()


__all__ = [
    "BaseRepository",
]
