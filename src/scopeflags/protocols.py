"""
Structural protocols shared by the persistence layer.

Manifesto:
    Protocols define contracts without inheritance. The SQL gateway only
    needs something that can execute a statement and hand back a DB-API
    cursor, commit and roll back. :class:`~scopeflags.sqlite_conn.SqliteConnection`,
    a psycopg connection, or a test double all satisfy it.

Tags:
    protocol, connection, database
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class Connection(Protocol):
    """
    Minimal SYNCHRONOUS connection interface for the flag tables.

    Architecture:
        ::

            ┌────────────────────────────────────────────────────────┐
            │ execute(sql, params)   → DB-API cursor (fetchall,      │
            │                          description)                  │
            │ commit()               → Commit transaction            │
            │ rollback()             → Rollback transaction          │
            └────────────────────────────────────────────────────────┘

    Examples:
        >>> cursor = conn.execute("SELECT value FROM app_settings WHERE key = ?", ("feature_flags",))
        >>> rows = cursor.fetchall()
    """

    def execute(self, sql: str, params: tuple = ()) -> Any:
        """Execute one statement and return its cursor."""
        ...

    def commit(self) -> None:
        """Commit current transaction."""
        ...

    def rollback(self) -> None:
        """Rollback current transaction."""
        ...


__all__ = ["Connection"]
