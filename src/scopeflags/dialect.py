"""SQL dialect for the flag tables.

Only the pieces the gateway needs: placeholder style and a keyed upsert.
:class:`~scopeflags.repository.BaseRepository` takes any object matching
:class:`Dialect`, so a gateway over another driver passes its own.

Tags:
    sql, dialect, portability
"""

from __future__ import annotations

from typing import Protocol


class Dialect(Protocol):
    """SQL generation contract."""

    @property
    def name(self) -> str: ...

    def placeholders(self, count: int) -> str: ...

    def upsert(self, table: str, columns: list[str], key_columns: list[str]) -> str: ...


class SQLiteDialect:
    """SQLite dialect, ``?`` placeholders."""

    @property
    def name(self) -> str:
        return "sqlite"

    def placeholders(self, count: int) -> str:
        return ", ".join("?" for _ in range(count))

    def upsert(self, table: str, columns: list[str], key_columns: list[str]) -> str:
        """``INSERT ... ON CONFLICT (keys) DO UPDATE`` replacing every non-key column."""
        cols = ", ".join(columns)
        ph = self.placeholders(len(columns))
        keys = ", ".join(key_columns)
        update_cols = [c for c in columns if c not in key_columns]
        updates = ", ".join(f"{c} = excluded.{c}" for c in update_cols)
        return (
            f"INSERT INTO {table} ({cols}) VALUES ({ph}) "
            f"ON CONFLICT ({keys}) DO UPDATE SET {updates}"
        )


__all__ = ["Dialect", "SQLiteDialect"]
