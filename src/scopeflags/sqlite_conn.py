"""SQLite connection used by the default gateway.

``sqlite3`` already matches :class:`~scopeflags.protocols.Connection`
closely; this wrapper fixes the settings the flag tables rely on:

- the parent directory of a file database is created on open
- rows come back as :class:`sqlite3.Row`, so ``dict(row)`` works
- the connection may be shared across threads (the service serializes
  writes under its own lock)
"""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Any


class SqliteConnection:
    """File or in-memory SQLite database for :class:`~scopeflags.gateway.SqlFlagGateway`."""

    def __init__(self, path: str = ":memory:", *, row_factory: Any = sqlite3.Row) -> None:
        if path != ":memory:":
            Path(path).parent.mkdir(parents=True, exist_ok=True)
        self.path = path
        self._db = sqlite3.connect(path, check_same_thread=False)
        self._db.row_factory = row_factory

    def execute(self, sql: str, params: tuple = ()) -> sqlite3.Cursor:
        return self._db.execute(sql, params)

    def commit(self) -> None:
        self._db.commit()

    def rollback(self) -> None:
        self._db.rollback()

    def close(self) -> None:
        self._db.close()

    def __repr__(self) -> str:
        return f"SqliteConnection({self.path!r})"


__all__ = ["SqliteConnection"]
