"""
Prepared statements for the fixed key/value/expiry access pattern.

sqlite3 compiles each distinct SQL string once per connection and keeps it
in the connection's statement cache, so reusing a PreparedStatement avoids
reparsing SQL on every operation. Each use follows
bind -> execute -> clear -> reset.
"""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from cachedriver.exceptions import StatementFailedError

if TYPE_CHECKING:
    from cachedriver.storage.handle import StorageHandle

SELECT_SQL = (
    "SELECT data FROM cache WHERE id = :id AND (expire_at = 0 OR expire_at > :now)"
)
SELECT_ROW_SQL = "SELECT id, expire_at, data FROM cache WHERE id = :id"
INSERT_SQL = "INSERT INTO cache (id, expire_at, data) VALUES (:id, :expire_at, :data)"
UPDATE_SQL = "UPDATE cache SET expire_at = :expire_at, data = :data WHERE id = :id"
DELETE_SQL = "DELETE FROM cache WHERE id = :id"
COUNT_SQL = "SELECT COUNT(*) FROM cache"


class PreparedStatement:
    """A reusable named-parameter statement bound to one connection."""

    def __init__(self, conn: sqlite3.Connection, name: str, sql: str) -> None:
        self.name = name
        self.sql = sql
        self._conn = conn
        self._params: dict[str, Any] = {}
        self._cursor: sqlite3.Cursor | None = None

    @property
    def params(self) -> dict[str, Any]:
        """Currently bound parameters."""
        return dict(self._params)

    def bind(self, **params: Any) -> PreparedStatement:
        """Bind named parameters."""
        self._params.update(params)
        return self

    def execute(self) -> sqlite3.Cursor:
        """Execute with the bound parameters.

        Raises:
            StatementFailedError: If SQLite rejects the statement.
        """
        try:
            if self._cursor is None:
                self._cursor = self._conn.cursor()
            return self._cursor.execute(self.sql, self._params)
        except sqlite3.Error as e:
            raise StatementFailedError(
                f"Statement {self.name} failed",
                context={"statement": self.name, "error": str(e)},
            ) from e

    def clear(self) -> None:
        """Clear bound values."""
        self._params = {}

    def reset(self) -> None:
        """Release the pending result so the statement can be reused."""
        if self._cursor is not None:
            self._cursor.close()
            self._cursor = None

    def fetchone(self, **params: Any) -> sqlite3.Row | tuple | None:
        """Bind, execute and return the first row."""
        try:
            return self.bind(**params).execute().fetchone()
        finally:
            self.clear()
            self.reset()

    def run(self, **params: Any) -> int:
        """Bind and execute; return the number of affected rows."""
        try:
            return self.bind(**params).execute().rowcount
        finally:
            self.clear()
            self.reset()


@dataclass
class StatementSet:
    """The statements a cache handle keeps for its lifetime."""

    select: PreparedStatement
    select_row: PreparedStatement
    insert: PreparedStatement
    update: PreparedStatement
    delete: PreparedStatement
    count: PreparedStatement

    @classmethod
    def prepare(cls, handle: StorageHandle) -> StatementSet:
        """Prepare all statements on an open handle."""
        return cls(
            select=handle.prepare("select", SELECT_SQL),
            select_row=handle.prepare("select_row", SELECT_ROW_SQL),
            insert=handle.prepare("insert", INSERT_SQL),
            update=handle.prepare("update", UPDATE_SQL),
            delete=handle.prepare("delete", DELETE_SQL),
            count=handle.prepare("count", COUNT_SQL),
        )

    def all(self) -> list[PreparedStatement]:
        """All statements in the set."""
        return [
            self.select,
            self.select_row,
            self.insert,
            self.update,
            self.delete,
            self.count,
        ]

    def close(self) -> None:
        """Reset every statement."""
        for statement in self.all():
            statement.clear()
            statement.reset()
