"""
StorageHandle: owns the SQLite connection and database file lifecycle.

Opening applies the construct pragmas and ensures the cache table. A file
that cannot be opened is removed together with its -wal/-shm side files, a
fresh empty store is created in its place, and the original error is still
raised so the caller knows a reset happened.
"""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Callable

from cachedriver.exceptions import OpenFailedError, StatementFailedError
from cachedriver.logging import get_logger
from cachedriver.storage.pragmas import PragmaPhase, PragmaProfile
from cachedriver.storage.statements import PreparedStatement

logger = get_logger(__name__)

SCHEMA_SQL = (
    "CREATE TABLE IF NOT EXISTS cache "
    "(id TEXT PRIMARY KEY UNIQUE, expire_at INTEGER, data TEXT)"
)

SIDE_FILE_SUFFIXES = ("-wal", "-shm")

_SQLITE_BUSY_CODES = {5, 6}  # SQLITE_BUSY, SQLITE_LOCKED
_BUSY_SUBSTRINGS = ("database is locked", "database table is locked", "busy")


def is_busy_error(exc: sqlite3.Error) -> bool:
    """Check whether an error means another connection holds the lock."""
    code = getattr(exc, "sqlite_errorcode", None)
    if isinstance(code, int) and (code & 0xFF) in _SQLITE_BUSY_CODES:
        return True
    message = str(exc).lower()
    return any(fragment in message for fragment in _BUSY_SUBSTRINGS)


def remove_database_files(path: Path) -> list[Path]:
    """Remove a database file and its side files.

    Returns:
        The files that existed and were removed.
    """
    removed: list[Path] = []
    for candidate in [path, *(path.with_name(path.name + s) for s in SIDE_FILE_SUFFIXES)]:
        if candidate.exists():
            candidate.unlink()
            removed.append(candidate)
    return removed


class StorageHandle:
    """A single long-lived connection to the cache database."""

    def __init__(self, path: Path, conn: sqlite3.Connection) -> None:
        self.path = path
        self._conn: sqlite3.Connection | None = conn

    @classmethod
    def open(
        cls,
        path: Path | str,
        profile: PragmaProfile,
        on_reset: Callable[[], None] | None = None,
        timeout: float = 5.0,
    ) -> StorageHandle:
        """Open (or create) the database and ensure the schema.

        Args:
            path: Database file.
            profile: Pragma profile; its construct list is applied before the
                schema is created.
            on_reset: Called after a corrupt store has been removed.
            timeout: Seconds to wait for a lock held by another connection.

        Returns:
            An open handle.

        Raises:
            OpenFailedError: If the file could not be opened. A corrupt store
                has been reset by the time this is raised; a store locked by
                another connection, or in a directory that cannot be created,
                is left alone.
        """
        path = Path(path)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.error("Cache directory is not accessible", path=str(path), error=str(e))
            raise OpenFailedError(
                f"Cache directory is not accessible: {e}",
                context={"path": str(path), "reset": False},
            ) from e

        conn: sqlite3.Connection | None = None
        try:
            conn = cls._connect(path, timeout)
            profile.apply(conn, PragmaPhase.CONSTRUCT)
            conn.execute(SCHEMA_SQL)
        except sqlite3.Error as e:
            if conn is not None:
                conn.close()
            logger.error("Failed to open cache database", path=str(path), error=str(e))
            if is_busy_error(e):
                raise OpenFailedError(
                    f"Cache database is locked: {e}",
                    context={"path": str(path), "reset": False},
                ) from e
            reset = cls._reset(path, on_reset)
            raise OpenFailedError(
                f"Failed to open cache database: {e}",
                context={"path": str(path), "reset": reset},
            ) from e

        logger.info("Opened cache database", path=str(path))
        return cls(path, conn)

    @staticmethod
    def _connect(path: Path, timeout: float = 5.0) -> sqlite3.Connection:
        # Autocommit mode: TransactionEnvelope issues BEGIN/END itself
        return sqlite3.connect(
            str(path),
            timeout=timeout,
            isolation_level=None,
            cached_statements=64,
        )

    @classmethod
    def _reset(cls, path: Path, on_reset: Callable[[], None] | None) -> bool:
        """Remove the store and create a fresh empty one.

        Returns:
            True if the fresh store was created.
        """
        removed = remove_database_files(path)
        logger.warning(
            "Removed cache database files",
            files=[str(p) for p in removed],
        )
        if on_reset is not None:
            on_reset()

        try:
            conn = cls._connect(path)
            try:
                conn.execute(SCHEMA_SQL)
            finally:
                conn.close()
        except sqlite3.Error as e:
            logger.error("Failed to recreate cache database", path=str(path), error=str(e))
            return False
        return True

    @property
    def connection(self) -> sqlite3.Connection:
        """The open connection."""
        if self._conn is None:
            raise RuntimeError("StorageHandle is closed.")
        return self._conn

    @property
    def closed(self) -> bool:
        """Whether close() has been called."""
        return self._conn is None

    @property
    def sqlite_version(self) -> str:
        """Version of the linked SQLite library."""
        return sqlite3.sqlite_version

    def exec(self, sql: str, params: dict | tuple = ()) -> int:
        """Run an administrative statement.

        Returns:
            Number of affected rows (-1 where SQLite does not report one).

        Raises:
            StatementFailedError: If the statement fails.
        """
        try:
            cursor = self.connection.execute(sql, params)
            try:
                return cursor.rowcount
            finally:
                cursor.close()
        except sqlite3.Error as e:
            raise StatementFailedError(
                "Statement failed",
                context={"statement": sql, "error": str(e)},
            ) from e

    def prepare(self, name: str, sql: str) -> PreparedStatement:
        """Create a reusable statement on this connection."""
        return PreparedStatement(self.connection, name, sql)

    def close(self) -> None:
        """Close the connection. Safe to call more than once."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None
            logger.info("Closed cache database", path=str(self.path))
