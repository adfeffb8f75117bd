"""
The transaction that spans a handle's whole lifetime.

The connection runs in autocommit mode, so nothing is committed until
end() is called; every write inside the envelope is visible to later
reads on the same handle.
"""

from __future__ import annotations

import sqlite3

from cachedriver.exceptions import StatementFailedError
from cachedriver.logging import get_logger

logger = get_logger(__name__)


class TransactionEnvelope:
    """Explicit BEGIN/END around a handle's lifetime.

    ``count`` tracks begin() calls since the last end(); a begin() while a
    transaction is already open only increments the counter.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn
        self._count = 0

    @property
    def count(self) -> int:
        """Number of begin() calls since the last end()."""
        return self._count

    @property
    def active(self) -> bool:
        """Whether a transaction is open on the connection."""
        return self._conn.in_transaction

    def begin(self) -> None:
        """Open the transaction (no-op at the SQL level if already open)."""
        if not self._conn.in_transaction:
            self._exec("BEGIN TRANSACTION;")
        self._count += 1
        logger.debug("Transaction begin", count=self._count)

    def end(self) -> None:
        """Commit the open transaction and reset the counter."""
        if self._conn.in_transaction:
            self._exec("END TRANSACTION;")
        logger.debug("Transaction end", count=self._count)
        self._count = 0

    def _exec(self, sql: str) -> None:
        try:
            self._conn.execute(sql)
        except sqlite3.Error as e:
            raise StatementFailedError(
                "Transaction statement failed",
                context={"statement": sql, "error": str(e)},
            ) from e
