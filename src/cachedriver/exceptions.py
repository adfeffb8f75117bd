"""
Custom exception hierarchy for the SQLite cache driver.

All exceptions inherit from CacheError, which provides optional context
for structured error handling and logging.
"""

from __future__ import annotations

from typing import Any


class CacheError(Exception):
    """Base exception for all cache driver errors.

    Attributes:
        message: Human-readable error message.
        context: Optional structured context for logging/debugging.
    """

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        if self.context:
            ctx_str = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
            return f"{self.message} ({ctx_str})"
        return self.message

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, context={self.context!r})"


class ConfigurationError(CacheError):
    """Raised when cache options are invalid or incomplete.

    Examples:
        - No root directory could be resolved for the database file
        - A pragma list contains something other than PRAGMA statements
    """

    pass


class OpenFailedError(CacheError):
    """Raised when the database file cannot be opened.

    The file and its -wal/-shm side files have already been removed and a
    fresh store created by the time this is raised.

    Context should include:
        - path: The database file
        - reset: Whether the fresh store could be created
    """

    pass


class ValidationFailedError(CacheError):
    """Raised when the store does not round-trip the validation marker.

    Context should include:
        - reason: Whether the marker write or its read-back failed
        - path: The database file
        - sqlite_version: Version of the linked SQLite library
        - pragmas: The construct pragmas that were applied
    """

    pass


class StatementFailedError(CacheError):
    """Raised when a prepared or administrative statement fails.

    Context should include:
        - statement: Name of the statement (or the raw SQL)
        - error: The underlying sqlite3 error message
    """

    pass
