"""
Pragma profiles applied when a handle opens and closes.

The defaults depend on the linked SQLite version: write-ahead logging needs
3.7.1 or newer, older engines fall back to an in-memory journal with
synchronous writes disabled.
"""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass, field
from enum import Enum

from cachedriver.logging import get_logger

logger = get_logger(__name__)

VERSION_THRESHOLD: tuple[int, int, int] = (3, 7, 1)

_CONSTRUCT_BASE = [
    "PRAGMA main.cache_size = 10000;",
    "PRAGMA case_sensitive_like = false;",
    "PRAGMA main.auto_vacuum = INCREMENTAL;",
    "PRAGMA main.locking_mode = EXCLUSIVE;",
    "PRAGMA main.page_size = 4096;",
    "PRAGMA temp_store = MEMORY;",
]

_CONSTRUCT_WAL = [
    "PRAGMA main.synchronous = NORMAL;",
    "PRAGMA main.journal_mode = WAL;",
]

_CONSTRUCT_LEGACY = [
    "PRAGMA main.synchronous = OFF;",
    "PRAGMA main.journal_mode = MEMORY;",
]

_DESTRUCT_BASE = [
    "PRAGMA main.incremental_vacuum;",
]

_DESTRUCT_WAL = [
    "PRAGMA main.wal_checkpoint(TRUNCATE);",
    "PRAGMA main.synchronous = NORMAL;",
    "PRAGMA main.locking_mode = NORMAL;",
]


class PragmaPhase(str, Enum):
    """When a pragma list is applied."""

    CONSTRUCT = "construct"
    DESTRUCT = "destruct"


def supports_wal(version: tuple[int, ...]) -> bool:
    """Check whether an SQLite version supports write-ahead logging."""
    return tuple(version) >= VERSION_THRESHOLD


def default_pragmas(
    phase: PragmaPhase,
    version: tuple[int, ...] = sqlite3.sqlite_version_info,
) -> list[str]:
    """Get the default pragma list for a phase and SQLite version."""
    wal = supports_wal(version)
    if phase == PragmaPhase.CONSTRUCT:
        return _CONSTRUCT_BASE + (_CONSTRUCT_WAL if wal else _CONSTRUCT_LEGACY)
    return _DESTRUCT_BASE + (_DESTRUCT_WAL if wal else [])


@dataclass(frozen=True)
class PragmaProfile:
    """Ordered construct and destruct pragma lists."""

    construct: list[str] = field(default_factory=list)
    destruct: list[str] = field(default_factory=list)

    @classmethod
    def for_version(
        cls,
        version: tuple[int, ...] = sqlite3.sqlite_version_info,
        construct: list[str] | None = None,
        destruct: list[str] | None = None,
    ) -> PragmaProfile:
        """Build a profile, using the version defaults where no list is given."""
        return cls(
            construct=(
                list(construct)
                if construct is not None
                else default_pragmas(PragmaPhase.CONSTRUCT, version)
            ),
            destruct=(
                list(destruct)
                if destruct is not None
                else default_pragmas(PragmaPhase.DESTRUCT, version)
            ),
        )

    def statements(self, phase: PragmaPhase) -> list[str]:
        """Get the pragma list for a phase."""
        if phase == PragmaPhase.CONSTRUCT:
            return self.construct
        return self.destruct

    def apply(self, conn: sqlite3.Connection, phase: PragmaPhase) -> list[str]:
        """Apply every pragma of a phase, each independently.

        A failing pragma is logged and skipped; the remaining ones still run.

        Args:
            conn: Open connection.
            phase: Which list to apply.

        Returns:
            The pragma statements that failed.
        """
        failed: list[str] = []
        for pragma in self.statements(phase):
            try:
                # Result rows (journal_mode, wal_checkpoint) must be drained
                conn.execute(pragma).fetchall()
            except sqlite3.Error as e:
                failed.append(pragma)
                logger.warning(
                    "Pragma failed",
                    pragma=pragma,
                    phase=phase.value,
                    error=str(e),
                )

        logger.debug(
            "Applied pragmas",
            phase=phase.value,
            total=len(self.statements(phase)),
            failed=len(failed),
        )
        return failed
