"""
Core types for the SQLite cache driver.

This module defines the fundamental data structures used throughout the driver:
- Enums for validation state and deduplication strategy
- ValueEnvelope, the stored unit combining a payload with its expiry
- CacheRow, the persisted row shape
- CacheOptions, the resolved options a handle is constructed with
- Helpers for the clock
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable

import orjson

Clock = Callable[[], float]

# Schema version; part of the database file name and the validation marker key.
DB_VERSION = "1"
DB_FILENAME = "sqlitecache-"
DB_VALIDATE = "sqlitecache-"
DB_EXTENSION = "sqlite"
VALIDATION_KEY = DB_VALIDATE + DB_VERSION


def epoch_now(clock: Clock | None = None) -> int:
    """Get the current time as integer unix epoch seconds."""
    return int((clock or time.time)())


class ValidationState(str, Enum):
    """Lifecycle of the startup durability probe."""

    UNVALIDATED = "unvalidated"
    VALIDATING = "validating"
    VALIDATED = "validated"
    FAILED = "failed"


class DedupStrategy(str, Enum):
    """How `set` keeps at most one row per id."""

    CHECK_THEN_BRANCH = "check_then_branch"  # select, then update or insert
    DELETE_THEN_INSERT = "delete_then_insert"


@dataclass(frozen=True)
class ValueEnvelope:
    """A cached payload plus the expiry derived from its TTL.

    ``expires`` and the row's ``expire_at`` column are both derived from
    ``created`` and ``minutes``; ``expire_at`` is ``expires or 0``.
    """

    value: Any
    minutes: int = 0
    created: int = 0

    @classmethod
    def create(cls, value: Any, minutes: int = 0, now: int | None = None) -> ValueEnvelope:
        """Wrap a value with a TTL in minutes.

        0 never expires; a negative TTL yields an already expired envelope.
        """
        return cls(
            value=value,
            minutes=int(minutes),
            created=now if now is not None else epoch_now(),
        )

    @property
    def expires(self) -> int | None:
        """Absolute expiry timestamp, or None if the value never expires."""
        if self.minutes == 0:
            return None
        return self.created + self.minutes * 60

    @property
    def expire_at(self) -> int:
        """Expiry as stored in the ``expire_at`` column."""
        return self.expires or 0

    def is_expired(self, now: int) -> bool:
        """Check whether the envelope has expired at ``now``."""
        expires = self.expires
        return expires is not None and expires <= now

    def to_dict(self) -> dict[str, Any]:
        """Convert to a plain dict."""
        return {
            "created": self.created,
            "minutes": self.minutes,
            "expires": self.expires,
            "value": self.value,
        }

    def to_json(self) -> str:
        """Serialize to a JSON string for storage."""
        return orjson.dumps(self.to_dict()).decode("utf-8")

    @classmethod
    def from_json(cls, data: str | bytes) -> ValueEnvelope:
        """Deserialize from the stored JSON form."""
        raw = orjson.loads(data)
        return cls(
            value=raw.get("value"),
            minutes=int(raw.get("minutes") or 0),
            created=int(raw.get("created") or 0),
        )


@dataclass(frozen=True)
class CacheRow:
    """A persisted row of the ``cache`` table."""

    id: str
    expire_at: int  # unix epoch seconds, 0 = never
    data: str  # serialized ValueEnvelope

    @property
    def envelope(self) -> ValueEnvelope:
        """Decode the stored envelope."""
        return ValueEnvelope.from_json(self.data)


@dataclass(frozen=True)
class CacheOptions:
    """Resolved options for one cache handle.

    ``root`` may be None, in which case the database lives under the
    fallback store's root and prefix.
    """

    root: Path | None = None
    prefix: str = ""
    debug: bool = False
    store: bool = True
    store_ignore: str | None = None
    validate: bool = True
    dedup: DedupStrategy = DedupStrategy.DELETE_THEN_INSERT
    pragmas_construct: list[str] | None = field(default=None)
    pragmas_destruct: list[str] | None = field(default=None)

    def mirrors(self, key: str) -> bool:
        """Check whether a (prefixed) key belongs in the in-process mirror."""
        if not self.store:
            return False
        return not self.store_ignore or self.store_ignore not in key
