"""
Base class for cache drivers.

CacheDriver is the fixed contract a host application consumes:
- get/set/remove/flush on plain values
- retrieve for the raw ValueEnvelope
- key prefixing and an options() view with at least root and prefix
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from cachedriver.types import Clock, ValueEnvelope, epoch_now


class CacheDriver(ABC):
    """Abstract interface for cache implementations."""

    def __init__(self, prefix: str = "", clock: Clock | None = None) -> None:
        self.prefix = prefix
        self._clock = clock

    def now(self) -> int:
        """Current time in epoch seconds, from the driver's clock."""
        return epoch_now(self._clock)

    def key(self, key: str) -> str:
        """Apply the prefix to a key."""
        if self.prefix:
            return f"{self.prefix}/{key}"
        return key

    @abstractmethod
    def options(self) -> dict[str, Any]:
        """Driver options; includes at least ``root`` and ``prefix``."""
        ...

    @abstractmethod
    def set(self, key: str, value: Any, minutes: int = 0) -> bool:
        """Store a value for ``minutes`` (0 = never expires)."""
        ...

    @abstractmethod
    def retrieve(self, key: str) -> ValueEnvelope | None:
        """Get the stored envelope, or None."""
        ...

    @abstractmethod
    def remove(self, key: str) -> bool:
        """Remove a key. Removing a missing key succeeds."""
        ...

    @abstractmethod
    def flush(self) -> bool:
        """Remove every entry."""
        ...

    def get(self, key: str, default: Any = None) -> Any:
        """Get a value, or ``default`` if missing or expired."""
        envelope = self.retrieve(key)
        if envelope is None or envelope.is_expired(self.now()):
            return default
        return envelope.value

    def exists(self, key: str) -> bool:
        """Check if a non-expired entry exists."""
        envelope = self.retrieve(key)
        return envelope is not None and not envelope.is_expired(self.now())
