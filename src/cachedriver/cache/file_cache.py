"""
File-based cache used as the fallback key-value store.

One JSON file per key under ``root/prefix/{hash[:2]}/{hash}.cache``, where
hash is the SHA-256 of the key. Writes go to a temporary file first and are
moved into place with os.replace, so readers never see a partial file.
"""

from __future__ import annotations

import hashlib
import os
import tempfile
from pathlib import Path
from typing import Any

import orjson

from cachedriver.cache.base import CacheDriver
from cachedriver.logging import get_logger
from cachedriver.types import Clock, ValueEnvelope

logger = get_logger(__name__)


class FileCache(CacheDriver):
    """Directory-backed cache driver."""

    extension = "cache"

    def __init__(
        self,
        root: str | Path,
        prefix: str = "",
        clock: Clock | None = None,
    ) -> None:
        """Initialize the file cache.

        Args:
            root: Base directory.
            prefix: Subdirectory of root holding this cache's files.
            clock: Time source (defaults to time.time).
        """
        super().__init__(prefix=prefix, clock=clock)
        self.root = Path(root)
        self.directory = self.root / prefix if prefix else self.root
        self.directory.mkdir(parents=True, exist_ok=True)

    def options(self) -> dict[str, Any]:
        return {"root": str(self.root), "prefix": self.prefix}

    def file(self, key: str) -> Path:
        """Get the path of the file holding a key."""
        digest = hashlib.sha256(self.key(key).encode("utf-8")).hexdigest()
        return self.directory / digest[:2] / f"{digest}.{self.extension}"

    def set(self, key: str, value: Any, minutes: int = 0) -> bool:
        envelope = ValueEnvelope.create(value, minutes, now=self.now())
        path = self.file(key)
        path.parent.mkdir(parents=True, exist_ok=True)

        fd, tmp = tempfile.mkstemp(dir=path.parent, suffix=".tmp")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(orjson.dumps(envelope.to_dict()))
            os.replace(tmp, path)
        except OSError as e:
            Path(tmp).unlink(missing_ok=True)
            logger.error("Failed to write cache file", key=key, error=str(e))
            return False
        return True

    def retrieve(self, key: str) -> ValueEnvelope | None:
        path = self.file(key)
        try:
            data = path.read_bytes()
        except FileNotFoundError:
            return None

        try:
            return ValueEnvelope.from_json(data)
        except orjson.JSONDecodeError:
            logger.warning("Discarding unreadable cache file", key=key, path=str(path))
            path.unlink(missing_ok=True)
            return None

    def remove(self, key: str) -> bool:
        self.file(key).unlink(missing_ok=True)
        return True

    def flush(self) -> bool:
        # Only this cache's files; the database may share the directory
        for path in self.directory.glob(f"*/*.{self.extension}"):
            path.unlink(missing_ok=True)
        return True
