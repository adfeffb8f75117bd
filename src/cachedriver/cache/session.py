"""
Explicit construction of cache handles.

A process builds one handle at start-up and passes it to whatever needs it;
cache_session() guarantees the handle is closed on every exit path.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Generator

from cachedriver.cache.base import CacheDriver
from cachedriver.cache.file_cache import FileCache
from cachedriver.cache.sqlite_cache import SQLiteCache
from cachedriver.config import Settings, get_settings
from cachedriver.types import CacheOptions, Clock


def open_fallback(settings: Settings, clock: Clock | None = None) -> FileCache:
    """Build the file fallback store described by the settings."""
    settings.ensure_directories()
    return FileCache(settings.CACHE_ROOT, prefix=settings.CACHE_PREFIX, clock=clock)


def open_cache(
    settings: Settings | None = None,
    options: CacheOptions | None = None,
    fallback: CacheDriver | None = None,
    clock: Clock | None = None,
) -> SQLiteCache:
    """Open a cache handle.

    Args:
        settings: Settings to read defaults from (get_settings() if None).
        options: Explicit options; derived from settings if None.
        fallback: Fallback store; a FileCache from settings if None.
        clock: Time source shared by the handle and a default fallback.

    Returns:
        An open SQLiteCache. The caller owns it and must close() it.
    """
    settings = settings or get_settings()
    if fallback is None:
        fallback = open_fallback(settings, clock=clock)
    return SQLiteCache(options or settings.cache_options(), fallback, clock=clock)


@contextmanager
def cache_session(
    settings: Settings | None = None,
    options: CacheOptions | None = None,
    fallback: CacheDriver | None = None,
    clock: Clock | None = None,
) -> Generator[SQLiteCache, None, None]:
    """Open a cache handle for the duration of a block.

    Yields:
        The open handle; it is closed when the block exits.
    """
    cache = open_cache(settings=settings, options=options, fallback=fallback, clock=clock)
    try:
        yield cache
    finally:
        cache.close()
