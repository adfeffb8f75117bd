"""
Cache package.

This package provides the cache drivers:
- CacheDriver (base.py): the get/set/remove/flush contract
- SQLiteCache (sqlite_cache.py): SQLite-backed driver with expiry, GC,
  validation and an optional in-process mirror
- FileCache (file_cache.py): file-backed fallback store
- open_cache/cache_session (session.py): explicit handle construction
"""

from cachedriver.cache.base import CacheDriver
from cachedriver.cache.file_cache import FileCache
from cachedriver.cache.session import cache_session, open_cache, open_fallback
from cachedriver.cache.sqlite_cache import SQLiteCache

__all__ = [
    "CacheDriver",
    "FileCache",
    "SQLiteCache",
    "cache_session",
    "open_cache",
    "open_fallback",
]
