"""
Pytest configuration and fixtures for cache driver tests.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Generator
from unittest.mock import patch

import pytest

from cachedriver.cache import FileCache, SQLiteCache
from cachedriver.config import Settings, clear_settings_cache
from cachedriver.types import CacheOptions


class FakeClock:
    """Settable time source."""

    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def temp_dir(tmp_path: Path) -> Path:
    """Provide a temporary directory for test outputs."""
    return tmp_path


@pytest.fixture
def clock() -> FakeClock:
    """Provide a controllable clock."""
    return FakeClock()


@pytest.fixture
def fallback(temp_dir: Path, clock: FakeClock) -> FileCache:
    """Provide a file fallback store."""
    return FileCache(temp_dir / "files", prefix="fallback", clock=clock)


@pytest.fixture
def options(temp_dir: Path) -> CacheOptions:
    """Provide options placing the database under temp_dir/db."""
    return CacheOptions(root=temp_dir / "db")


@pytest.fixture
def cache(
    options: CacheOptions, fallback: FileCache, clock: FakeClock
) -> Generator[SQLiteCache, None, None]:
    """Provide an open SQLite cache that is closed after the test."""
    sqlite_cache = SQLiteCache(options, fallback, clock=clock)
    yield sqlite_cache
    sqlite_cache.close()


@pytest.fixture
def mock_env_vars(temp_dir: Path) -> Generator[dict[str, str], None, None]:
    """Provide mock environment variables for testing."""
    env_vars = {
        "CACHE_ROOT": str(temp_dir / "env-cache"),
        "CACHE_PREFIX": "test",
        "CACHE_DEBUG": "false",
        "CACHE_STORE": "true",
        "CACHE_STORE_IGNORE": "",
        "CACHE_VALIDATE": "true",
        "CACHE_DEDUP": "check_then_branch",
        "LOG_LEVEL": "DEBUG",
    }

    with patch.dict(os.environ, env_vars, clear=False):
        clear_settings_cache()
        yield env_vars


@pytest.fixture
def mock_settings(mock_env_vars: dict[str, str]) -> Generator[Settings, None, None]:
    """Provide a Settings instance with mock configuration."""
    clear_settings_cache()
    from cachedriver.config import get_settings

    settings = get_settings()
    settings.ensure_directories()
    yield settings
    clear_settings_cache()


@pytest.fixture(autouse=True)
def reset_settings_cache() -> Generator[None, None, None]:
    """Automatically reset settings cache before and after each test."""
    clear_settings_cache()
    yield
    clear_settings_cache()
