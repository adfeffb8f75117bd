"""
Tests for explicit cache handle construction.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from cachedriver.cache import FileCache, cache_session, open_cache, open_fallback
from cachedriver.config import Settings
from cachedriver.types import CacheOptions

from conftest import FakeClock


class TestOpenCache:
    """Tests for open_cache and open_fallback."""

    def test_open_fallback_from_settings(self, mock_settings: Settings) -> None:
        """Test that the fallback uses CACHE_ROOT and CACHE_PREFIX."""
        fallback = open_fallback(mock_settings)

        assert fallback.root == mock_settings.CACHE_ROOT
        assert fallback.prefix == "test"
        assert fallback.directory == mock_settings.fallback_root

    def test_open_fallback_creates_directories(self, temp_dir: Path) -> None:
        """Test that the configured directories exist once the fallback is built."""
        settings = Settings(
            _env_file=None,
            CACHE_ROOT=temp_dir / "fresh",
            CACHE_PREFIX="site",
            CACHE_SQLITE_ROOT=temp_dir / "sqlite-dir",
        )

        open_fallback(settings)

        assert (temp_dir / "fresh" / "site").is_dir()
        assert (temp_dir / "sqlite-dir").is_dir()

    def test_open_cache_from_settings(self, mock_settings: Settings) -> None:
        """Test that options and database location come from settings."""
        cache = open_cache(mock_settings)
        try:
            assert cache.path.parent == mock_settings.fallback_root
            assert cache.option("dedup") == "check_then_branch"
            assert cache.set("k", "v")
            assert cache.get("k") == "v"
        finally:
            cache.close()

    def test_open_cache_uses_get_settings(self, mock_env_vars: dict[str, str]) -> None:
        """Test that settings default to the environment."""
        cache = open_cache()
        try:
            assert cache.root == Path(mock_env_vars["CACHE_ROOT"]) / "test"
        finally:
            cache.close()

    def test_explicit_options_and_fallback(
        self, mock_settings: Settings, fallback: FileCache, temp_dir: Path, clock: FakeClock
    ) -> None:
        """Test that explicit arguments take precedence over settings."""
        options = CacheOptions(root=temp_dir / "explicit")
        cache = open_cache(mock_settings, options=options, fallback=fallback, clock=clock)
        try:
            assert cache.root == temp_dir / "explicit"
            assert cache.fallback is fallback
            assert cache.option("dedup") == "delete_then_insert"
        finally:
            cache.close()


class TestCacheSession:
    """Tests for the cache_session context manager."""

    def test_closes_on_exit(self, mock_settings: Settings) -> None:
        """Test that the handle is closed and data committed."""
        with cache_session(mock_settings) as cache:
            cache.set("k", "v")

        assert cache.closed

        with cache_session(mock_settings) as cache:
            assert cache.get("k") == "v"

    def test_closes_on_error(self, mock_settings: Settings) -> None:
        """Test that the handle is closed when the block raises."""
        with pytest.raises(ValueError):
            with cache_session(mock_settings) as cache:
                raise ValueError("boom")

        assert cache.closed
