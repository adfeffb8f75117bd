"""
Tests for configuration module.
"""

from __future__ import annotations

import os
from pathlib import Path
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from cachedriver.config import Settings, clear_settings_cache, get_settings
from cachedriver.types import DedupStrategy


class TestSettingsLoading:
    """Tests for loading Settings from the environment."""

    def test_settings_loads_from_env(self, mock_env_vars: dict[str, str]) -> None:
        """Test that settings correctly loads from environment variables."""
        settings = get_settings()

        assert settings.CACHE_ROOT == Path(mock_env_vars["CACHE_ROOT"])
        assert settings.CACHE_PREFIX == "test"
        assert settings.CACHE_DEBUG is False
        assert settings.CACHE_STORE is True
        assert settings.CACHE_STORE_IGNORE is None
        assert settings.CACHE_DEDUP == DedupStrategy.CHECK_THEN_BRANCH
        assert settings.LOG_LEVEL == "DEBUG"

    def test_get_settings_is_cached(self, mock_env_vars: dict[str, str]) -> None:
        """Test that get_settings returns the same instance until cleared."""
        first = get_settings()
        assert get_settings() is first

        clear_settings_cache()
        assert get_settings() is not first

    def test_pragma_lists_parsed_from_json(self) -> None:
        """Test that pragma lists are read as JSON arrays."""
        env_vars = {
            "CACHE_PRAGMAS_CONSTRUCT": '["PRAGMA main.cache_size = 500;"]',
            "CACHE_PRAGMAS_DESTRUCT": "[]",
        }

        with patch.dict(os.environ, env_vars, clear=False):
            settings = Settings(_env_file=None)

        assert settings.CACHE_PRAGMAS_CONSTRUCT == ["PRAGMA main.cache_size = 500;"]
        assert settings.CACHE_PRAGMAS_DESTRUCT == []


class TestSettingsValidation:
    """Tests for Settings validation."""

    def test_pragma_lists_reject_other_statements(self) -> None:
        """Test that pragma lists only accept PRAGMA statements."""
        with pytest.raises(ValidationError) as exc_info:
            Settings(
                _env_file=None,
                CACHE_PRAGMAS_CONSTRUCT=["PRAGMA temp_store = MEMORY;", "DROP TABLE cache"],
            )

        assert "PRAGMA" in str(exc_info.value)

    def test_invalid_dedup_rejected(self) -> None:
        """Test that unknown dedup strategies are rejected."""
        with pytest.raises(ValidationError):
            Settings(_env_file=None, CACHE_DEDUP="upsert")

    def test_invalid_log_level_rejected(self) -> None:
        """Test that unknown log levels are rejected."""
        with pytest.raises(ValidationError):
            Settings(_env_file=None, LOG_LEVEL="LOUD")


class TestSettingsDefaults:
    """Tests for Settings default values."""

    def test_defaults(self) -> None:
        """Test default values with a clean environment."""
        with patch.dict(os.environ, {}, clear=True):
            settings = Settings(_env_file=None)

        assert settings.CACHE_ROOT == Path(".cache")
        assert settings.CACHE_PREFIX == "cachedriver"
        assert settings.CACHE_SQLITE_ROOT is None
        assert settings.CACHE_DEBUG is False
        assert settings.CACHE_STORE is True
        assert settings.CACHE_VALIDATE is True
        assert settings.CACHE_DEDUP == DedupStrategy.DELETE_THEN_INSERT
        assert settings.CACHE_PRAGMAS_CONSTRUCT is None
        assert settings.CACHE_PRAGMAS_DESTRUCT is None


class TestSettingsHelpers:
    """Tests for derived values."""

    def test_cache_options(self, temp_dir: Path) -> None:
        """Test that cache_options mirrors the settings."""
        settings = Settings(
            _env_file=None,
            CACHE_SQLITE_ROOT=temp_dir / "db",
            CACHE_DEBUG=True,
            CACHE_STORE=False,
            CACHE_STORE_IGNORE="pages",
            CACHE_VALIDATE=False,
            CACHE_PRAGMAS_CONSTRUCT=["PRAGMA temp_store = MEMORY;"],
        )
        options = settings.cache_options()

        assert options.root == temp_dir / "db"
        assert options.debug is True
        assert options.store is False
        assert options.store_ignore == "pages"
        assert options.validate is False
        assert options.pragmas_construct == ["PRAGMA temp_store = MEMORY;"]
        assert options.pragmas_destruct is None

    def test_fallback_root(self, temp_dir: Path) -> None:
        """Test that the fallback root includes the prefix."""
        settings = Settings(_env_file=None, CACHE_ROOT=temp_dir, CACHE_PREFIX="site")
        assert settings.fallback_root == temp_dir / "site"

        settings = Settings(_env_file=None, CACHE_ROOT=temp_dir, CACHE_PREFIX="")
        assert settings.fallback_root == temp_dir

    def test_ensure_directories(self, mock_settings: Settings) -> None:
        """Test that ensure_directories creates the fallback root."""
        assert mock_settings.fallback_root.is_dir()

    def test_redacted_display(self, mock_settings: Settings) -> None:
        """Test the display mapping used by the CLI."""
        display = mock_settings.redacted_display()

        assert display["CACHE_PREFIX"] == "test"
        assert display["CACHE_DEDUP"] == "check_then_branch"
        assert display["CACHE_PRAGMAS_CONSTRUCT"] is None
