"""
Configuration management using pydantic-settings.

Loads configuration from environment variables and .env files.
Validates option values and provides typed access to settings.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from cachedriver.types import CacheOptions, DedupStrategy


class Settings(BaseSettings):
    """Cache driver settings loaded from environment variables.

    Optional:
        CACHE_ROOT: Root directory of the file fallback store
        CACHE_PREFIX: Prefix (subdirectory) inside CACHE_ROOT
        CACHE_SQLITE_ROOT: Directory for the database file (defaults to root/prefix)
        CACHE_DEBUG: Bypass reads and flush on start
        CACHE_STORE: Enable the in-process read-through mirror
        CACHE_STORE_IGNORE: Keys containing this substring are never mirrored
        CACHE_VALIDATE: Run the startup durability probe
        CACHE_DEDUP: delete_then_insert or check_then_branch
        CACHE_PRAGMAS_CONSTRUCT: JSON list of PRAGMA statements run at open
        CACHE_PRAGMAS_DESTRUCT: JSON list of PRAGMA statements run at close
        LOG_LEVEL: Logging level
        LOG_FILE: Optional JSON-lines log file
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Directories
    CACHE_ROOT: Path = Field(default=Path(".cache"), description="Fallback store root")
    CACHE_PREFIX: str = Field(default="cachedriver", description="Fallback store prefix")
    CACHE_SQLITE_ROOT: Path | None = Field(
        default=None, description="Database directory override"
    )

    # Behaviour
    CACHE_DEBUG: bool = Field(default=False, description="Bypass reads, flush on start")
    CACHE_STORE: bool = Field(default=True, description="Enable in-process mirror")
    CACHE_STORE_IGNORE: str | None = Field(
        default=None, description="Substring excluding keys from the mirror"
    )
    CACHE_VALIDATE: bool = Field(default=True, description="Run the durability probe")
    CACHE_DEDUP: DedupStrategy = Field(
        default=DedupStrategy.DELETE_THEN_INSERT,
        description="Strategy keeping one row per key",
    )

    # Pragmas; None selects the version-aware defaults
    CACHE_PRAGMAS_CONSTRUCT: list[str] | None = Field(
        default=None, description="PRAGMA statements applied at open"
    )
    CACHE_PRAGMAS_DESTRUCT: list[str] | None = Field(
        default=None, description="PRAGMA statements applied at close"
    )

    # Logging
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Logging level"
    )
    LOG_FILE: Path | None = Field(default=None, description="JSON log file")

    @field_validator("CACHE_PRAGMAS_CONSTRUCT", "CACHE_PRAGMAS_DESTRUCT")
    @classmethod
    def validate_pragmas(cls, v: list[str] | None) -> list[str] | None:
        """Only PRAGMA statements are accepted in pragma lists."""
        if v is None:
            return v
        for statement in v:
            if not statement.strip().upper().startswith("PRAGMA"):
                raise ValueError(
                    f"Pragma lists may only contain PRAGMA statements, got {statement!r}"
                )
        return v

    @field_validator("CACHE_STORE_IGNORE")
    @classmethod
    def empty_store_ignore_is_none(cls, v: str | None) -> str | None:
        """Treat an empty filter as no filter."""
        return v or None

    @property
    def fallback_root(self) -> Path:
        """Directory of the file fallback store, prefix included."""
        if self.CACHE_PREFIX:
            return self.CACHE_ROOT / self.CACHE_PREFIX
        return self.CACHE_ROOT

    def cache_options(self) -> CacheOptions:
        """Build the options for a cache handle."""
        return CacheOptions(
            root=self.CACHE_SQLITE_ROOT,
            prefix="",
            debug=self.CACHE_DEBUG,
            store=self.CACHE_STORE,
            store_ignore=self.CACHE_STORE_IGNORE,
            validate=self.CACHE_VALIDATE,
            dedup=self.CACHE_DEDUP,
            pragmas_construct=self.CACHE_PRAGMAS_CONSTRUCT,
            pragmas_destruct=self.CACHE_PRAGMAS_DESTRUCT,
        )

    def ensure_directories(self) -> None:
        """Create the cache directories if they don't exist."""
        self.fallback_root.mkdir(parents=True, exist_ok=True)
        if self.CACHE_SQLITE_ROOT is not None:
            self.CACHE_SQLITE_ROOT.mkdir(parents=True, exist_ok=True)

    def redacted_display(self) -> dict[str, str | bool | None]:
        """Return settings for display."""
        return {
            "CACHE_ROOT": str(self.CACHE_ROOT),
            "CACHE_PREFIX": self.CACHE_PREFIX,
            "CACHE_SQLITE_ROOT": str(self.CACHE_SQLITE_ROOT) if self.CACHE_SQLITE_ROOT else None,
            "CACHE_DEBUG": self.CACHE_DEBUG,
            "CACHE_STORE": self.CACHE_STORE,
            "CACHE_STORE_IGNORE": self.CACHE_STORE_IGNORE,
            "CACHE_VALIDATE": self.CACHE_VALIDATE,
            "CACHE_DEDUP": self.CACHE_DEDUP.value,
            "CACHE_PRAGMAS_CONSTRUCT": (
                "; ".join(self.CACHE_PRAGMAS_CONSTRUCT)
                if self.CACHE_PRAGMAS_CONSTRUCT is not None
                else None
            ),
            "CACHE_PRAGMAS_DESTRUCT": (
                "; ".join(self.CACHE_PRAGMAS_DESTRUCT)
                if self.CACHE_PRAGMAS_DESTRUCT is not None
                else None
            ),
            "LOG_LEVEL": self.LOG_LEVEL,
            "LOG_FILE": str(self.LOG_FILE) if self.LOG_FILE else None,
        }


@lru_cache
def get_settings() -> Settings:
    """Get cached settings singleton.

    Returns:
        Settings instance loaded from environment.

    Raises:
        ValidationError: If settings are invalid.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache (useful for testing)."""
    get_settings.cache_clear()
