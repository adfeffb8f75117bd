"""
Tests for the file fallback store.
"""

from __future__ import annotations

from pathlib import Path

from cachedriver.cache import FileCache

from conftest import FakeClock


class TestFileCache:
    """Tests for FileCache."""

    def test_set_and_get(self, fallback: FileCache) -> None:
        """Test a simple round trip."""
        assert fallback.set("k", {"a": 1})
        assert fallback.get("k") == {"a": 1}
        assert fallback.exists("k")

    def test_missing_key(self, fallback: FileCache) -> None:
        """Test the default for unknown keys."""
        assert fallback.retrieve("missing") is None
        assert fallback.get("missing", "d") == "d"

    def test_files_live_under_prefix(self, fallback: FileCache, temp_dir: Path) -> None:
        """Test the on-disk location of entries."""
        fallback.set("k", "v")
        path = fallback.file("k")

        assert path.exists()
        assert path.parent.parent == temp_dir / "files" / "fallback"
        assert path.suffix == ".cache"

    def test_ttl(self, fallback: FileCache, clock: FakeClock) -> None:
        """Test that entries expire after their TTL."""
        fallback.set("k", "v", 1)

        clock.advance(59)
        assert fallback.get("k") == "v"

        clock.advance(1)
        assert fallback.get("k") is None

    def test_remove(self, fallback: FileCache) -> None:
        """Test removing present and missing keys."""
        fallback.set("k", "v")
        assert fallback.remove("k")
        assert fallback.get("k") is None
        assert fallback.remove("k")

    def test_flush_only_removes_cache_files(self, fallback: FileCache) -> None:
        """Test that other files in the directory survive a flush."""
        fallback.set("a", 1)
        fallback.set("b", 2)
        other = fallback.directory / "sqlitecache-1.sqlite"
        other.write_bytes(b"db")

        assert fallback.flush()

        assert fallback.get("a") is None
        assert fallback.get("b") is None
        assert other.exists()

    def test_options(self, fallback: FileCache, temp_dir: Path) -> None:
        """Test that options expose root and prefix."""
        assert fallback.options() == {
            "root": str(temp_dir / "files"),
            "prefix": "fallback",
        }

    def test_unreadable_file_discarded(self, fallback: FileCache) -> None:
        """Test that a corrupt entry reads as missing and is removed."""
        fallback.set("k", "v")
        path = fallback.file("k")
        path.write_bytes(b"{not json")

        assert fallback.retrieve("k") is None
        assert not path.exists()

    def test_no_prefix(self, temp_dir: Path) -> None:
        """Test a store without a prefix."""
        store = FileCache(temp_dir / "plain")
        store.set("k", "v")

        assert store.directory == temp_dir / "plain"
        assert store.get("k") == "v"
