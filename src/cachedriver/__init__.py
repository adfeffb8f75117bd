"""SQLite-backed persistent key-value cache driver."""

__version__ = "1.0.0"
