"""Command-line interface for the cache driver."""
