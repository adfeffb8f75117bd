"""
CLI for the SQLite cache driver.

Commands:
    cachedriver benchmark - Compare the SQLite driver with the file fallback
    cachedriver gc - Delete expired rows
    cachedriver flush - Delete all rows and re-validate
    cachedriver config - Show current configuration
    cachedriver version - Print version
"""

from __future__ import annotations

import secrets
import string
import time
from typing import Annotated

import typer
from rich.console import Console
from rich.table import Table

from cachedriver import __version__
from cachedriver.cache import SQLiteCache, open_cache
from cachedriver.cache.base import CacheDriver
from cachedriver.config import Settings, clear_settings_cache, get_settings
from cachedriver.exceptions import CacheError
from cachedriver.logging import setup_logging
from cachedriver.storage import PragmaPhase

app = typer.Typer(
    name="cachedriver",
    help="SQLite cache driver - persistent key-value cache diagnostics",
    no_args_is_help=True,
)

console = Console()
error_console = Console(stderr=True)

BENCHMARK_PREFIX = "feather-benchmark-"
_ALPHABET = string.ascii_letters + string.digits


def random_string(length: int = 1000) -> str:
    """Random alphanumeric payload for benchmarks."""
    return "".join(secrets.choice(_ALPHABET) for _ in range(length))


def _get_settings_safe() -> Settings | None:
    """Get settings, returning None if configuration is invalid."""
    try:
        clear_settings_cache()
        return get_settings()
    except Exception:
        return None


def _open(settings: Settings) -> SQLiteCache:
    try:
        return open_cache(settings)
    except CacheError as e:
        error_console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)


def _load_settings() -> Settings:
    settings = _get_settings_safe()
    if settings is None:
        error_console.print(
            "[red]Error:[/red] Configuration is invalid. "
            "Run 'cachedriver config' to see what's wrong."
        )
        raise typer.Exit(1)
    setup_logging(settings.LOG_LEVEL, settings.LOG_FILE)
    return settings


def run_benchmark(sqlite: SQLiteCache, file: CacheDriver, count: int) -> dict[str, float]:
    """Time the same workload against both drivers.

    get-or-set ``count`` keys, remove the 60-80% band, rewrite the 80-100%
    band. The SQLite run is wrapped in an explicit transaction and the
    pragma profile is cycled afterwards.

    Returns:
        Elapsed seconds per driver label.
    """
    timings: dict[str, float] = {}

    for label, driver in (("sqlite", sqlite), ("file", file)):
        started = time.perf_counter()
        if label == "sqlite":
            sqlite.begin_transaction()

        for i in range(count):
            key = f"{BENCHMARK_PREFIX}{i}"
            if not driver.get(key):
                driver.set(key, random_string())
        for i in range(int(count * 0.6), int(count * 0.8)):
            driver.remove(f"{BENCHMARK_PREFIX}{i}")
        for i in range(int(count * 0.8), count):
            driver.set(f"{BENCHMARK_PREFIX}{i}", random_string())

        if label == "sqlite":
            sqlite.end_transaction()
            sqlite.apply_pragmas(PragmaPhase.DESTRUCT)
            sqlite.apply_pragmas(PragmaPhase.CONSTRUCT)
            sqlite.begin_transaction()

        timings[label] = time.perf_counter() - started

    for driver in (sqlite, file):
        for i in range(count):
            driver.remove(f"{BENCHMARK_PREFIX}{i}")

    return timings


@app.command()
def benchmark(
    count: Annotated[
        int,
        typer.Option("--count", "-c", min=1, help="Number of keys to write"),
    ] = 10,
) -> None:
    """Compare the SQLite driver with the file fallback store."""
    settings = _load_settings()
    cache = _open(settings)
    try:
        timings = run_benchmark(cache, cache.fallback, count)
    finally:
        cache.close()

    table = Table(title=f"Benchmark ({count} keys)", show_header=True)
    table.add_column("Driver", style="cyan")
    table.add_column("Seconds", style="green", justify="right")
    for label, seconds in timings.items():
        table.add_row(label, f"{seconds:.4f}")
    console.print(table)


@app.command()
def gc() -> None:
    """Delete expired rows."""
    settings = _load_settings()
    cache = _open(settings)
    try:
        ok = cache.garbagecollect()
        remaining = cache.count()
    finally:
        cache.close()

    if not ok:
        error_console.print("[red]Garbage collection failed.[/red]")
        raise typer.Exit(1)
    console.print(f"Garbage collected. [bold]{remaining}[/bold] rows remain.")


@app.command()
def flush() -> None:
    """Delete all rows and re-validate the store."""
    settings = _load_settings()
    cache = _open(settings)
    try:
        ok = cache.flush()
    except CacheError as e:
        error_console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)
    finally:
        cache.close()

    if not ok:
        error_console.print("[red]Flush failed.[/red]")
        raise typer.Exit(1)
    console.print("Cache flushed.")


@app.command()
def config() -> None:
    """Show current configuration."""
    console.print()
    console.print("[bold]Cache Driver Configuration[/bold]")
    console.print()

    settings = _get_settings_safe()
    if settings is None:
        error_console.print("[red]Configuration is invalid.[/red]")
        error_console.print()
        error_console.print("Check the CACHE_* environment variables:")
        error_console.print("  - CACHE_PRAGMAS_CONSTRUCT / CACHE_PRAGMAS_DESTRUCT")
        error_console.print("    must be JSON lists of PRAGMA statements")
        error_console.print("  - CACHE_DEDUP must be delete_then_insert or check_then_branch")
        raise typer.Exit(1)

    table = Table(title="Settings", show_header=True)
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    for key, value in settings.redacted_display().items():
        display_value = str(value) if value is not None else "[dim]not set[/dim]"
        table.add_row(key, display_value)

    console.print(table)
    console.print()


@app.command()
def version() -> None:
    """Print the version number."""
    console.print(f"cachedriver version {__version__}")


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
