"""
SQLiteCache: a cache driver persisting entries in an embedded SQLite database.

A handle holds one connection for its lifetime and wraps that lifetime in a
single transaction. Construction opens the file (resetting it if corrupt),
applies the construct pragmas, prepares the statements, begins the
transaction, validates that the store round-trips data (or flushes it in
debug mode) and sweeps expired rows once. close() runs the registered
cleanup actions, commits, applies the destruct pragmas and closes the
connection.

Entries can additionally be mirrored in process (``store`` option) so that
repeated reads within one process do not fetch and decode the row again.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, NoReturn

import orjson

from cachedriver.cache.base import CacheDriver
from cachedriver.exceptions import (
    ConfigurationError,
    StatementFailedError,
    ValidationFailedError,
)
from cachedriver.logging import get_logger, log_context
from cachedriver.storage import (
    PragmaPhase,
    PragmaProfile,
    StatementSet,
    StorageHandle,
    TransactionEnvelope,
)
from cachedriver.types import (
    DB_EXTENSION,
    DB_FILENAME,
    DB_VERSION,
    VALIDATION_KEY,
    CacheOptions,
    CacheRow,
    Clock,
    DedupStrategy,
    ValidationState,
    ValueEnvelope,
)

logger = get_logger(__name__)


class SQLiteCache(CacheDriver):
    """Cache driver backed by a single SQLite file.

    Not safe for use from several threads; the exclusive locking mode keeps
    other processes out of the file until close().
    """

    def __init__(
        self,
        options: CacheOptions,
        fallback: CacheDriver,
        clock: Clock | None = None,
    ) -> None:
        """Open the database and prepare the handle for use.

        Args:
            options: Resolved cache options.
            fallback: Secondary store holding the validation marker; its
                root and prefix locate the database when options.root is unset.
            clock: Time source (defaults to time.time).

        Raises:
            ConfigurationError: If no database directory can be resolved.
            OpenFailedError: If the database could not be opened (it has
                been reset by then).
            ValidationFailedError: If the store does not round-trip data.
        """
        super().__init__(prefix=options.prefix, clock=clock)
        self._options = options
        self.fallback = fallback
        self.root = self._resolve_root()
        self.path = self.root / f"{DB_FILENAME}{DB_VERSION}.{DB_EXTENSION}"
        self.profile = PragmaProfile.for_version(
            construct=options.pragmas_construct,
            destruct=options.pragmas_destruct,
        )
        self.validation_state = ValidationState.UNVALIDATED
        self._store: dict[str, ValueEnvelope] = {}
        self._cleanups: list[Callable[[], None]] = []

        with log_context(store=self.path.name, operation="open"):
            self.handle = StorageHandle.open(
                self.path, self.profile, on_reset=self._invalidate_marker
            )
            try:
                self._statements = StatementSet.prepare(self.handle)
                self._transaction = TransactionEnvelope(self.handle.connection)
                self._transaction.begin()

                if options.debug:
                    self.flush()
                elif options.validate:
                    self.validate()

                self.garbagecollect()
            except BaseException:
                # Uncommitted work is rolled back when the connection closes
                self.handle.close()
                raise

    def __enter__(self) -> SQLiteCache:
        return self

    def __exit__(self, exc_type: object, exc: object, tb: object) -> None:
        self.close()

    def _resolve_root(self) -> Path:
        if self._options.root is not None:
            return Path(self._options.root)

        fallback_options = self.fallback.options()
        root = fallback_options.get("root")
        if not root:
            raise ConfigurationError(
                "No root directory for the cache database",
                context={"fallback": type(self.fallback).__name__},
            )
        prefix = fallback_options.get("prefix")
        return Path(root) / prefix if prefix else Path(root)

    def options(self) -> dict[str, Any]:
        return {
            "root": str(self.root),
            "prefix": self.prefix,
            "extension": DB_EXTENSION,
            "debug": self._options.debug,
            "store": self._options.store,
            "store-ignore": self._options.store_ignore,
            "validate": self._options.validate,
            "dedup": self._options.dedup.value,
            "pragmas-construct": list(self.profile.construct),
            "pragmas-destruct": list(self.profile.destruct),
        }

    def option(self, key: str | None = None) -> Any:
        """Get one option, or all of them when no key is given."""
        if key:
            return self.options().get(key)
        return self.options()

    # -- cache contract ---------------------------------------------------

    def get(self, key: str, default: Any = None) -> Any:
        """Get a value; always ``default`` in debug mode."""
        if self._options.debug:
            return default
        return super().get(key, default)

    def set(self, key: str, value: Any, minutes: int = 0) -> bool:
        """Store a value. Writes even in debug mode."""
        key = self.key(key)
        envelope = ValueEnvelope.create(value, minutes, now=self.now())
        data = envelope.to_json()

        try:
            if self._options.dedup == DedupStrategy.CHECK_THEN_BRANCH:
                if self._statements.select_row.fetchone(id=key) is not None:
                    self._statements.update.run(
                        id=key, expire_at=envelope.expire_at, data=data
                    )
                else:
                    self._statements.insert.run(
                        id=key, expire_at=envelope.expire_at, data=data
                    )
            else:
                self._statements.delete.run(id=key)
                self._statements.insert.run(
                    id=key, expire_at=envelope.expire_at, data=data
                )
        except StatementFailedError as e:
            self._store.pop(key, None)
            logger.error("Failed to store cache entry", key=key, error=str(e))
            return False

        if self._options.mirrors(key):
            self._store[key] = envelope
        return True

    def retrieve(self, key: str) -> ValueEnvelope | None:
        """Get the envelope for a key, or None if missing or expired."""
        key = self.key(key)

        envelope = self._store.get(key)
        if envelope is not None:
            if not envelope.is_expired(self.now()):
                return envelope
            del self._store[key]
            return None

        envelope = self._fetch(key)
        if envelope is not None and self._options.mirrors(key):
            self._store[key] = envelope
        return envelope

    def _fetch(self, key: str) -> ValueEnvelope | None:
        """Read a (prefixed) key from the database, skipping the mirror."""
        try:
            row = self._statements.select.fetchone(id=key, now=self.now())
        except StatementFailedError as e:
            logger.error("Failed to read cache entry", key=key, error=str(e))
            return None

        if row is None or not row[0]:
            return None

        try:
            return ValueEnvelope.from_json(row[0])
        except orjson.JSONDecodeError:
            logger.warning("Discarding undecodable cache entry", key=key)
            return None

    def remove(self, key: str) -> bool:
        key = self.key(key)
        self._store.pop(key, None)

        try:
            self._statements.delete.run(id=key)
        except StatementFailedError as e:
            logger.error("Failed to remove cache entry", key=key, error=str(e))
            return False
        return True

    def flush(self) -> bool:
        """Delete every row and re-validate the store.

        Raises:
            ValidationFailedError: If re-validation fails.
        """
        with log_context(operation="flush"):
            self._store.clear()
            self._invalidate_marker()

            try:
                deleted = self.handle.exec("DELETE FROM cache")
            except StatementFailedError as e:
                logger.error("Failed to flush cache", error=str(e))
                return False

            logger.info("Flushed cache", deleted=deleted)

            if self._options.validate and not self._options.debug:
                self.validate()
        return True

    def garbagecollect(self) -> bool:
        """Delete every row whose expiry has passed."""
        now = self.now()
        try:
            deleted = self.handle.exec(
                "DELETE FROM cache WHERE expire_at > 0 AND expire_at <= ?", (now,)
            )
        except StatementFailedError as e:
            logger.error("Garbage collection failed", error=str(e))
            return False

        for key in [k for k, v in self._store.items() if v.is_expired(now)]:
            del self._store[key]

        logger.debug("Garbage collected expired entries", deleted=deleted, now=now)
        return True

    # -- validation -------------------------------------------------------

    def validate(self) -> ValidationState:
        """Prove the store persists data by round-tripping a marker.

        A marker already confirmed in the fallback store only has to be read
        back, and must hold the same stamp as the fallback's copy. Otherwise
        a fresh stamp is written to this store, read back from the database
        and, once confirmed, recorded in the fallback.

        Raises:
            ValidationFailedError: If the marker cannot be written or the
                database does not return the stamp just written.
        """
        self.validation_state = ValidationState.VALIDATING
        marker = self.key(VALIDATION_KEY)

        confirmed = self.fallback.retrieve(VALIDATION_KEY)
        if confirmed is not None:
            stored = self._fetch(marker)
            if stored is not None and stored.value == confirmed.value:
                self.validation_state = ValidationState.VALIDATED
                logger.debug("Validation marker confirmed", marker=marker)
                return self.validation_state

        stamp = self.now()
        if not self.set(VALIDATION_KEY, stamp):
            self._fail_validation("the validation marker could not be written")

        stored = self._fetch(marker)
        if stored is None or stored.value != stamp:
            self._fail_validation("the validation marker was not read back")

        self.fallback.set(VALIDATION_KEY, stamp)
        self.validation_state = ValidationState.VALIDATED
        logger.info("Cache database validated", marker=marker)
        return self.validation_state

    def _fail_validation(self, reason: str) -> NoReturn:
        self.validation_state = ValidationState.FAILED
        logger.critical(
            "Cache database failed validation",
            reason=reason,
            path=str(self.path),
            sqlite_version=self.handle.sqlite_version,
        )
        raise ValidationFailedError(
            f"SQLite cache did not persist data: {reason}. "
            "Check the SQLite library version and the construct pragmas.",
            context={
                "reason": reason,
                "path": str(self.path),
                "sqlite_version": self.handle.sqlite_version,
                "pragmas": list(self.profile.construct),
            },
        )

    def _invalidate_marker(self) -> None:
        self.fallback.remove(VALIDATION_KEY)

    # -- transactions and pragmas -----------------------------------------

    def begin_transaction(self) -> None:
        """Open the envelope transaction (counts nested calls)."""
        self._transaction.begin()

    def end_transaction(self) -> None:
        """Commit the envelope transaction."""
        self._transaction.end()

    def transactions_count(self) -> int:
        """Number of begin calls since the last commit."""
        return self._transaction.count

    def apply_pragmas(self, phase: PragmaPhase) -> list[str]:
        """Re-apply a pragma list; returns the pragmas that failed."""
        return self.profile.apply(self.handle.connection, phase)

    # -- diagnostics ------------------------------------------------------

    def row(self, key: str) -> CacheRow | None:
        """Get the raw row for a key, expired or not."""
        row = self._statements.select_row.fetchone(id=self.key(key))
        if row is None:
            return None
        return CacheRow(id=row[0], expire_at=row[1] or 0, data=row[2])

    def count(self) -> int:
        """Number of rows, expired ones included."""
        row = self._statements.count.fetchone()
        return row[0] if row else 0

    def mirrored(self, key: str) -> bool:
        """Check whether a key is held in the in-process mirror."""
        return self.key(key) in self._store

    # -- teardown ---------------------------------------------------------

    def on_close(self, callback: Callable[[], None]) -> None:
        """Register an action to run, in registration order, on close()."""
        self._cleanups.append(callback)

    @property
    def closed(self) -> bool:
        """Whether the handle has been closed."""
        return self.handle.closed

    def close(self) -> None:
        """Run cleanup actions, commit, apply destruct pragmas, disconnect.

        The connection is always closed. If a cleanup action raised, the
        first such error is re-raised once teardown has finished.
        """
        if self.handle.closed:
            return

        with log_context(store=self.path.name, operation="close"):
            try:
                self._run_cleanups()
            finally:
                try:
                    self._transaction.end()
                    self.apply_pragmas(PragmaPhase.DESTRUCT)
                finally:
                    self._statements.close()
                    self.handle.close()

    def _run_cleanups(self) -> None:
        callbacks, self._cleanups = self._cleanups, []
        first_error: Exception | None = None
        for callback in callbacks:
            try:
                callback()
            except Exception as e:
                logger.exception("Cleanup action failed")
                if first_error is None:
                    first_error = e
        if first_error is not None:
            raise first_error
