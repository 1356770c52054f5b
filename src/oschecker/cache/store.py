# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Transactional key/value store for cached invocation results."""

from __future__ import annotations

import logging
import sqlite3
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from pathlib import Path
from types import TracebackType
from typing import Final

from ..errors import CacheError, CacheOpenError
from .keys import CacheKey
from .values import CacheValue, now_millis

LOGGER = logging.getLogger(__name__)

BUSY_TIMEOUT_MS: Final[int] = 30_000

_SCHEMA: Final[str] = """
CREATE TABLE IF NOT EXISTS cache (
    key BLOB PRIMARY KEY,
    scope BLOB NOT NULL,
    updated INTEGER NOT NULL,
    value BLOB NOT NULL
) WITHOUT ROWID;
CREATE INDEX IF NOT EXISTS cache_scope ON cache (scope, updated);
"""

Updater = Callable[[CacheValue | None], CacheValue]


class CacheStore:
    """Durable mapping from :class:`CacheKey` to :class:`CacheValue`.

    The store runs SQLite in WAL mode: readers see the last committed
    snapshot and never wait for a writer, while writers take the database
    lock up front with ``BEGIN IMMEDIATE`` so read-modify-write cycles are
    serialized. One connection is shared by the worker threads of a run and
    guarded by a lock.
    """

    def __init__(self, connection: sqlite3.Connection, *, path: Path | None = None) -> None:
        self._conn = connection
        self._lock = threading.RLock()
        self.path = path

    @classmethod
    def open(cls, path: Path) -> CacheStore:
        """Open or create the store at ``path``.

        Args:
            path: Database file; parent directories are created.

        Returns:
            CacheStore: Open store.

        Raises:
            CacheOpenError: If the file cannot be opened or is not a cache.
        """

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(path, timeout=BUSY_TIMEOUT_MS / 1000, isolation_level=None, check_same_thread=False)
            conn.execute("PRAGMA journal_mode = WAL")
            conn.execute("PRAGMA synchronous = NORMAL")
            conn.execute(f"PRAGMA busy_timeout = {BUSY_TIMEOUT_MS}")
            conn.executescript(_SCHEMA)
        except (OSError, sqlite3.Error) as exc:
            raise CacheOpenError(f"unable to open cache database {path}: {exc}") from exc
        LOGGER.debug("opened cache database %s", path)
        return cls(conn, path=path)

    @classmethod
    def in_memory(cls) -> CacheStore:
        """Return a store that lives only as long as the process."""

        conn = sqlite3.connect(":memory:", isolation_level=None, check_same_thread=False)
        conn.executescript(_SCHEMA)
        return cls(conn)

    @contextmanager
    def _write(self) -> Iterator[sqlite3.Connection]:
        with self._lock:
            try:
                self._conn.execute("BEGIN IMMEDIATE")
            except sqlite3.Error as exc:
                raise CacheError(f"unable to start cache transaction: {exc}") from exc
            try:
                yield self._conn
            except BaseException:
                self._conn.execute("ROLLBACK")
                raise
            try:
                self._conn.execute("COMMIT")
            except sqlite3.Error as exc:
                self._conn.execute("ROLLBACK")
                raise CacheError(f"unable to commit cache transaction: {exc}") from exc

    def _read_value(self, conn: sqlite3.Connection, key: bytes) -> CacheValue | None:
        try:
            row = conn.execute("SELECT value FROM cache WHERE key = ?", (key,)).fetchone()
        except sqlite3.Error as exc:
            raise CacheError(f"unable to read cache entry: {exc}") from exc
        return None if row is None else CacheValue.from_bytes(row[0])

    def _put(self, conn: sqlite3.Connection, key: CacheKey, value: CacheValue) -> None:
        try:
            conn.execute(
                "INSERT OR REPLACE INTO cache (key, scope, updated, value) VALUES (?, ?, ?, ?)",
                (key.encode(), key.scope(), value.unix_timestamp_milli, value.to_bytes()),
            )
        except sqlite3.Error as exc:
            raise CacheError(f"unable to write cache entry: {exc}") from exc

    def get(self, key: CacheKey) -> CacheValue | None:
        """Return the committed value for ``key``.

        Raises:
            CacheError: If the entry cannot be read or decoded.
        """

        with self._lock:
            return self._read_value(self._conn, key.encode())

    def set(self, key: CacheKey, value: CacheValue) -> None:
        """Insert or overwrite ``key`` in one transaction."""

        with self._write() as conn:
            self._put(conn, key, value)

    def set_or_replace(self, key: CacheKey, update: Updater) -> CacheValue:
        """Atomically replace the value of ``key`` with ``update(old)``.

        Args:
            key: Entry to rewrite.
            update: Receives the current value (``None`` when absent) and
                returns the new one.

        Returns:
            CacheValue: Value written, stamped with the commit time.

        Raises:
            CacheError: If the entry cannot be read, decoded or written. The
                transaction is rolled back and the old value stays visible.
        """

        with self._write() as conn:
            old = self._read_value(conn, key.encode())
            new = update(old).model_copy(update={"unix_timestamp_milli": now_millis()})
            self._put(conn, key, new)
        return new

    def get_latest_in_scope(self, key: CacheKey) -> CacheValue | None:
        """Return the most recently written value sharing ``key``'s scope."""

        with self._lock:
            try:
                row = self._conn.execute(
                    "SELECT value FROM cache WHERE scope = ? ORDER BY updated DESC LIMIT 1",
                    (key.scope(),),
                ).fetchone()
            except sqlite3.Error as exc:
                raise CacheError(f"unable to read cache entry: {exc}") from exc
        return None if row is None else CacheValue.from_bytes(row[0])

    def keys(self) -> list[CacheKey]:
        """Return every stored key in byte order."""

        with self._lock:
            rows = self._conn.execute("SELECT key FROM cache ORDER BY key").fetchall()
        return [CacheKey.decode(row[0]) for row in rows]

    def __len__(self) -> int:
        with self._lock:
            (count,) = self._conn.execute("SELECT COUNT(*) FROM cache").fetchone()
        return int(count)

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    def __enter__(self) -> CacheStore:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()


__all__ = ["BUSY_TIMEOUT_MS", "CacheStore", "Updater"]
