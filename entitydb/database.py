"""
Shared SQLite connection for EntityDB stores.

A Database owns exactly one sqlite3 connection. Every store constructed
against it holds a reference without owning it; the caller opens the
Database once, shares it and closes it on shutdown.

Invariants:
    - The connection runs in autocommit mode; multi-statement units use
      transaction(), which takes the write lock up front (BEGIN IMMEDIATE)
    - A failed transaction is always rolled back before the error propagates
    - Statements are parameterized; only validated identifiers are
      interpolated into SQL

How to change safely:
    - Keep pragmas compatible with concurrent readers (WAL)
    - Never swallow sqlite3 errors here; stores decide what is retryable
"""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from .config import StoreSettings
from .errors import DatabaseNotFoundError

logger = logging.getLogger(__name__)

MEMORY_PATH = ":memory:"


class Database:
    """Single SQLite connection shared by entity stores.

    Thread safety:
        A connection belongs to the thread that opened it. Concurrent
        writers open one Database each on the same file; SQLite serializes
        them through its own locking.

    Example:
        >>> with Database("/var/lib/app/entity.db") as db:
        ...     configs = VersionedEntityStore(db, "Config")
        ...     configs.insert("feature_flags", {"beta": True})
    """

    def __init__(
        self,
        path: str | Path = MEMORY_PATH,
        wal_mode: bool = True,
        busy_timeout_ms: int = 5000,
        create: bool = True,
    ) -> None:
        """Open the database.

        Args:
            path: Database file, or ":memory:"
            wal_mode: Enable WAL journal mode (ignored for in-memory databases)
            busy_timeout_ms: How long a statement waits on a locked database
            create: Create the file and its parent directory if missing

        Raises:
            DatabaseNotFoundError: If the file doesn't exist and create=False
        """
        self.path = str(path)
        self.busy_timeout_ms = busy_timeout_ms

        if self.path != MEMORY_PATH:
            if not create and not Path(self.path).exists():
                raise DatabaseNotFoundError(self.path)
            Path(self.path).parent.mkdir(parents=True, exist_ok=True)

        self._conn = sqlite3.connect(
            self.path,
            timeout=busy_timeout_ms / 1000.0,
            isolation_level=None,  # Autocommit by default, explicit transactions
        )
        self._conn.row_factory = sqlite3.Row

        self._conn.execute(f"PRAGMA busy_timeout = {int(busy_timeout_ms)}")
        if wal_mode and self.path != MEMORY_PATH:
            self._conn.execute("PRAGMA journal_mode = WAL")
        self._conn.execute("PRAGMA synchronous = NORMAL")

        logger.debug("Opened database", extra={"path": self.path, "wal_mode": wal_mode})

    @classmethod
    def from_settings(cls, settings: StoreSettings) -> Database:
        """Open the database described by settings."""
        return cls(
            settings.database_path,
            wal_mode=settings.wal_mode,
            busy_timeout_ms=settings.busy_timeout_ms,
        )

    @property
    def connection(self) -> sqlite3.Connection:
        return self._conn

    def execute(self, sql: str, params: Sequence[Any] = ()) -> sqlite3.Cursor:
        """Run one parameterized statement."""
        return self._conn.execute(sql, params)

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Run a block as one atomic unit.

        Commits when the block exits normally; rolls back and re-raises on
        any exception, including a failed COMMIT.

        Yields:
            The underlying connection
        """
        self._conn.execute("BEGIN IMMEDIATE")
        try:
            yield self._conn
            self._conn.execute("COMMIT")
        except Exception:
            if self._conn.in_transaction:
                self._conn.execute("ROLLBACK")
            raise

    def close(self) -> None:
        self._conn.close()
        logger.debug("Closed database", extra={"path": self.path})

    def __enter__(self) -> Database:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()
