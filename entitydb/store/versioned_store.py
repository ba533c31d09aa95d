"""
Versioned entity store.

Rows are (name, version) pairs: every insert under a name appends a new
immutable row whose version is one higher than the current maximum for that
name. Reads expose the latest version, a specific version or the full
history; deletes remove one version, the latest version or every version.

Version assignment:
    The MAX(version) read and the INSERT of the next version run inside one
    BEGIN IMMEDIATE transaction, so two writers can never observe the same
    maximum. If the unit still fails with a conflict (a uniqueness violation
    or a busy database) the whole unit is retried from the MAX read, up to
    max_retries times.

Invariants:
    - For each name, versions form the dense sequence 1..N
    - id = "<entityType>_<name>_<version>" and is unique per row
    - Rows are never updated; each version fully replaces the content
    - Absent names and versions are reported as None or 0 rows affected

How to change safely:
    - Keep the MAX read inside the same transaction as the INSERT
    - Only retry errors that _is_conflict() accepts; everything else must
      reach the caller unchanged
"""

from __future__ import annotations

import logging
import sqlite3
import time
from collections.abc import Iterable, Iterator, Mapping
from typing import Any

from ..database import Database
from ..errors import MisuseError
from ..schema import (
    ensure_schema,
    quote_identifier,
    table_name,
    validate_identifier,
    versioned_table_spec,
)
from .records import VersionRecord, dump_content, now_iso
from .validate import foreign_key_filter, validate_content, validate_foreign_keys, validate_name

logger = logging.getLogger(__name__)

DEFAULT_MAX_RETRIES = 5

_BUSY_MESSAGES = ("database is locked", "database is busy", "database table is locked")


def _is_conflict(error: sqlite3.Error) -> bool:
    """Whether a failed insert unit is worth retrying."""
    if isinstance(error, sqlite3.IntegrityError):
        return True
    if isinstance(error, sqlite3.OperationalError):
        message = str(error).lower()
        return any(busy in message for busy in _BUSY_MESSAGES)
    return False


class VersionedEntityStore:
    """Append-only versioned documents over one entity table.

    The store has no unversioned insert: calling insert() with content in
    place of a name raises MisuseError.

    Example:
        >>> configs = VersionedEntityStore(db, "Config", foreign_keys=["appId"])
        >>> configs.insert("limits", {"max_users": 10}, {"appId": "app_1"}).version
        1
        >>> configs.insert("limits", {"max_users": 20}, {"appId": "app_1"}).version
        2
        >>> configs.get("limits").content
        {'max_users': 20}
    """

    def __init__(
        self,
        db: Database,
        entity_type: str,
        foreign_keys: Iterable[str] = (),
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_delay_ms: int = 0,
        table_prefix: str = "entity",
    ) -> None:
        """Bind the store to a database and create its table.

        Args:
            db: Shared database; the store does not close it
            entity_type: Entity type, e.g. "Config"
            foreign_keys: Foreign-key column names required on every insert
            max_retries: Retries after a conflicting insert attempt
            retry_delay_ms: Delay between retries (0 = retry immediately)
            table_prefix: Prefix of the table name
        """
        if max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if retry_delay_ms < 0:
            raise ValueError("retry_delay_ms must be >= 0")

        self.db = db
        self.entity_type = validate_identifier(entity_type, "entity type")
        self.foreign_keys = tuple(foreign_keys)
        self.max_retries = max_retries
        self.retry_delay_ms = retry_delay_ms
        self.table = table_name(table_prefix, entity_type)
        self._table_sql = quote_identifier(self.table)
        self.spec = versioned_table_spec(self.table, self.foreign_keys)
        ensure_schema(self.db, self.spec)

    # ---- writes ---------------------------------------------------------

    def insert(
        self,
        name: str,
        content: Any = None,
        foreign_keys: Mapping[str, Any] | None = None,
    ) -> VersionRecord:
        """Append the next version of a named document.

        Args:
            name: Logical document name
            content: JSON-serializable document, stored as a full snapshot
            foreign_keys: Values for every declared foreign key. Columns are
                TEXT, so non-None values are read back as strings

        Returns:
            The inserted record, with content and foreign keys as supplied

        Raises:
            MisuseError: If called as insert(content, foreign_keys)
            ValidationError: If name, content or a foreign key is missing
            sqlite3.Error: If the insert still conflicts after max_retries
                retries, or fails for any other storage reason
        """
        if name is not None and not isinstance(name, str):
            raise MisuseError(
                "Versioned entities have no unversioned insert: "
                f"use insert(name, content, foreign_keys) on {self.entity_type}"
            )
        validate_name(name)
        validate_content(content)
        fk_values = validate_foreign_keys(self.foreign_keys, foreign_keys)
        payload = dump_content(content)

        attempt = 0
        while True:
            try:
                return self._insert_once(name, content, payload, fk_values)
            except sqlite3.Error as e:
                if not _is_conflict(e) or attempt >= self.max_retries:
                    raise
                attempt += 1
                logger.warning(
                    "Versioned insert conflicted, retrying",
                    extra={
                        "entity_type": self.entity_type,
                        "doc_name": name,
                        "attempt": attempt,
                        "max_retries": self.max_retries,
                        "error": str(e),
                    },
                )
                if self.retry_delay_ms:
                    time.sleep(self.retry_delay_ms / 1000.0)

    def _insert_once(
        self,
        name: str,
        content: Any,
        payload: str,
        fk_values: dict[str, Any],
    ) -> VersionRecord:
        """Read the current maximum version and insert the next one atomically."""
        with self.db.transaction() as conn:
            version = self._next_version(conn, name)
            record = VersionRecord(
                id=f"{self.entity_type}_{name}_{version}",
                type=self.entity_type,
                name=name,
                version=version,
                created_at=now_iso(),
                content=content,
                foreign_keys=fk_values,
            )
            self._write_version(conn, record, payload)

        logger.debug(
            "Inserted version",
            extra={
                "entity_type": self.entity_type,
                "doc_name": name,
                "version": record.version,
            },
        )
        return record

    def _next_version(self, conn: sqlite3.Connection, name: str) -> int:
        row = conn.execute(
            f"SELECT MAX(version) FROM {self._table_sql} WHERE name = ?",
            (name,),
        ).fetchone()
        return (row[0] or 0) + 1

    def _write_version(self, conn: sqlite3.Connection, record: VersionRecord, payload: str) -> None:
        columns = ["id", "type", "name", "version", "createdAt", *self.foreign_keys, "content"]
        column_sql = ", ".join(map(quote_identifier, columns))
        placeholders = ", ".join("?" for _ in columns)
        conn.execute(
            f"INSERT INTO {self._table_sql} ({column_sql}) VALUES ({placeholders})",
            (
                record.id,
                record.type,
                record.name,
                record.version,
                record.created_at,
                *record.foreign_keys.values(),
                payload,
            ),
        )

    # ---- reads ----------------------------------------------------------

    def get(self, name: str) -> VersionRecord | None:
        """Get the latest version of a document, or None if it has none."""
        row = self.db.execute(
            f"SELECT * FROM {self._table_sql} WHERE name = ? ORDER BY version DESC LIMIT 1",
            (name,),
        ).fetchone()
        if not row:
            return None
        return VersionRecord.from_row(row, self.foreign_keys)

    def get_version(self, name: str, version: int) -> VersionRecord | None:
        """Get one specific version of a document, or None."""
        row = self.db.execute(
            f"SELECT * FROM {self._table_sql} WHERE name = ? AND version = ? LIMIT 1",
            (name, version),
        ).fetchone()
        if not row:
            return None
        return VersionRecord.from_row(row, self.foreign_keys)

    def get_versions(self, name: str, limit: int = 10, offset: int = 0) -> list[VersionRecord]:
        """Get versions of a document, newest first.

        Args:
            name: Logical document name
            limit: Maximum versions to return
            offset: Pagination offset

        Returns:
            List of versions ordered by version descending
        """
        cursor = self.db.execute(
            f"SELECT * FROM {self._table_sql} WHERE name = ? ORDER BY version DESC LIMIT ? OFFSET ?",
            (name, limit, offset),
        )
        return [VersionRecord.from_row(row, self.foreign_keys) for row in cursor.fetchall()]

    def iter_versions(self, name: str, page_size: int = 100) -> Iterator[VersionRecord]:
        """Yield the full history of a document, newest first.

        Pages are fetched lazily with limit/offset; no cursor is held open
        between pages, so a fresh call always starts over from the latest
        version.
        """
        if page_size < 1:
            raise ValueError("page_size must be >= 1")
        offset = 0
        while True:
            page = self.get_versions(name, limit=page_size, offset=offset)
            yield from page
            if len(page) < page_size:
                return
            offset += page_size

    def count(self) -> int:
        """Number of distinct document names."""
        row = self.db.execute(f"SELECT COUNT(DISTINCT name) FROM {self._table_sql}").fetchone()
        return row[0]

    def get_all(self, limit: int = 10, offset: int = 0) -> list[str]:
        """List distinct document names, ordered by name."""
        cursor = self.db.execute(
            f"SELECT DISTINCT name FROM {self._table_sql} ORDER BY name LIMIT ? OFFSET ?",
            (limit, offset),
        )
        return [row["name"] for row in cursor.fetchall()]

    def find(
        self,
        foreign_keys: Mapping[str, Any],
        limit: int = 10,
        offset: int = 0,
    ) -> list[VersionRecord]:
        """Get versions whose foreign-key columns equal the given values.

        Args:
            foreign_keys: Declared foreign key -> value to match
            limit: Maximum rows to return
            offset: Pagination offset

        Returns:
            Matching rows ordered by name, newest version first
        """
        clause, params = foreign_key_filter(self.foreign_keys, foreign_keys)
        cursor = self.db.execute(
            f"""
            SELECT * FROM {self._table_sql}
            WHERE {clause}
            ORDER BY name, version DESC
            LIMIT ? OFFSET ?
            """,
            (*params, limit, offset),
        )
        return [VersionRecord.from_row(row, self.foreign_keys) for row in cursor.fetchall()]

    # ---- deletes --------------------------------------------------------

    def delete_version(self, name: str, version: int) -> int:
        """Delete one version of a document.

        Returns:
            Number of rows deleted (0 if the version does not exist)
        """
        cursor = self.db.execute(
            f"DELETE FROM {self._table_sql} WHERE name = ? AND version = ?",
            (name, version),
        )
        return cursor.rowcount

    def delete_all_versions(self, name: str) -> int:
        """Delete every version of a document.

        Returns:
            Number of rows deleted (0 if the name does not exist)
        """
        cursor = self.db.execute(f"DELETE FROM {self._table_sql} WHERE name = ?", (name,))
        return cursor.rowcount

    def delete(self, name: str) -> VersionRecord | None:
        """Delete the latest version of a document.

        Undoes the last insert under the name; older versions stay.

        Returns:
            The deleted record, or None if the name has no versions
        """
        with self.db.transaction() as conn:
            row = conn.execute(
                f"SELECT * FROM {self._table_sql} WHERE name = ? ORDER BY version DESC LIMIT 1",
                (name,),
            ).fetchone()
            if not row:
                return None
            conn.execute(f"DELETE FROM {self._table_sql} WHERE id = ?", (row["id"],))

        logger.debug(
            "Deleted latest version",
            extra={"entity_type": self.entity_type, "doc_name": name, "version": row["version"]},
        )
        return VersionRecord.from_row(row, self.foreign_keys)
