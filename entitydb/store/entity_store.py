"""
Unversioned entity store.

Each document is a single row with a generated UUID, a creation timestamp,
the declared foreign-key columns and a JSON content blob. Documents are
inserted, read, listed and deleted by id; there is no update.

Invariants:
    - The table and indexes exist before the first read or write
    - Every declared foreign key is present on every insert
    - Content is stored and returned verbatim (as JSON)
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable, Mapping
from typing import Any

from ..database import Database
from ..schema import (
    ensure_schema,
    entity_table_spec,
    quote_identifier,
    table_name,
    validate_identifier,
)
from .records import EntityRecord, dump_content, now_iso
from .validate import foreign_key_filter, validate_content, validate_foreign_keys

logger = logging.getLogger(__name__)


class EntityStore:
    """Point CRUD over one entity table.

    Example:
        >>> users = EntityStore(db, "User", foreign_keys=["orgId"])
        >>> user = users.insert({"email": "a@example.com"}, {"orgId": "org_1"})
        >>> users.get(user.id).content["email"]
        'a@example.com'
    """

    def __init__(
        self,
        db: Database,
        entity_type: str,
        foreign_keys: Iterable[str] = (),
        table_prefix: str = "entity",
    ) -> None:
        """Bind the store to a database and create its table.

        Args:
            db: Shared database; the store does not close it
            entity_type: Entity type, e.g. "User"
            foreign_keys: Foreign-key column names required on every insert
            table_prefix: Prefix of the table name
        """
        self.db = db
        self.entity_type = validate_identifier(entity_type, "entity type")
        self.foreign_keys = tuple(foreign_keys)
        self.table = table_name(table_prefix, entity_type)
        self._table_sql = quote_identifier(self.table)
        self.spec = entity_table_spec(self.table, self.foreign_keys)
        ensure_schema(self.db, self.spec)

    def insert(
        self,
        content: Any,
        foreign_keys: Mapping[str, Any] | None = None,
    ) -> EntityRecord:
        """Insert a new document.

        Args:
            content: JSON-serializable document
            foreign_keys: Values for every declared foreign key. Columns are
                TEXT, so non-None values are read back as strings

        Returns:
            The inserted record, with content and foreign keys as supplied

        Raises:
            ValidationError: If content or a foreign key is missing
        """
        validate_content(content)
        fk_values = validate_foreign_keys(self.foreign_keys, foreign_keys)
        payload = dump_content(content)

        record = EntityRecord(
            id=str(uuid.uuid4()),
            type=self.entity_type,
            created_at=now_iso(),
            content=content,
            foreign_keys=fk_values,
        )

        columns = ["id", "type", "createdAt", *self.foreign_keys, "content"]
        column_sql = ", ".join(map(quote_identifier, columns))
        placeholders = ", ".join("?" for _ in columns)
        self.db.execute(
            f"INSERT INTO {self._table_sql} ({column_sql}) VALUES ({placeholders})",
            (record.id, record.type, record.created_at, *fk_values.values(), payload),
        )

        logger.debug(
            "Inserted entity",
            extra={"entity_type": self.entity_type, "id": record.id},
        )
        return record

    def get(self, id: str) -> EntityRecord | None:
        """Get a document by id, or None if it does not exist."""
        row = self.db.execute(f"SELECT * FROM {self._table_sql} WHERE id = ?", (id,)).fetchone()
        if not row:
            return None
        return EntityRecord.from_row(row, self.foreign_keys)

    def count(self) -> int:
        row = self.db.execute(f"SELECT COUNT(*) FROM {self._table_sql}").fetchone()
        return row[0]

    def get_all(self, limit: int = 10, offset: int = 0) -> list[str]:
        """List document ids in insertion order.

        Args:
            limit: Maximum ids to return
            offset: Pagination offset

        Returns:
            List of ids
        """
        cursor = self.db.execute(
            f"SELECT id FROM {self._table_sql} ORDER BY rowid LIMIT ? OFFSET ?",
            (limit, offset),
        )
        return [row["id"] for row in cursor.fetchall()]

    def find(
        self,
        foreign_keys: Mapping[str, Any],
        limit: int = 10,
        offset: int = 0,
    ) -> list[EntityRecord]:
        """Get documents whose foreign-key columns equal the given values.

        Args:
            foreign_keys: Declared foreign key -> value to match
            limit: Maximum documents to return
            offset: Pagination offset

        Returns:
            List of matching documents in insertion order
        """
        clause, params = foreign_key_filter(self.foreign_keys, foreign_keys)
        cursor = self.db.execute(
            f"SELECT * FROM {self._table_sql} WHERE {clause} ORDER BY rowid LIMIT ? OFFSET ?",
            (*params, limit, offset),
        )
        return [EntityRecord.from_row(row, self.foreign_keys) for row in cursor.fetchall()]

    def delete(self, id: str) -> int:
        """Delete a document by id.

        Returns:
            Number of rows deleted (0 if the id does not exist)
        """
        cursor = self.db.execute(f"DELETE FROM {self._table_sql} WHERE id = ?", (id,))
        return cursor.rowcount
