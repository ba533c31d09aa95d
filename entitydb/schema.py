"""
Table and index management for entity tables.

Each entity type maps to one table named ``<prefix>_<entityType>`` holding
identity and timestamp columns, one TEXT column per declared foreign key,
and the JSON content. Table, column and index names are built from caller
configuration and interpolated into SQL, so they are validated here before
any statement runs and double-quoted wherever they appear in a statement.

Table layouts:
    entity (unversioned):
        - id TEXT PRIMARY KEY
        - type TEXT
        - createdAt TEXT
        - <foreign keys> TEXT
        - content TEXT (JSON)
        - INDEX on type and each foreign key

    versioned:
        - id TEXT PRIMARY KEY ("<type>_<name>_<version>")
        - type TEXT
        - name TEXT
        - version INTEGER
        - createdAt TEXT
        - <foreign keys> TEXT
        - content TEXT (JSON)
        - INDEX on type, name, version and each foreign key

Invariants:
    - ensure_schema is idempotent (CREATE ... IF NOT EXISTS only)
    - Schemas are append-only: nothing is dropped or altered
    - Column names are unique ignoring case, as SQLite compares them

How to change safely:
    - New columns need a migration; CREATE TABLE IF NOT EXISTS will not
      add them to existing tables
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass

from .database import Database
from .errors import SchemaError

logger = logging.getLogger(__name__)

IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

ENTITY_COLUMNS = ("id", "type", "createdAt", "content")
VERSIONED_COLUMNS = ("id", "type", "name", "version", "createdAt", "content")


def validate_identifier(value: str, kind: str = "identifier") -> str:
    """Check that a value is safe to use as an SQL identifier.

    Args:
        value: Candidate table, column or type name
        kind: What the value names, for the error message

    Returns:
        The value unchanged

    Raises:
        SchemaError: If the value is not a plain identifier
    """
    if not isinstance(value, str) or not IDENTIFIER_RE.match(value):
        raise SchemaError(
            f"Invalid {kind} {value!r}: use letters, digits and underscores, "
            "not starting with a digit",
            identifier=str(value),
        )
    return value


def quote_identifier(value: str) -> str:
    """Double-quote a validated identifier so SQL keywords are usable as names."""
    return f'"{validate_identifier(value)}"'


def table_name(prefix: str, entity_type: str) -> str:
    """Physical table name for an entity type."""
    return validate_identifier(f"{prefix}_{entity_type}", "table name")


def table_columns(db: Database, table: str) -> list[str]:
    """Column names of an existing table; empty if the table is missing.

    Reads the catalog only, so nothing is created.
    """
    cursor = db.execute(f"PRAGMA table_info({quote_identifier(table)})")
    return [row["name"] for row in cursor.fetchall()]


@dataclass(frozen=True)
class TableSpec:
    """Physical shape of one entity table.

    Attributes:
        table: Table name
        columns: Ordered (column, SQL type) pairs; the first is the primary key
        indexed: Columns that get a secondary index
    """

    table: str
    columns: tuple[tuple[str, str], ...]
    indexed: tuple[str, ...]

    @property
    def column_names(self) -> tuple[str, ...]:
        return tuple(name for name, _ in self.columns)

    def create_table_sql(self) -> str:
        pk_name, pk_type = self.columns[0]
        defs = [f"{quote_identifier(pk_name)} {pk_type} PRIMARY KEY"]
        defs.extend(f"{quote_identifier(name)} {sql_type}" for name, sql_type in self.columns[1:])
        return f"CREATE TABLE IF NOT EXISTS {quote_identifier(self.table)} ({', '.join(defs)})"

    def create_index_sql(self) -> list[str]:
        table = quote_identifier(self.table)
        return [
            f"CREATE INDEX IF NOT EXISTS {quote_identifier(f'{self.table}_{column}_idx')} "
            f"ON {table}({quote_identifier(column)})"
            for column in self.indexed
        ]


def _check_foreign_keys(foreign_keys: Iterable[str], reserved: tuple[str, ...]) -> tuple[str, ...]:
    keys = tuple(foreign_keys)
    # SQLite column names are case-insensitive
    reserved_lower = {column.lower() for column in reserved}
    seen: set[str] = set()
    for key in keys:
        validate_identifier(key, "foreign key")
        if key.lower() in reserved_lower:
            raise SchemaError(f"Foreign key {key!r} clashes with a reserved column", identifier=key)
        if key.lower() in seen:
            raise SchemaError(f"Foreign key {key!r} declared more than once", identifier=key)
        seen.add(key.lower())
    return keys


def entity_table_spec(table: str, foreign_keys: Iterable[str] = ()) -> TableSpec:
    """Table shape for unversioned entities."""
    keys = _check_foreign_keys(foreign_keys, ENTITY_COLUMNS)
    columns = (
        ("id", "TEXT"),
        ("type", "TEXT"),
        ("createdAt", "TEXT"),
        *((key, "TEXT") for key in keys),
        ("content", "TEXT"),
    )
    return TableSpec(validate_identifier(table, "table name"), columns, ("type", *keys))


def versioned_table_spec(table: str, foreign_keys: Iterable[str] = ()) -> TableSpec:
    """Table shape for versioned entities."""
    keys = _check_foreign_keys(foreign_keys, VERSIONED_COLUMNS)
    columns = (
        ("id", "TEXT"),
        ("type", "TEXT"),
        ("name", "TEXT"),
        ("version", "INTEGER"),
        ("createdAt", "TEXT"),
        *((key, "TEXT") for key in keys),
        ("content", "TEXT"),
    )
    return TableSpec(
        validate_identifier(table, "table name"),
        columns,
        ("type", "name", "version", *keys),
    )


def ensure_schema(db: Database, spec: TableSpec) -> None:
    """Create the table and its indexes if they do not exist yet.

    Safe to call any number of times, including inside a caller's
    transaction: the statements join that transaction and commit or roll
    back with it.

    Args:
        db: Database to create the table in
        spec: Table shape
    """
    for statement in [spec.create_table_sql(), *spec.create_index_sql()]:
        db.execute(statement)
    logger.debug(
        "Ensured table schema",
        extra={"table": spec.table, "indexes": list(spec.indexed)},
    )
