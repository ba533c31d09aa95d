"""
EntityDB - hybrid relational/JSON document storage on SQLite.

Each entity type is one SQLite table pairing relational metadata (identity,
timestamps, foreign-key columns) with schema-less JSON content:
- EntityStore keeps one row per document
- VersionedEntityStore keeps every version of a named document and assigns
  version numbers safely under concurrent writers

Example:
    >>> from entitydb import Database, VersionedEntityStore
    >>>
    >>> with Database("app.db") as db:
    ...     configs = VersionedEntityStore(db, "Config", foreign_keys=["appId"])
    ...     configs.insert("limits", {"max_users": 10}, {"appId": "app_1"})
    ...     latest = configs.get("limits")

Invariants:
    - The caller owns the Database; stores never close it
    - Storage errors reach the caller unchanged, except retried insert conflicts
    - Missing documents are None, never exceptions

How to change safely:
    - Tables are append-only; never drop or alter columns in place
    - Entity types and foreign keys are SQL identifiers, keep them validated
"""

__version__ = "0.1.0"

from .config import StoreSettings
from .database import Database
from .errors import (
    DatabaseNotFoundError,
    EntityDbError,
    MisuseError,
    SchemaError,
    ValidationError,
)
from .schema import TableSpec, ensure_schema
from .store import EntityRecord, EntityStore, VersionedEntityStore, VersionRecord

__all__ = [
    # Version
    "__version__",
    # Storage
    "Database",
    "StoreSettings",
    "TableSpec",
    "ensure_schema",
    # Stores
    "EntityStore",
    "VersionedEntityStore",
    "EntityRecord",
    "VersionRecord",
    # Errors
    "EntityDbError",
    "ValidationError",
    "MisuseError",
    "SchemaError",
    "DatabaseNotFoundError",
]
