"""
Entity stores for EntityDB.

This module provides:
- EntityStore: unversioned documents addressed by generated id
- VersionedEntityStore: append-only versions of named documents
- EntityRecord / VersionRecord: rows returned by the stores

Both stores share table management (schema.py) and the caller-owned
Database, but neither derives from the other.

Invariants:
    - One table per entity type
    - Declared foreign keys are required on every insert
    - Versions of a name are the dense sequence 1..N
"""

from .entity_store import EntityStore
from .records import EntityRecord, VersionRecord
from .versioned_store import VersionedEntityStore

__all__ = [
    "EntityStore",
    "VersionedEntityStore",
    "EntityRecord",
    "VersionRecord",
]
