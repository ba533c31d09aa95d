"""
Record types returned by the entity stores.
"""

from __future__ import annotations

import json
import sqlite3
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from ..errors import ValidationError


def now_iso() -> str:
    """Current UTC time as an ISO-8601 string."""
    return datetime.now(tz=timezone.utc).isoformat()


def dump_content(content: Any) -> str:
    """Serialize content to JSON.

    Raises:
        ValidationError: If content is not JSON serializable
    """
    try:
        return json.dumps(content)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"Content is not JSON serializable: {e}", field_name="content") from e


@dataclass
class EntityRecord:
    """One unversioned document.

    Attributes:
        id: Document identifier (UUID)
        type: Entity type
        created_at: Creation timestamp (ISO-8601, UTC)
        foreign_keys: Values of the declared foreign-key columns (strings or
            None once read back from the TEXT columns)
        content: Deserialized JSON content
    """

    id: str
    type: str
    created_at: str
    content: Any
    foreign_keys: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_row(cls, row: sqlite3.Row, foreign_keys: tuple[str, ...]) -> EntityRecord:
        return cls(
            id=row["id"],
            type=row["type"],
            created_at=row["createdAt"],
            content=json.loads(row["content"]),
            foreign_keys={key: row[key] for key in foreign_keys},
        )

    def to_dict(self) -> dict[str, Any]:
        """Flat mapping mirroring the stored row."""
        return {
            "id": self.id,
            "type": self.type,
            "createdAt": self.created_at,
            **self.foreign_keys,
            "content": self.content,
        }


@dataclass
class VersionRecord:
    """One immutable version of a named document.

    Attributes:
        id: Row identifier, "<type>_<name>_<version>"
        type: Entity type
        name: Logical document name shared by all its versions
        version: Version number, 1 for the first insert under a name
        created_at: Creation timestamp (ISO-8601, UTC)
        foreign_keys: Values of the declared foreign-key columns (strings or
            None once read back from the TEXT columns)
        content: Deserialized JSON content
    """

    id: str
    type: str
    name: str
    version: int
    created_at: str
    content: Any
    foreign_keys: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_row(cls, row: sqlite3.Row, foreign_keys: tuple[str, ...]) -> VersionRecord:
        return cls(
            id=row["id"],
            type=row["type"],
            name=row["name"],
            version=row["version"],
            created_at=row["createdAt"],
            content=json.loads(row["content"]),
            foreign_keys={key: row[key] for key in foreign_keys},
        )

    def to_dict(self) -> dict[str, Any]:
        """Flat mapping mirroring the stored row."""
        return {
            "id": self.id,
            "type": self.type,
            "name": self.name,
            "version": self.version,
            "createdAt": self.created_at,
            **self.foreign_keys,
            "content": self.content,
        }
