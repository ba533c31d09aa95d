"""
Error types for EntityDB.

This module defines the exception types raised by the stores:
- EntityDbError: Base exception
- ValidationError: Caller supplied an invalid name, content or foreign keys
- MisuseError: Unversioned insert form called on a versioned store
- SchemaError: Unsafe table or column identifiers
- DatabaseNotFoundError: Database file missing when opened without create

Storage failures are not wrapped: sqlite3 errors reach the caller as-is.
Absence of a document is signalled with None, never with an exception.

Invariants:
    - All errors inherit from EntityDbError
    - Validation and misuse errors are raised before any storage access
    - Error messages are actionable
"""

from __future__ import annotations

from typing import Any


class EntityDbError(Exception):
    """Base exception for all EntityDB errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or "ENTITYDB_ERROR"
        self.details = details or {}


class ValidationError(EntityDbError):
    """Insert arguments failed validation.

    Raised when:
    - Name is missing, not a string or blank
    - Content is missing
    - A declared foreign key is absent
    - Content cannot be serialized to JSON
    """

    def __init__(
        self,
        message: str,
        field_name: str | None = None,
        code: str = "VALIDATION_ERROR",
    ) -> None:
        super().__init__(
            message,
            code=code,
            details={"field": field_name},
        )
        self.field_name = field_name


class MisuseError(ValidationError):
    """Versioned store called with the unversioned insert signature."""

    def __init__(self, message: str) -> None:
        super().__init__(message, field_name="name", code="MISUSE_ERROR")


class SchemaError(EntityDbError):
    """Table or column definition is unsafe or inconsistent.

    Raised when:
    - Entity type or foreign key is not a plain SQL identifier
    - A foreign key reuses a reserved column name
    - A foreign key is declared twice
    """

    def __init__(self, message: str, identifier: str | None = None) -> None:
        super().__init__(
            message,
            code="SCHEMA_ERROR",
            details={"identifier": identifier},
        )
        self.identifier = identifier


class DatabaseNotFoundError(EntityDbError):
    """Database file does not exist and was opened with create=False."""

    def __init__(self, path: str) -> None:
        super().__init__(
            f"Database not found: {path}",
            code="DATABASE_NOT_FOUND",
            details={"path": path},
        )
        self.path = path
