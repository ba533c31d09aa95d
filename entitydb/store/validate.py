"""
Argument validation shared by the entity stores.

Every check here runs before the store touches the database, so a failed
validation never leaves a partial write behind.

Invariants:
    - Validation errors are deterministic
    - Foreign keys are checked for presence only; None is a valid value
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from ..errors import ValidationError
from ..schema import quote_identifier


def validate_name(name: Any) -> str:
    """Check that a document name is a non-blank string."""
    if not isinstance(name, str) or not name.strip():
        raise ValidationError(
            "Name must be a non-empty string and is required for versioned entities",
            field_name="name",
        )
    return name


def validate_content(content: Any) -> None:
    if content is None:
        raise ValidationError("Content is required", field_name="content")


def validate_foreign_keys(
    declared: tuple[str, ...],
    foreign_keys: Mapping[str, Any] | None,
) -> dict[str, Any]:
    """Check that every declared foreign key is present.

    Args:
        declared: Foreign keys configured for the entity type
        foreign_keys: Values supplied by the caller

    Returns:
        Values of the declared keys, in declaration order

    Raises:
        ValidationError: If a declared key is missing
    """
    supplied = foreign_keys or {}
    if not isinstance(supplied, Mapping):
        raise ValidationError("Foreign keys must be a mapping", field_name="foreign_keys")

    for key in declared:
        if key not in supplied:
            raise ValidationError(f"Missing foreign key: {key}", field_name=key)

    return {key: supplied[key] for key in declared}


def foreign_key_filter(
    declared: tuple[str, ...],
    filters: Mapping[str, Any],
) -> tuple[str, list[Any]]:
    """Build a WHERE clause matching foreign-key columns by equality.

    Only declared keys are accepted, so the column names interpolated into
    the clause are always validated identifiers.

    Returns:
        Tuple of (clause, params)
    """
    if not filters:
        raise ValidationError("At least one foreign key filter is required", field_name="foreign_keys")

    clauses: list[str] = []
    params: list[Any] = []
    for key, value in filters.items():
        if key not in declared:
            raise ValidationError(f"Unknown foreign key: {key}", field_name=key)
        if value is None:
            clauses.append(f"{quote_identifier(key)} IS NULL")
        else:
            clauses.append(f"{quote_identifier(key)} = ?")
            params.append(value)

    return " AND ".join(clauses), params
