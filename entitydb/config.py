"""
Configuration management for EntityDB.

Settings come from environment variables prefixed with ENTITYDB_ and fall
back to defaults suitable for local development.

Invariants:
    - All settings have defaults
    - Retry settings are never negative

How to change safely:
    - Add new settings with defaults that keep existing behaviour
    - Keep the ENTITYDB_ prefix for every variable
"""

from __future__ import annotations

import logging
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class StoreSettings(BaseSettings):
    """EntityDB configuration.

    Attributes:
        database_path: SQLite database file (":memory:" for a private in-memory db)
        table_prefix: Prefix of every entity table name
        max_retries: Retries after a conflicting versioned insert
        retry_delay_ms: Delay between insert retries (0 = retry immediately)
        wal_mode: Enable SQLite WAL journal mode for file databases
        busy_timeout_ms: SQLite busy timeout
        log_level: Logging level for the command-line tools
        log_format: Log format (text, json)
    """

    database_path: str = Field(default="entity.db")
    table_prefix: str = Field(default="entity")

    max_retries: int = Field(default=5, ge=0)
    retry_delay_ms: int = Field(default=0, ge=0)

    wal_mode: bool = Field(default=True)
    busy_timeout_ms: int = Field(default=5000, ge=0)

    log_level: str = Field(default="INFO")
    log_format: Literal["text", "json"] = Field(default="text")

    model_config = SettingsConfigDict(env_prefix="ENTITYDB_")

    def log_config(self) -> None:
        """Log the effective configuration."""
        logger.info(
            "EntityDB configuration loaded",
            extra={
                "database_path": self.database_path,
                "table_prefix": self.table_prefix,
                "max_retries": self.max_retries,
                "retry_delay_ms": self.retry_delay_ms,
                "wal_mode": self.wal_mode,
            },
        )
