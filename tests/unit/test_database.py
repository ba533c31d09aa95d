"""
Unit tests for the shared database connection and configuration.
"""

import logging
import sqlite3

import pytest
from pydantic import ValidationError as SettingsValidationError

from entitydb.config import StoreSettings
from entitydb.database import Database
from entitydb.errors import DatabaseNotFoundError


class TestTransaction:
    """Tests for Database.transaction."""

    @pytest.fixture
    def db(self):
        database = Database(":memory:")
        database.execute("CREATE TABLE items (id TEXT PRIMARY KEY)")
        yield database
        database.close()

    def test_commits_on_success(self, db):
        with db.transaction() as conn:
            conn.execute("INSERT INTO items (id) VALUES (?)", ("a",))
            conn.execute("INSERT INTO items (id) VALUES (?)", ("b",))

        assert db.execute("SELECT COUNT(*) FROM items").fetchone()[0] == 2
        assert not db.connection.in_transaction

    def test_rolls_back_on_error(self, db):
        """A failing statement undoes the whole unit."""
        with pytest.raises(sqlite3.IntegrityError):
            with db.transaction() as conn:
                conn.execute("INSERT INTO items (id) VALUES (?)", ("a",))
                conn.execute("INSERT INTO items (id) VALUES (?)", ("a",))

        assert db.execute("SELECT COUNT(*) FROM items").fetchone()[0] == 0
        assert not db.connection.in_transaction

    def test_rolls_back_on_python_error(self, db):
        with pytest.raises(RuntimeError):
            with db.transaction() as conn:
                conn.execute("INSERT INTO items (id) VALUES (?)", ("a",))
                raise RuntimeError("boom")

        assert db.execute("SELECT COUNT(*) FROM items").fetchone()[0] == 0


class TestDatabaseFile:
    """Tests for file-backed databases."""

    def test_creates_parent_directory(self, tmp_path):
        path = tmp_path / "nested" / "entity.db"
        with Database(path) as db:
            db.execute("CREATE TABLE t (x)")
        assert path.exists()

    def test_missing_file_without_create(self, tmp_path):
        path = tmp_path / "nested" / "missing.db"

        with pytest.raises(DatabaseNotFoundError) as exc_info:
            Database(path, create=False)

        assert exc_info.value.path == str(path)
        assert exc_info.value.code == "DATABASE_NOT_FOUND"
        assert not path.exists()
        assert not path.parent.exists()

    def test_existing_file_without_create(self, tmp_path):
        path = tmp_path / "entity.db"
        with Database(path) as db:
            db.execute("CREATE TABLE t (x)")

        with Database(path, create=False) as db:
            assert db.execute("SELECT COUNT(*) FROM t").fetchone()[0] == 0

    def test_memory_without_create(self):
        with Database(":memory:", create=False) as db:
            assert db.execute("SELECT 1").fetchone()[0] == 1

    def test_wal_mode(self, tmp_path):
        with Database(tmp_path / "wal.db", wal_mode=True) as db:
            mode = db.execute("PRAGMA journal_mode").fetchone()[0]
        assert mode.lower() == "wal"

    def test_from_settings(self, tmp_path):
        settings = StoreSettings(database_path=str(tmp_path / "s.db"), wal_mode=False)
        with Database.from_settings(settings) as db:
            assert db.path == str(tmp_path / "s.db")
            mode = db.execute("PRAGMA journal_mode").fetchone()[0]
        assert mode.lower() != "wal"


class TestStoreSettings:
    """Tests for StoreSettings."""

    def test_defaults(self, monkeypatch):
        for key in ("DATABASE_PATH", "MAX_RETRIES", "RETRY_DELAY_MS", "TABLE_PREFIX"):
            monkeypatch.delenv(f"ENTITYDB_{key}", raising=False)

        settings = StoreSettings()
        assert settings.max_retries == 5
        assert settings.retry_delay_ms == 0
        assert settings.table_prefix == "entity"

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("ENTITYDB_DATABASE_PATH", "/tmp/x.db")
        monkeypatch.setenv("ENTITYDB_MAX_RETRIES", "9")
        monkeypatch.setenv("ENTITYDB_LOG_FORMAT", "json")

        settings = StoreSettings()
        assert settings.database_path == "/tmp/x.db"
        assert settings.max_retries == 9
        assert settings.log_format == "json"

    def test_rejects_negative_retries(self):
        with pytest.raises(SettingsValidationError):
            StoreSettings(max_retries=-1)

    def test_log_config(self, caplog):
        with caplog.at_level(logging.INFO, logger="entitydb.config"):
            StoreSettings(max_retries=3, table_prefix="app").log_config()

        record = next(r for r in caplog.records if r.message == "EntityDB configuration loaded")
        assert record.max_retries == 3
        assert record.table_prefix == "app"
