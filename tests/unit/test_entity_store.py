"""
Unit tests for the unversioned entity store.

Tests cover:
- Insert and get by id
- Count and pagination
- Foreign-key lookups
- Delete by id
"""

import uuid

import pytest

from entitydb.database import Database
from entitydb.errors import ValidationError
from entitydb.store.entity_store import EntityStore


class TestEntityStore:
    """Tests for EntityStore."""

    @pytest.fixture
    def db(self):
        """In-memory database."""
        database = Database(":memory:")
        yield database
        database.close()

    @pytest.fixture
    def store(self, db):
        """User store related to an organization."""
        return EntityStore(db, "User", foreign_keys=["orgId"])

    def test_insert_and_get(self, store):
        """Insert stores content retrievable by id."""
        user = store.insert({"email": "alice@example.com"}, {"orgId": "org_1"})

        assert uuid.UUID(user.id)
        assert user.type == "User"
        assert user.foreign_keys == {"orgId": "org_1"}

        fetched = store.get(user.id)
        assert fetched is not None
        assert fetched.content == {"email": "alice@example.com"}
        assert fetched.foreign_keys == {"orgId": "org_1"}
        assert fetched.created_at == user.created_at

    def test_get_missing(self, store):
        assert store.get("missing") is None

    def test_insert_requires_content(self, store):
        with pytest.raises(ValidationError):
            store.insert(None, {"orgId": "org_1"})

    def test_insert_requires_foreign_keys(self, store):
        with pytest.raises(ValidationError, match="Missing foreign key: orgId"):
            store.insert({"email": "bob@example.com"})
        assert store.count() == 0

    def test_count_and_get_all(self, store):
        ids = [store.insert({"n": i}, {"orgId": "org_1"}).id for i in range(5)]

        assert store.count() == 5
        assert store.get_all() == ids
        assert store.get_all(limit=2, offset=0) == ids[:2]
        assert store.get_all(limit=2, offset=4) == ids[4:]

    def test_find_by_foreign_key(self, store):
        store.insert({"name": "a"}, {"orgId": "org_1"})
        store.insert({"name": "b"}, {"orgId": "org_2"})
        store.insert({"name": "c"}, {"orgId": "org_1"})

        found = store.find({"orgId": "org_1"})
        assert [r.content["name"] for r in found] == ["a", "c"]

    def test_find_requires_filter(self, store):
        with pytest.raises(ValidationError):
            store.find({})

    def test_delete(self, store):
        user = store.insert({"email": "alice@example.com"}, {"orgId": "org_1"})

        assert store.delete(user.id) == 1
        assert store.get(user.id) is None
        assert store.delete(user.id) == 0

    def test_to_dict(self, store):
        user = store.insert({"email": "alice@example.com"}, {"orgId": "org_1"})
        assert user.to_dict() == {
            "id": user.id,
            "type": "User",
            "createdAt": user.created_at,
            "orgId": "org_1",
            "content": {"email": "alice@example.com"},
        }

    def test_stores_share_a_database(self, db):
        """Several stores use one connection without interfering."""
        users = EntityStore(db, "User")
        teams = EntityStore(db, "Team")
        users.insert({"name": "alice"})

        assert users.count() == 1
        assert teams.count() == 0
