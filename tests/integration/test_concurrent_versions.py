"""
Integration tests for concurrent versioned inserts.

Several writers, each with its own connection to the same SQLite file,
append versions of the same document at once. SQLite serializes them;
the store must still produce the dense sequence 1..N.
"""

import threading

import pytest

from entitydb.database import Database
from entitydb.store import VersionedEntityStore

WRITERS = 4
INSERTS_PER_WRITER = 15


class TestConcurrentVersions:
    """Concurrent writers on one database file."""

    @pytest.fixture
    def db_path(self, tmp_path):
        path = tmp_path / "versions.db"
        # Create the schema once up front
        with Database(path) as db:
            VersionedEntityStore(db, "Config", foreign_keys=["appId"])
        return path

    def _run_writers(self, db_path, names):
        errors: list[BaseException] = []
        barrier = threading.Barrier(WRITERS)

        def writer(index: int) -> None:
            try:
                with Database(db_path, busy_timeout_ms=10000) as db:
                    store = VersionedEntityStore(db, "Config", foreign_keys=["appId"])
                    barrier.wait()
                    for i in range(INSERTS_PER_WRITER):
                        name = names[(index + i) % len(names)]
                        store.insert(name, {"writer": index, "i": i}, {"appId": "app_1"})
            except BaseException as e:  # surfaced in the main thread
                errors.append(e)

        threads = [threading.Thread(target=writer, args=(n,)) for n in range(WRITERS)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []

    def test_single_name_versions_are_dense(self, db_path):
        """Concurrent inserts under one name yield exactly 1..N."""
        self._run_writers(db_path, ["limits"])

        with Database(db_path) as db:
            store = VersionedEntityStore(db, "Config", foreign_keys=["appId"])
            versions = sorted(r.version for r in store.iter_versions("limits"))
            latest = store.get("limits")

        total = WRITERS * INSERTS_PER_WRITER
        assert versions == list(range(1, total + 1))
        assert latest.version == total

    def test_many_names_versions_are_dense(self, db_path):
        names = ["a", "b", "c"]
        self._run_writers(db_path, names)

        with Database(db_path) as db:
            store = VersionedEntityStore(db, "Config", foreign_keys=["appId"])
            per_name = {
                name: sorted(r.version for r in store.iter_versions(name)) for name in names
            }
            assert store.count() == len(names)

        assert sum(len(v) for v in per_name.values()) == WRITERS * INSERTS_PER_WRITER
        for versions in per_name.values():
            assert versions == list(range(1, len(versions) + 1))
