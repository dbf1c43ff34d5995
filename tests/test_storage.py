"""
Test suite for storage backends

Tests CRUD operations and the atomic unit of work on both the in-memory and
SQLite backends. Rollback must discard every write made inside the block.
"""

import pytest
import tempfile
import os
from datetime import datetime, date, timezone
from decimal import Decimal
from dataclasses import dataclass

from retail_banking.storage import (
    InMemoryStorage, SQLiteStorage, StorageRecord, create_storage
)


@pytest.fixture(params=["memory", "sqlite"])
def storage(request):
    if request.param == "memory":
        backend = InMemoryStorage()
    else:
        backend = SQLiteStorage(":memory:")
    yield backend
    backend.close()


class TestStorageOperations:
    """Test basic operations shared by every backend"""

    def test_save_and_load(self, storage):
        storage.save("accounts", "A1", {"id": "A1", "balance": 100})
        assert storage.load("accounts", "A1") == {"id": "A1", "balance": 100}
        assert storage.exists("accounts", "A1")
        assert storage.load("accounts", "missing") is None

    def test_load_returns_copy(self, storage):
        storage.save("accounts", "A1", {"id": "A1", "tags": ["x"]})
        loaded = storage.load("accounts", "A1")
        loaded["tags"].append("y")
        assert storage.load("accounts", "A1")["tags"] == ["x"]

    def test_find_and_count(self, storage):
        storage.save("accounts", "A1", {"id": "A1", "customer_id": "C1"})
        storage.save("accounts", "A2", {"id": "A2", "customer_id": "C2"})
        storage.save("accounts", "A3", {"id": "A3", "customer_id": "C1"})

        found = storage.find("accounts", {"customer_id": "C1"})
        assert {r["id"] for r in found} == {"A1", "A3"}
        assert storage.count("accounts") == 3

    def test_load_latest(self, storage):
        assert storage.load_latest("events", "sequence") is None

        storage.save("events", "E1", {"id": "E1", "sequence": 1})
        storage.save("events", "E3", {"id": "E3", "sequence": 3})
        storage.save("events", "E2", {"id": "E2", "sequence": 2})

        assert storage.load_latest("events", "sequence")["id"] == "E3"

    def test_load_latest_sees_rollback(self, storage):
        storage.save("events", "E1", {"id": "E1", "sequence": 1})

        with pytest.raises(RuntimeError):
            with storage.atomic():
                storage.save("events", "E2", {"id": "E2", "sequence": 2})
                assert storage.load_latest("events", "sequence")["id"] == "E2"
                raise RuntimeError("boom")

        assert storage.load_latest("events", "sequence")["id"] == "E1"

    def test_delete_and_clear(self, storage):
        storage.save("accounts", "A1", {"id": "A1"})
        storage.save("accounts", "A2", {"id": "A2"})
        assert storage.delete("accounts", "A1") is True
        assert storage.delete("accounts", "A1") is False
        storage.clear_table("accounts")
        assert storage.count("accounts") == 0


class TestAtomic:
    """Test the atomic unit of work"""

    def test_commit(self, storage):
        with storage.atomic():
            storage.save("accounts", "A1", {"id": "A1", "balance": 100})
        assert storage.load("accounts", "A1")["balance"] == 100

    def test_rollback_discards_writes(self, storage):
        storage.save("accounts", "A1", {"id": "A1", "balance": 100})

        with pytest.raises(RuntimeError):
            with storage.atomic():
                storage.save("accounts", "A1", {"id": "A1", "balance": 0})
                storage.save("accounts", "A2", {"id": "A2", "balance": 50})
                raise RuntimeError("boom")

        assert storage.load("accounts", "A1")["balance"] == 100
        assert storage.load("accounts", "A2") is None

    def test_nested_blocks_roll_back_together(self, storage):
        with pytest.raises(ValueError):
            with storage.atomic():
                storage.save("accounts", "A1", {"id": "A1"})
                with storage.atomic():
                    storage.save("accounts", "A2", {"id": "A2"})
                raise ValueError("outer failure")

        assert storage.count("accounts") == 0

        with storage.atomic():
            storage.save("accounts", "A3", {"id": "A3"})
        assert storage.count("accounts") == 1

    def test_table_created_inside_rolled_back_block(self, storage):
        with pytest.raises(RuntimeError):
            with storage.atomic():
                storage.save("fresh_table", "R1", {"id": "R1"})
                raise RuntimeError("boom")

        assert storage.count("fresh_table") == 0
        storage.save("fresh_table", "R2", {"id": "R2"})
        assert storage.exists("fresh_table", "R2")


class TestSQLitePersistence:
    """Test SQLite-specific behavior"""

    def test_data_survives_reopen(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "bank.db")
            first = SQLiteStorage(path)
            first.save("customers", "C1", {"id": "C1", "name": "Kim Hana"})
            first.close()

            second = SQLiteStorage(path)
            assert second.load("customers", "C1")["name"] == "Kim Hana"
            second.close()

    def test_load_latest_uses_index(self):
        storage = SQLiteStorage(":memory:")
        for sequence in range(1, 20):
            storage.save("events", f"E{sequence}", {"id": f"E{sequence}", "sequence": sequence})

        assert storage.load_latest("events", "sequence")["sequence"] == 19

        plan = storage._connection.execute("""
            EXPLAIN QUERY PLAN
            SELECT data FROM events ORDER BY json_extract(data, '$.sequence') DESC LIMIT 1
        """).fetchall()
        assert any("idx_events_sequence" in row["detail"] for row in plan)
        storage.close()

    def test_load_latest_rejects_bad_field(self):
        storage = SQLiteStorage(":memory:")
        with pytest.raises(ValueError):
            storage.load_latest("events", "sequence') --")
        storage.close()


class TestStorageRecord:
    """Test record serialization"""

    def test_to_dict_serializes_dates_and_decimals(self):
        @dataclass
        class Rate(StorageRecord):
            value: Decimal
            effective: date

        now = datetime.now(timezone.utc)
        record = Rate(id="R1", created_at=now, updated_at=now,
                      value=Decimal("2.3"), effective=date(2024, 1, 31))
        data = record.to_dict()

        assert data["value"] == "2.3"
        assert data["effective"] == "2024-01-31"
        assert data["created_at"] == now.isoformat()


class TestCreateStorage:
    """Test backend selection from a database URL"""

    def test_memory_url(self):
        assert isinstance(create_storage("memory://"), InMemoryStorage)

    def test_sqlite_in_memory_url(self):
        storage = create_storage("sqlite://")
        assert isinstance(storage, SQLiteStorage)
        assert storage.db_path == ":memory:"
        storage.close()

    def test_sqlite_file_url(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "bank.db")
            storage = create_storage(f"sqlite:///{path}")
            assert isinstance(storage, SQLiteStorage)
            storage.close()

    def test_unsupported_url(self):
        with pytest.raises(ValueError, match="Unsupported database URL"):
            create_storage("postgresql://localhost/bank")
