"""
Tests for the SQLite memory store: records, banks, migration and open handling.
"""

import asyncio
import sqlite3
import time

import pytest

from membank.core.config import SCHEMA_VERSION
from membank.core.db import MemoryStore, StoreOpenError, StoreOperationError
from membank.core.schema import MemoryRecord, NamedBank


def make_record(text, bank="General", position=0):
    return MemoryRecord(text=text, embedding=[0.1, 0.2, 0.3], bank=bank, position=position)


class TestRecords:

    @pytest.mark.asyncio
    async def test_put_assigns_id_and_get_returns_record(self, db_path):
        store = MemoryStore(db_path)
        record = make_record("Honey never spoils.")

        record_id = await store.put(record)
        loaded = await store.get(record_id)

        assert record.id == record_id
        assert loaded.id == record_id
        assert loaded.text == "Honey never spoils."
        assert loaded.embedding == pytest.approx([0.1, 0.2, 0.3])
        assert loaded.bank == "General"

    @pytest.mark.asyncio
    async def test_ids_are_unique(self, db_path):
        store = MemoryStore(db_path)
        ids = [await store.put(make_record(f"fact {i}")) for i in range(5)]
        assert len(set(ids)) == 5

    @pytest.mark.asyncio
    async def test_get_missing_returns_none(self, db_path):
        assert await MemoryStore(db_path).get(999) is None

    @pytest.mark.asyncio
    async def test_get_all_and_delete(self, db_path):
        store = MemoryStore(db_path)
        first = await store.put(make_record("one"))
        second = await store.put(make_record("two", bank="Science"))

        assert [r.id for r in await store.get_all()] == [first, second]

        await store.delete(first)

        assert [r.text for r in await store.get_all()] == ["two"]
        assert await store.count() == 1

    @pytest.mark.asyncio
    async def test_get_by_bank_uses_position_order(self, db_path):
        store = MemoryStore(db_path)
        await store.put(make_record("third", position=2))
        await store.put(make_record("first", position=0))
        await store.put(make_record("other bank", bank="Science"))
        await store.put(make_record("second", position=1))

        records = await store.get_by_bank("General")

        assert [r.text for r in records] == ["first", "second", "third"]
        assert await store.get_by_bank("Missing") == []

    @pytest.mark.asyncio
    async def test_delete_by_bank_only_touches_that_bank(self, db_path):
        store = MemoryStore(db_path)
        for i in range(3):
            await store.put(make_record(f"general {i}", position=i))
        await store.put(make_record("science", bank="Science"))

        removed = await store.delete_by_bank("General")

        assert removed == 3
        assert await store.get_by_bank("General") == []
        assert [r.text for r in await store.get_by_bank("Science")] == ["science"]

    @pytest.mark.asyncio
    async def test_clear_all(self, db_path):
        store = MemoryStore(db_path)
        await store.put(make_record("a"))
        await store.put(make_record("b", bank="Science"))

        await store.clear_all()

        assert await store.count() == 0


class TestCustomBanks:

    @pytest.mark.asyncio
    async def test_save_and_get(self, db_path):
        store = MemoryStore(db_path)

        name = await store.save_bank(NamedBank(name="Trivia", content=["a", "b"]))
        bank = await store.get_bank("Trivia")

        assert name == "Trivia"
        assert bank.name == "Trivia"
        assert bank.content == ["a", "b"]

    @pytest.mark.asyncio
    async def test_save_replaces_by_name(self, db_path):
        store = MemoryStore(db_path)
        await store.save_bank(NamedBank(name="Trivia", content=["old"]))
        await store.save_bank(NamedBank(name="Trivia", content=["new", "newer"]))

        assert (await store.get_bank("Trivia")).content == ["new", "newer"]
        assert await store.list_bank_names() == ["Trivia"]

    @pytest.mark.asyncio
    async def test_list_and_delete(self, db_path):
        store = MemoryStore(db_path)
        await store.save_bank(NamedBank(name="Zoo", content=["z"]))
        await store.save_bank(NamedBank(name="Art", content=["a"]))

        assert await store.list_bank_names() == ["Art", "Zoo"]

        await store.delete_bank("Zoo")

        assert await store.list_bank_names() == ["Art"]
        assert await store.get_bank("Zoo") is None

    @pytest.mark.asyncio
    async def test_delete_missing_bank_is_noop(self, db_path):
        store = MemoryStore(db_path)
        await store.delete_bank("Nothing")
        assert await store.list_bank_names() == []


class TestMigration:

    @pytest.mark.asyncio
    async def test_fresh_store_schema(self, db_path):
        store = MemoryStore(db_path)
        await store.ensure_open()

        with sqlite3.connect(db_path) as conn:
            version = conn.execute("PRAGMA user_version").fetchone()[0]
            indexes = [row[0] for row in conn.execute(
                "SELECT name FROM sqlite_master WHERE type = 'index' AND sql IS NOT NULL"
            )]

        assert store.is_open
        assert version == SCHEMA_VERSION
        assert indexes == ["idx_memories_bank"]
        assert await store.health_check()

    @pytest.mark.asyncio
    async def test_reopen_keeps_data(self, db_path):
        await MemoryStore(db_path).put(make_record("persisted"))

        reopened = MemoryStore(db_path)

        assert [r.text for r in await reopened.get_all()] == ["persisted"]

    @pytest.mark.asyncio
    async def test_legacy_schema_is_migrated(self, db_path):
        with sqlite3.connect(db_path) as conn:
            conn.execute(
                "CREATE TABLE memories (id INTEGER PRIMARY KEY AUTOINCREMENT, "
                "text TEXT NOT NULL, embedding TEXT NOT NULL, bank TEXT NOT NULL, timestamp INTEGER)"
            )
            conn.execute("CREATE INDEX idx_memories_timestamp ON memories(timestamp)")
            conn.execute(
                "INSERT INTO memories (text, embedding, bank, timestamp) VALUES (?, ?, ?, ?)",
                ("legacy fact", "[1.0, 0.0]", "General", 12345)
            )
            conn.execute("PRAGMA user_version = 3")

        store = MemoryStore(db_path)
        records = await store.get_by_bank("General")

        with sqlite3.connect(db_path) as conn:
            indexes = [row[0] for row in conn.execute(
                "SELECT name FROM sqlite_master WHERE type = 'index' AND sql IS NOT NULL"
            )]
            version = conn.execute("PRAGMA user_version").fetchone()[0]

        assert [r.text for r in records] == ["legacy fact"]
        assert records[0].position == 0
        assert indexes == ["idx_memories_bank"]
        assert version == SCHEMA_VERSION


class TestOpenHandling:

    @pytest.mark.asyncio
    async def test_concurrent_open_runs_migration_once(self, db_path):
        class CountingStore(MemoryStore):
            migrations = 0

            def _migrate(self):
                type(self).migrations += 1
                time.sleep(0.05)
                super()._migrate()

        store = CountingStore(db_path)
        await asyncio.gather(
            store.count(),
            store.get_all(),
            store.list_bank_names(),
            store.ensure_open(),
        )
        await store.count()

        assert CountingStore.migrations == 1

    @pytest.mark.asyncio
    async def test_failed_open_is_retried(self, db_path):
        class FlakyStore(MemoryStore):
            attempts = 0

            def _migrate(self):
                type(self).attempts += 1
                if type(self).attempts == 1:
                    raise sqlite3.OperationalError("database is locked")
                super()._migrate()

        store = FlakyStore(db_path)

        with pytest.raises(StoreOpenError):
            await store.count()
        assert not store.is_open

        assert await store.count() == 0
        assert FlakyStore.attempts == 2
        assert store.is_open

    @pytest.mark.asyncio
    async def test_operation_failure_keeps_store_open(self, db_path):
        store = MemoryStore(db_path)
        await store.put(make_record("before"))

        with sqlite3.connect(db_path) as conn:
            conn.execute("DROP TABLE custom_banks")

        with pytest.raises(StoreOperationError):
            await store.list_bank_names()

        assert store.is_open
        assert await store.count() == 1
        assert not await store.health_check()
