import asyncio
import os
import tempfile

# Test environment: temporary database, hash embeddings, no startup sync
os.environ['DB_PATH'] = os.path.join(tempfile.mkdtemp(), 'membank_test.db')
os.environ['EMBED_PROVIDER'] = 'hash'
os.environ['SYNC_ON_STARTUP'] = 'false'

import pytest

from membank.core.db import MemoryStore
from membank.core.memory_service import MemoryBankService
from membank.vector.embeddings import DeterministicHashEmbedding


class RecordingStore(MemoryStore):
    """MemoryStore that records every write it performs."""

    def __init__(self, db_path):
        super().__init__(db_path)
        self.writes = []
        self.on_put = None

    async def put(self, record):
        self.writes.append(("put", record.bank, record.text))
        record_id = await super().put(record)
        if self.on_put is not None:
            self.on_put(record)
        return record_id

    async def delete(self, record_id):
        self.writes.append(("delete", record_id))
        await super().delete(record_id)

    async def delete_by_bank(self, bank):
        self.writes.append(("delete_by_bank", bank))
        return await super().delete_by_bank(bank)

    async def clear_all(self):
        self.writes.append(("clear_all",))
        await super().clear_all()

    async def save_bank(self, bank):
        self.writes.append(("save_bank", bank.name))
        return await super().save_bank(bank)

    async def delete_bank(self, name):
        self.writes.append(("delete_bank", name))
        await super().delete_bank(name)


class CountingEmbedding(DeterministicHashEmbedding):
    """Hash embeddings that record calls and can be paused or made to fail."""

    def __init__(self, dimension: int = 64):
        super().__init__(dimension=dimension)
        self.embed_calls = []
        self.gate = None
        self.fail_on = None

    async def embed(self, text, normalize=True, truncate=True):
        self.embed_calls.append(text)
        if self.gate is not None:
            await self.gate.wait()
        if self.fail_on is not None and self.fail_on(text):
            raise RuntimeError("embedding backend unavailable")
        return await super().embed(text, normalize=normalize, truncate=truncate)


class FailingLoadEmbedding(CountingEmbedding):
    """Counting embeddings whose first `failures` model loads raise."""

    def __init__(self, failures: int = 1):
        super().__init__()
        self.failures = failures
        self.load_attempts = 0

    def _load(self):
        self.load_attempts += 1
        if self.load_attempts <= self.failures:
            raise OSError("model download failed")
        return super()._load()


TEST_BANKS = {
    "General": [
        "The Great Wall of China is very long.",
        "Honey never spoils.",
        "Octopuses have three hearts.",
        "Bananas are berries.",
        "Cats sleep most of the day.",
    ],
    "Science": [
        "Water boils at 100 degrees Celsius.",
        "DNA is a double helix.",
        "Jupiter is the largest planet.",
    ],
}


@pytest.fixture
def db_path(tmp_path):
    return str(tmp_path / "memory.db")


@pytest.fixture
def store(db_path):
    return RecordingStore(db_path)


@pytest.fixture
def provider():
    return CountingEmbedding()


@pytest.fixture
def service(store, provider):
    return MemoryBankService(store=store, provider=provider, builtin_banks=TEST_BANKS, default_bank="General")


async def wait_for(predicate, timeout: float = 2.0):
    """Poll until predicate() is true, yielding to the event loop."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.01)
