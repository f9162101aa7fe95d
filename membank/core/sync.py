"""
Keep each bank's cached records in step with its declared content.

A bank is stale when its record count differs from its content length or any
position holds different text. A stale bank is invalidated as a whole: every
record is deleted, the full content is embedded in one call and the records
are reinserted in order. Delete and reinsert are not one transaction, so an
interruption can leave the bank without records until the next sync.

Runs tagged with a generation token are abandoned as soon as a newer
generation starts. The token is checked after every await, and an abandoned
run writes nothing further and never reports its bank as ready.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence

from .db import MemoryStore
from .schema import MemoryRecord
from ..util.logging import logger
from ..vector.embeddings import IEmbeddingProvider

SYNC_CACHED = "cached"
SYNC_REGENERATED = "regenerated"
SYNC_ABANDONED = "abandoned"
SYNC_FAILED = "failed"


@dataclass
class SyncResult:
    bank: str
    status: str
    records: List[MemoryRecord] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def ready(self) -> bool:
        return self.status in (SYNC_CACHED, SYNC_REGENERATED)


def is_stale(records: Sequence[MemoryRecord], content: Sequence[str]) -> bool:
    """Check whether cached records no longer match the declared content."""
    if len(records) != len(content):
        return True
    return any(record.text != text for record, text in zip(records, content))


class BankSynchronizer:
    """Regenerates stale bank embeddings through a store and a provider."""

    def __init__(self, store: MemoryStore, provider: IEmbeddingProvider):
        self.store = store
        self.provider = provider
        self._generation = 0

    @property
    def generation(self) -> int:
        return self._generation

    def begin(self) -> int:
        """Start a new generation, superseding any run still in flight."""
        self._generation += 1
        return self._generation

    def is_current(self, token: Optional[int]) -> bool:
        return token is None or token == self._generation

    def _abandon(self, bank: str, stage: str) -> SyncResult:
        logger.log_bank_sync(bank, SYNC_ABANDONED, {"stage": stage, "generation": self._generation})
        return SyncResult(bank=bank, status=SYNC_ABANDONED)

    async def sync_bank(self, bank: str, content: Sequence[str], token: Optional[int] = None) -> SyncResult:
        """Make the store hold exactly one up-to-date record per content entry.

        Args:
            bank: Bank name
            content: Declared content, in order
            token: Generation from begin(); None runs to completion

        Returns:
            SyncResult with the bank's records in content order, or an
            abandoned result if a newer generation started meanwhile
        """
        content = list(content)
        existing = await self.store.get_by_bank(bank)
        if not self.is_current(token):
            return self._abandon(bank, "read")

        if not is_stale(existing, content):
            logger.log_bank_sync(bank, SYNC_CACHED, {"records": len(existing)})
            return SyncResult(bank=bank, status=SYNC_CACHED, records=existing)

        await self.store.delete_by_bank(bank)
        if not self.is_current(token):
            return self._abandon(bank, "delete")

        embeddings = await self.provider.embed(content) if content else []
        if not self.is_current(token):
            return self._abandon(bank, "embed")

        records = await self.write_records(bank, content, embeddings, token)
        if records is None:
            return self._abandon(bank, "insert")

        logger.log_bank_sync(bank, SYNC_REGENERATED, {"records": len(records)})
        return SyncResult(bank=bank, status=SYNC_REGENERATED, records=records)

    async def write_records(
        self,
        bank: str,
        content: Sequence[str],
        embeddings: Sequence[Sequence[float]],
        token: Optional[int] = None,
    ) -> Optional[List[MemoryRecord]]:
        """Insert one record per entry in order. Returns None if abandoned."""
        if len(embeddings) != len(content):
            raise ValueError(f"Got {len(embeddings)} embeddings for {len(content)} entries in bank {bank}")

        records = []
        for position, (text, embedding) in enumerate(zip(content, embeddings)):
            if not self.is_current(token):
                return None
            record = MemoryRecord(text=text, embedding=list(embedding), bank=bank, position=position)
            await self.store.put(record)
            records.append(record)
        return records

    async def sync_all(self, banks: Mapping[str, Sequence[str]]) -> Dict[str, SyncResult]:
        """Synchronize banks one after another.

        A failing bank is logged and skipped so the remaining banks still run.
        """
        results = {}
        for name, content in banks.items():
            try:
                results[name] = await self.sync_bank(name, content)
            except Exception as e:
                logger.log_bank_sync(name, SYNC_FAILED, {"error": str(e)})
                results[name] = SyncResult(bank=name, status=SYNC_FAILED, error=str(e))
        return results
