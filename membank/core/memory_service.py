"""
High-level service over the store, the synchronizer and the embedding provider.
Used by the HTTP API and the operator scripts.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from .banks import (
    BUILTIN_BANKS,
    BankNotFoundError,
    BankNotReadyError,
    BankValidationError,
    parse_custom_bank,
)
from .config import DEFAULT_BANK, GRAPH_MAX_CONNECTIONS, GRAPH_THRESHOLD, get_embedding_provider
from .db import MemoryStore
from .schema import MemoryRecord, NamedBank
from .search_service import rank
from .sync import SYNC_FAILED, BankSynchronizer, SyncResult
from ..util.logging import logger
from ..vector.embeddings import IEmbeddingProvider
from ..vector.similarity import build_neighbor_graph, most_related
from ..vector.types import NeighborGraph, RankedResult, RelatedEntry


@dataclass
class BankView:
    """Materialized (text, embedding) lists of a ready bank."""
    name: str
    texts: List[str] = field(default_factory=list)
    embeddings: List[List[float]] = field(default_factory=list)

    @classmethod
    def from_records(cls, name: str, records: Sequence[MemoryRecord]) -> "BankView":
        return cls(
            name=name,
            texts=[r.text for r in records],
            embeddings=[r.embedding for r in records],
        )


@dataclass
class BankGraph:
    name: str
    texts: List[str]
    graph: NeighborGraph


class MemoryBankService:
    """
    Memory bank operations: startup caching, activation, search, custom bank
    management and similarity views.
    """

    def __init__(
        self,
        store: Optional[MemoryStore] = None,
        provider: Optional[IEmbeddingProvider] = None,
        builtin_banks: Optional[Mapping[str, Sequence[str]]] = None,
        default_bank: str = DEFAULT_BANK,
    ):
        self.store = store or MemoryStore()
        self.provider = provider or get_embedding_provider()
        self.synchronizer = BankSynchronizer(self.store, self.provider)
        self.builtin_banks = dict(builtin_banks if builtin_banks is not None else BUILTIN_BANKS)
        self.default_bank = default_bank
        self.active_bank = default_bank
        self._custom_content: Dict[str, List[str]] = {}

    def is_builtin(self, name: str) -> bool:
        return name in self.builtin_banks

    async def startup(self) -> Dict[str, SyncResult]:
        """Load the model, cache every built-in bank, then load custom banks."""
        try:
            await self.provider.ensure_ready()
        except Exception as e:
            # Later embed calls retry the load
            logger.error(f"Failed to preload embedding model: {e}")

        results = await self.synchronizer.sync_all(self.builtin_banks)

        for name in await self.store.list_bank_names():
            bank = await self.store.get_bank(name)
            if bank:
                self._custom_content[name] = list(bank.content)

        logger.log_operation("startup", "success", {
            "builtin_banks": len(self.builtin_banks),
            "custom_banks": len(self._custom_content),
            "failed": [name for name, result in results.items() if result.status == SYNC_FAILED],
        })
        return results

    async def list_banks(self) -> List[str]:
        """Built-in bank names followed by custom bank names."""
        custom = await self.store.list_bank_names()
        return list(self.builtin_banks) + [name for name in custom if not self.is_builtin(name)]

    async def bank_content(self, name: str) -> List[str]:
        if name in self.builtin_banks:
            return list(self.builtin_banks[name])
        if name in self._custom_content:
            return list(self._custom_content[name])

        bank = await self.store.get_bank(name)
        if bank is None:
            raise BankNotFoundError(f"Bank '{name}' not found")
        self._custom_content[name] = list(bank.content)
        return list(bank.content)

    async def activate_bank(self, name: str) -> Optional[BankView]:
        """Make `name` the active bank and bring its cache up to date.

        Returns None when another activation superseded this one.
        """
        content = await self.bank_content(name)
        token = self.synchronizer.begin()
        self.active_bank = name

        result = await self.synchronizer.sync_bank(name, content, token)
        if not result.ready:
            return None
        return BankView.from_records(name, result.records)

    async def get_records(self, name: str) -> List[MemoryRecord]:
        return await self.store.get_by_bank(name)

    async def _ready_records(self, name: str) -> List[MemoryRecord]:
        records = await self.store.get_by_bank(name)
        if not records:
            await self.bank_content(name)  # raises for unknown banks
            raise BankNotReadyError(f"Memory bank '{name}' is not ready yet.")
        return records

    async def search(self, query: str, bank: Optional[str] = None) -> List[RankedResult]:
        """Rank a bank's entries against a query. Provider failures propagate."""
        if not query or not query.strip():
            raise BankValidationError("Please enter a query.")

        name = bank or self.active_bank
        records = await self._ready_records(name)
        query_vector = await self.provider.embed_query(query)

        results = rank(query_vector, records)
        logger.log_search(name, query, len(results), results[0].score if results else None)
        return results

    async def create_custom_bank(self, name: str, text: str) -> NamedBank:
        """Validate, embed and persist a new custom bank.

        All validation happens before the embedding call; nothing is persisted
        if embedding fails.
        """
        existing = await self.list_banks()
        bank_name, content = parse_custom_bank(name, text, existing)

        embeddings = await self.provider.embed(content)

        bank = NamedBank(name=bank_name, content=content)
        await self.store.save_bank(bank)
        await self.store.delete_by_bank(bank_name)
        await self.synchronizer.write_records(bank_name, content, embeddings)

        self._custom_content[bank_name] = list(content)
        logger.log_operation("bank.create", "success", {"bank": bank_name, "entries": len(content)})
        return bank

    async def delete_custom_bank(self, name: str) -> None:
        """Remove a custom bank's metadata and all of its records."""
        if self.is_builtin(name):
            raise BankValidationError(f"Built-in bank '{name}' cannot be deleted.")
        if await self.store.get_bank(name) is None:
            raise BankNotFoundError(f"Bank '{name}' not found")

        if self.active_bank == name:
            # Abandon an activation of this bank still in flight
            self.synchronizer.begin()

        await self.store.delete_bank(name)
        await self.store.delete_by_bank(name)
        self._custom_content.pop(name, None)

        if self.active_bank == name:
            self.active_bank = self.default_bank
        logger.log_operation("bank.delete", "success", {"bank": name})

    async def neighbor_graph(
        self,
        name: str,
        k: int = GRAPH_MAX_CONNECTIONS,
        threshold: float = GRAPH_THRESHOLD,
    ) -> BankGraph:
        """Neighbor graph of a bank's persisted records, in sequence order."""
        records = await self._ready_records(name)
        graph = build_neighbor_graph([r.embedding for r in records], k=k, threshold=threshold)
        return BankGraph(name=name, texts=[r.text for r in records], graph=graph)

    async def related_entries(self, name: str, index: int, limit: int = 3) -> List[RelatedEntry]:
        """Entries most similar to entry `index` of the bank."""
        if limit < 0:
            raise BankValidationError("limit must be >= 0")
        records = await self._ready_records(name)
        if index < 0 or index >= len(records):
            raise BankNotFoundError(f"Bank '{name}' has no entry {index}")
        return most_related([r.embedding for r in records], [r.text for r in records], index, limit)

    async def rebuild(self, names: Optional[Iterable[str]] = None, force: bool = False) -> Dict[str, SyncResult]:
        """Re-run synchronization for the given banks (default: every bank).

        With force, cached records are dropped first so every bank is regenerated.
        """
        names = list(names) if names is not None else await self.list_banks()

        banks = {}
        for name in names:
            banks[name] = await self.bank_content(name)
            if force:
                await self.store.delete_by_bank(name)

        return await self.synchronizer.sync_all(banks)
