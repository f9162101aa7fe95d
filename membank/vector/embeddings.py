"""
Embedding providers: text(s) -> fixed-length float vectors.

Providers share the post-processing contract the rest of the core relies on:
empty text yields a zero vector of the native dimension, NaN output yields a
zero vector, truncation fixes the output to TRUNCATE_DIM components and
normalization yields unit vectors. Model initialization is lazy and
coalesced, and a failed initialization can be retried.
"""

import asyncio
import hashlib
from abc import ABC, abstractmethod
from typing import Any, List, Optional, Sequence, Union

import numpy as np

from ..core.config import QUERY_INSTRUCTION, TRUNCATE_DIM
from ..util.logging import logger

Vector = List[float]


class EmbeddingError(Exception):
    """Raised when embedding initialization or computation fails."""


def format_query(text: str) -> str:
    """Wrap a search query in the retrieval instruction template."""
    return f"Instruct: {QUERY_INSTRUCTION}\nQuery: {text}"


class IEmbeddingProvider(ABC):
    """Abstract interface for embedding providers."""

    def __init__(self):
        self._instance: Any = None
        self._loading: Optional[asyncio.Future] = None

    @abstractmethod
    def _load(self) -> Any:
        """Load the underlying model. Runs in a worker thread."""

    @abstractmethod
    def _encode(self, instance: Any, texts: List[str]) -> np.ndarray:
        """Raw (un-normalized, full width) embeddings, one row per text."""

    @abstractmethod
    def get_dimension(self) -> int:
        """Native dimension of the embedding vectors."""

    @property
    def is_ready(self) -> bool:
        return self._instance is not None

    async def ensure_ready(self) -> Any:
        """Initialize once; concurrent first callers share the same load."""
        if self._instance is not None:
            return self._instance
        if self._loading is None:
            self._loading = asyncio.ensure_future(self._initialize())
        return await asyncio.shield(self._loading)

    async def _initialize(self) -> Any:
        logger.log_embedding_operation("load", "started", {"provider": self.__class__.__name__})
        try:
            instance = await asyncio.to_thread(self._load)
        except Exception as e:
            self._loading = None
            logger.log_embedding_operation("load", "failed", {"provider": self.__class__.__name__, "error": str(e)})
            raise EmbeddingError(f"Model loading failed: {e}") from e
        self._instance = instance
        logger.log_embedding_operation("load", "success", {"provider": self.__class__.__name__})
        return instance

    async def embed(
        self,
        text: Union[str, Sequence[str]],
        normalize: bool = True,
        truncate: bool = True,
    ) -> Union[Vector, List[Vector]]:
        """Embed one text or a list of texts, preserving input order."""
        instance = await self.ensure_ready()

        single = isinstance(text, str)
        texts = [text] if single else list(text)
        if not texts:
            return []

        non_empty = [i for i, t in enumerate(texts) if t.strip()]
        encoded = set(non_empty)
        raw = None
        if non_empty:
            try:
                raw = await asyncio.to_thread(self._encode, instance, [texts[i] for i in non_empty])
            except Exception as e:
                logger.log_embedding_operation("encode", "failed", {"count": len(non_empty), "error": str(e)})
                raise EmbeddingError(f"Embedding generation failed: {e}") from e

        vectors: List[Vector] = []
        rows = iter(raw if raw is not None else [])
        for i in range(len(texts)):
            if i not in encoded:
                logger.warning("Input text is empty. Returning zero vector.")
                vectors.append([0.0] * self.get_dimension())
                continue
            vectors.append(self._postprocess(np.asarray(next(rows), dtype=np.float64), normalize, truncate))

        return vectors[0] if single else vectors

    async def embed_query(self, text: str, normalize: bool = True, truncate: bool = True) -> Vector:
        """Embed a search query with the retrieval instruction prepended."""
        return await self.embed(format_query(text), normalize=normalize, truncate=truncate)

    def _postprocess(self, vector: np.ndarray, normalize: bool, truncate: bool) -> Vector:
        if np.isnan(vector).any():
            logger.warning("Embedding contains NaN values. Returning zero vector.")
            dimension = TRUNCATE_DIM if truncate else self.get_dimension()
            return [0.0] * dimension

        if truncate:
            vector = vector[:TRUNCATE_DIM]

        if normalize:
            norm = np.linalg.norm(vector)
            if norm > 0:
                vector = vector / norm

        return vector.tolist()


class DeterministicHashEmbedding(IEmbeddingProvider):
    """Deterministic hash-based embedding provider for testing purposes.

    This implementation uses a consistent hashing approach to generate
    reproducible embeddings from text, which is useful for testing
    without requiring external model dependencies.
    """

    def __init__(self, dimension: int = 384):
        super().__init__()
        self.dimension = dimension

    def _load(self) -> Any:
        return self

    def _encode(self, instance: Any, texts: List[str]) -> np.ndarray:
        return np.array([self.hash_vector(t) for t in texts], dtype=np.float64)

    def hash_vector(self, text: str) -> Vector:
        """Map text to [-1, 1] components using chained SHA-256 blocks."""
        vector = []
        block = 0
        while len(vector) < self.dimension:
            digest = hashlib.sha256(f"{block}:{text}".encode()).hexdigest()
            for i in range(0, len(digest), 8):
                value = int(digest[i:i + 8], 16)
                vector.append((value / (2**32)) * 2 - 1)
            block += 1
        return vector[:self.dimension]

    def get_dimension(self) -> int:
        return self.dimension


class SentenceTransformerEmbedding(IEmbeddingProvider):
    """Sentence transformers embedding provider using pre-trained models.

    Defaults to Qwen3-Embedding-0.6B; queries are prefixed with an instruction
    and passages are embedded as-is.
    """

    def __init__(self, model_name: str = "Qwen/Qwen3-Embedding-0.6B", device: Optional[str] = None):
        super().__init__()
        self.model_name = model_name
        self.device = device
        self._dimension = None

    def _load(self) -> Any:
        from sentence_transformers import SentenceTransformer

        logger.info(f"Loading embedding model: {self.model_name} on device: {self.device or 'auto'}")
        model = SentenceTransformer(self.model_name, device=self.device)
        # Left padding keeps the last token in place for last-token pooling
        model.tokenizer.padding_side = "left"
        self._dimension = model.get_sentence_embedding_dimension()
        return model

    def _encode(self, instance: Any, texts: List[str]) -> np.ndarray:
        return instance.encode(texts, convert_to_numpy=True, normalize_embeddings=False)

    def get_dimension(self) -> int:
        """Native dimension; only known once the model is loaded."""
        if self._dimension is None:
            raise EmbeddingError("Embedding model is not loaded")
        return self._dimension
