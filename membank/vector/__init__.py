"""
Vector layer: embedding providers and the similarity engine.
"""

from .embeddings import IEmbeddingProvider, DeterministicHashEmbedding, SentenceTransformerEmbedding, EmbeddingError
from .similarity import cosine_similarity, similarity_matrix, build_neighbor_graph, most_related
from .types import NeighborEdge, NeighborGraph, RankedResult, RelatedEntry

__all__ = [
    'IEmbeddingProvider',
    'DeterministicHashEmbedding',
    'SentenceTransformerEmbedding',
    'EmbeddingError',
    'cosine_similarity',
    'similarity_matrix',
    'build_neighbor_graph',
    'most_related',
    'NeighborEdge',
    'NeighborGraph',
    'RankedResult',
    'RelatedEntry'
]
