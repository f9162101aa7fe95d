"""
Cosine similarity and nearest-neighbor graph construction.

Everything here is pure: inputs are never modified and results are fresh
immutable values. Pairwise work is O(n^2 * d).
"""

from typing import List, Sequence

import numpy as np

from ..core.config import GRAPH_MAX_CONNECTIONS, GRAPH_THRESHOLD
from .types import NeighborEdge, NeighborGraph, RelatedEntry


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity in [-1, 1]; 0.0 when either vector has zero magnitude."""
    a = np.asarray(a, dtype=np.float64)
    b = np.asarray(b, dtype=np.float64)

    norm_a = np.linalg.norm(a)
    norm_b = np.linalg.norm(b)
    if norm_a == 0 or norm_b == 0:
        return 0.0

    if a.shape != b.shape:
        raise ValueError(f"Vector dimension {a.shape[0]} does not match {b.shape[0]}")

    similarity = float(np.dot(a, b) / (norm_a * norm_b))
    return max(-1.0, min(1.0, similarity))


def similarity_matrix(vectors: Sequence[Sequence[float]]) -> np.ndarray:
    """Pairwise cosine similarities with the diagonal forced to 0."""
    n = len(vectors)
    matrix = np.zeros((n, n), dtype=np.float64)
    for i in range(n):
        for j in range(i + 1, n):
            matrix[i, j] = matrix[j, i] = cosine_similarity(vectors[i], vectors[j])
    return matrix


def build_neighbor_graph(
    vectors: Sequence[Sequence[float]],
    k: int = GRAPH_MAX_CONNECTIONS,
    threshold: float = GRAPH_THRESHOLD,
) -> NeighborGraph:
    """Directed top-k neighbor graph.

    For each node the most similar remaining node is taken repeatedly, up to
    k times, while its similarity exceeds the threshold. Equal scores go to
    the lowest index. Mutual edges are kept on both nodes.
    """
    matrix = similarity_matrix(vectors)
    graph = []
    for i in range(len(vectors)):
        working = matrix[i].copy()
        working[i] = -np.inf  # no self loops
        edges = []
        for _ in range(max(k, 0)):
            if working.size == 0:
                break
            j = int(np.argmax(working))  # first occurrence on ties
            best = working[j]
            if not best > threshold:
                break
            edges.append(NeighborEdge(target=j, score=float(matrix[i, j])))
            working[j] = -np.inf
        graph.append(tuple(edges))
    return tuple(graph)


def most_related(vectors: Sequence[Sequence[float]], texts: Sequence[str], index: int, limit: int = 3) -> List[RelatedEntry]:
    """Other entries ranked by similarity to entry `index`, best first."""
    related = [
        RelatedEntry(index=j, text=texts[j], score=cosine_similarity(vectors[index], vectors[j]))
        for j in range(len(vectors))
        if j != index
    ]
    related.sort(key=lambda entry: entry.score, reverse=True)
    return related[:limit]
