"""
Value types returned by the similarity engine and the search ranker.
All of them are immutable snapshots; callers own what they receive.
"""

from dataclasses import dataclass
from typing import Tuple


@dataclass(frozen=True)
class NeighborEdge:
    """Directed edge from a node to one of its nearest neighbors."""

    target: int
    """Index of the neighbor node"""

    score: float
    """Cosine similarity between the two nodes"""


NeighborGraph = Tuple[Tuple[NeighborEdge, ...], ...]
"""Adjacency list: entry i holds node i's edges, best first."""


@dataclass(frozen=True)
class RankedResult:
    """A bank entry scored against a query."""

    text: str
    score: float
    relevance: str


@dataclass(frozen=True)
class RelatedEntry:
    index: int
    text: str
    score: float
