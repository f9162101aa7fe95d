"""
Rank a bank's records against a query vector.
"""

from operator import attrgetter
from typing import List, Sequence

from .schema import MemoryRecord
from ..vector.similarity import cosine_similarity
from ..vector.types import RankedResult

HIGH_RELEVANCE_THRESHOLD = 0.49
MEDIUM_RELEVANCE_THRESHOLD = 0.38


def classify_relevance(score: float) -> str:
    """Relevance tier for a cosine similarity score: high, medium or low."""
    if score > HIGH_RELEVANCE_THRESHOLD:
        return "high"
    if score > MEDIUM_RELEVANCE_THRESHOLD:
        return "medium"
    return "low"


def rank(query_vector: Sequence[float], records: Sequence[MemoryRecord]) -> List[RankedResult]:
    """Score every record against the query, best first.

    Records with equal scores keep their original order.
    """
    results = []
    for record in records:
        score = cosine_similarity(query_vector, record.embedding)
        results.append(RankedResult(text=record.text, score=score, relevance=classify_relevance(score)))

    return sorted(results, key=attrgetter("score"), reverse=True)
