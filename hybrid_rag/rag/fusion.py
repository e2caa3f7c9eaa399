from __future__ import annotations

"""Weighted fusion of semantic and lexical rankings."""

import math
from typing import Iterable

from hybrid_rag.rag.errors import ConfigurationError
from hybrid_rag.rag.types import FusedResult, ScoredResult


def _finite(score: float) -> float:
    return score if math.isfinite(score) else 0.0


def fuse(
    semantic: Iterable[ScoredResult],
    lexical: Iterable[ScoredResult],
    weight: float,
    k: int,
) -> list[FusedResult]:
    """Merge both result sets as ``weight * semantic + (1 - weight) * lexical``.

    A document found by only one signal keeps its place with 0 for the other.
    """
    if not 0.0 <= weight <= 1.0:
        raise ConfigurationError(f"Semantic weight must be within [0, 1], got {weight}")
    if k < 1:
        raise ConfigurationError(f"k must be at least 1, got {k}")
    combined: dict[str, list[float]] = {}
    for result in semantic:
        combined.setdefault(result.doc_id, [0.0, 0.0])[0] = _finite(result.score)
    for result in lexical:
        combined.setdefault(result.doc_id, [0.0, 0.0])[1] = _finite(result.score)
    fused = [
        FusedResult(
            doc_id=doc_id,
            score=weight * semantic_score + (1.0 - weight) * lexical_score,
            semantic_score=semantic_score,
            lexical_score=lexical_score,
        )
        for doc_id, (semantic_score, lexical_score) in combined.items()
    ]
    fused.sort(key=lambda item: item.score, reverse=True)
    return fused[:k]
