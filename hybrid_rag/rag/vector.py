from __future__ import annotations

"""Exhaustive cosine similarity scoring against the corpus."""

import math
from typing import Iterable, Sequence

from hybrid_rag.rag.errors import DimensionMismatchError
from hybrid_rag.rag.types import Document, ScoredResult


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Compute cosine similarity between two vectors.

    No epsilon is added to the denominator: a zero-norm vector gives NaN,
    which callers ranking results must treat as zero.
    """
    if len(a) != len(b):
        raise DimensionMismatchError(expected=len(a), actual=len(b))
    dot = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(y * y for y in b))
    denominator = norm_a * norm_b
    if denominator == 0.0:
        return math.nan
    return dot / denominator


def score_documents(query_vector: Sequence[float], documents: Iterable[Document]) -> list[ScoredResult]:
    """Score every document against the query vector, in corpus order."""
    return [
        ScoredResult(doc_id=document.doc_id, score=cosine_similarity(query_vector, document.embedding))
        for document in documents
    ]
