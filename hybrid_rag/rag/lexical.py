from __future__ import annotations

"""Inverted index with a smoothed TF-IDF scorer."""

import logging
import math
from collections import Counter
from dataclasses import dataclass, field
from typing import Iterable

from hybrid_rag.rag.tokenizer import tokenize
from hybrid_rag.rag.types import Document, ScoredResult

logger = logging.getLogger(__name__)


@dataclass
class LexicalIndex:
    """Term to posting-set mapping built once from the corpus.

    Postings keep corpus order and hold each document id at most once, so
    they behave as ordered sets.
    """
    postings: dict[str, list[str]] = field(default_factory=dict)
    term_counts: dict[str, Counter[str]] = field(default_factory=dict)

    @classmethod
    def build(cls, documents: Iterable[Document]) -> "LexicalIndex":
        """Tokenize every document body and record which documents hold each term."""
        index = cls()
        for document in documents:
            counts = Counter(tokenize(document.content))
            index.term_counts[document.doc_id] = counts
            for term in counts:
                index.postings.setdefault(term, []).append(document.doc_id)
        logger.info(
            "lexical_index_built",
            extra={
                "documents": index.document_count,
                "terms": index.term_count,
            },
        )
        return index

    @property
    def document_count(self) -> int:
        return len(self.term_counts)

    @property
    def term_count(self) -> int:
        return len(self.postings)

    def documents_for(self, term: str) -> set[str]:
        """Return the ids of documents containing ``term``."""
        return set(self.postings.get(term, ()))

    def search(self, query: str, k: int = 10) -> list[ScoredResult]:
        """Score documents sharing terms with the query, normalized by the best score.

        Each occurrence contributes ``tf * ln(N / (df + 1))``. The ``+ 1`` keeps
        terms present in every document from dominating and is kept as is.
        """
        total = self.document_count
        scores: dict[str, float] = {}
        for term in tokenize(query):
            posting = self.postings.get(term)
            if not posting:
                continue
            idf = math.log(total / (len(posting) + 1))
            for doc_id in posting:
                term_freq = self.term_counts[doc_id][term]
                scores[doc_id] = scores.get(doc_id, 0.0) + term_freq * idf
        if not scores:
            return []
        divisor = max(scores.values()) or 1.0
        normalized = [ScoredResult(doc_id=doc_id, score=score / divisor) for doc_id, score in scores.items()]
        normalized.sort(key=lambda result: result.score, reverse=True)
        return normalized[:k]
