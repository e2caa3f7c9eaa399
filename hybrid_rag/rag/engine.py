from __future__ import annotations

"""Retrieval engine combining lexical and semantic search."""

import logging
from dataclasses import dataclass, field
from typing import Iterable, Sequence

from hybrid_rag.rag.errors import ConfigurationError, DimensionMismatchError, EmptyCorpusError
from hybrid_rag.rag.fusion import fuse
from hybrid_rag.rag.lexical import LexicalIndex
from hybrid_rag.rag.types import Document, SearchHit
from hybrid_rag.rag.vector import score_documents

logger = logging.getLogger(__name__)


@dataclass
class RetrievalEngine:
    """Owns the corpus and its lexical index; read-only once initialized."""
    lexical_candidates: int = 10
    corpus: dict[str, Document] = field(default_factory=dict, init=False)
    index: LexicalIndex | None = field(default=None, init=False, repr=False)
    dimension: int = field(default=0, init=False)

    @property
    def ready(self) -> bool:
        return self.index is not None

    def initialize(self, documents: Iterable[Document]) -> int:
        """Load the corpus and build the lexical index exactly once."""
        if self.ready:
            raise ConfigurationError("Retrieval engine is already initialized")
        corpus: dict[str, Document] = {}
        dimension = 0
        for document in documents:
            if document.doc_id in corpus:
                raise ConfigurationError(f"Duplicate document id: {document.doc_id}")
            if not dimension:
                dimension = document.dimension
            elif document.dimension != dimension:
                raise DimensionMismatchError(expected=dimension, actual=document.dimension)
            corpus[document.doc_id] = document
        if not corpus:
            raise EmptyCorpusError("Cannot build an index from an empty corpus")
        if dimension == 0:
            raise ConfigurationError("Documents must carry non-empty embeddings")
        self.corpus = corpus
        self.dimension = dimension
        self.index = LexicalIndex.build(corpus.values())
        logger.info(
            "index_built",
            extra={
                "documents": len(corpus),
                "terms": self.index.term_count,
                "embedding_dimension": dimension,
            },
        )
        return len(corpus)

    def search(
        self,
        query_text: str,
        query_vector: Sequence[float],
        weight: float,
        k: int,
    ) -> list[SearchHit]:
        """Return the top ``k`` documents by fused lexical and semantic score."""
        if self.index is None:
            raise ConfigurationError("Retrieval engine has not been initialized")
        if len(query_vector) != self.dimension:
            raise DimensionMismatchError(expected=self.dimension, actual=len(query_vector))
        lexical = self.index.search(query_text, k=self.lexical_candidates)
        semantic = score_documents(query_vector, self.corpus.values())
        fused = fuse(semantic, lexical, weight=weight, k=k)
        logger.info(
            "retrieval_complete",
            extra={
                "results": len(fused),
                "lexical_matches": len(lexical),
                "query_length": len(query_text),
                "semantic_weight": weight,
            },
        )
        return [
            SearchHit(
                document=self.corpus[result.doc_id],
                score=result.score,
                semantic_score=result.semantic_score,
                lexical_score=result.lexical_score,
            )
            for result in fused
        ]

    def stats(self) -> dict[str, int | bool]:
        """Return basic stats for the indexed corpus."""
        return {
            "ready": self.ready,
            "document_count": len(self.corpus),
            "term_count": self.index.term_count if self.index else 0,
            "embedding_dimension": self.dimension,
        }
