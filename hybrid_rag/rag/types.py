from __future__ import annotations

"""Core data types for documents and retrieval."""

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class Document:
    """Corpus passage with its precomputed embedding and display metadata."""
    doc_id: str
    content: str
    embedding: tuple[float, ...]
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def dimension(self) -> int:
        return len(self.embedding)


@dataclass(frozen=True)
class ScoredResult:
    """Single-signal score for a document (lexical or semantic)."""
    doc_id: str
    score: float


@dataclass(frozen=True)
class FusedResult:
    """Weighted combination of semantic and lexical scores."""
    doc_id: str
    score: float
    semantic_score: float
    lexical_score: float


@dataclass(frozen=True)
class SearchHit:
    """Ranked document returned by the retrieval engine."""
    document: Document
    score: float
    semantic_score: float
    lexical_score: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "document_id": self.document.doc_id,
            "content": self.document.content,
            "metadata": dict(self.document.metadata),
            "score": self.score,
            "semantic_score": self.semantic_score,
            "lexical_score": self.lexical_score,
        }
