from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class QueryRequest(BaseModel):
    question: str = Field(min_length=1)
    semantic_weight: float | None = Field(default=None, ge=0.0, le=1.0)
    top_k: int | None = Field(default=None, ge=1, le=20)


class SourceDocument(BaseModel):
    document_id: str
    content: str
    metadata: dict[str, Any]
    score: float
    semantic_score: float
    lexical_score: float


class QueryResponse(BaseModel):
    question: str
    analysis: str
    answer: str
    sources: list[SourceDocument]


class StatsResponse(BaseModel):
    ready: bool
    document_count: int
    term_count: int
    embedding_dimension: int
