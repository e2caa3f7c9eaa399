from __future__ import annotations

"""Retrieval engine initialization and hybrid search tests."""

import math

import pytest

from hybrid_rag.rag.engine import RetrievalEngine
from hybrid_rag.rag.errors import (
    ConfigurationError,
    DimensionMismatchError,
    EmptyCorpusError,
)
from hybrid_rag.rag.types import Document
from hybrid_rag.rag.vector import cosine_similarity


def build_engine(documents: list[Document]) -> RetrievalEngine:
    engine = RetrievalEngine()
    engine.initialize(documents)
    return engine


def test_empty_corpus_fails_fast() -> None:
    with pytest.raises(EmptyCorpusError):
        RetrievalEngine().initialize([])


def test_duplicate_ids_are_rejected(corpus) -> None:
    with pytest.raises(ConfigurationError):
        RetrievalEngine().initialize([*corpus, corpus[0]])


def test_inconsistent_embedding_dimensions_are_rejected(corpus) -> None:
    odd = Document(doc_id="odd", content="short vector", embedding=(1.0, 0.0))
    with pytest.raises(DimensionMismatchError):
        RetrievalEngine().initialize([*corpus, odd])


def test_engine_initializes_once(corpus) -> None:
    engine = build_engine(corpus)

    with pytest.raises(ConfigurationError):
        engine.initialize(corpus)
    assert engine.stats() == {
        "ready": True,
        "document_count": 3,
        "term_count": engine.index.term_count,
        "embedding_dimension": 3,
    }


def test_search_requires_initialization() -> None:
    with pytest.raises(ConfigurationError):
        RetrievalEngine().search("gare", [1.0, 0.0, 0.0], weight=0.5, k=3)


def test_query_vector_dimension_is_checked(corpus) -> None:
    engine = build_engine(corpus)

    with pytest.raises(DimensionMismatchError):
        engine.search("gare", [1.0, 0.0], weight=0.5, k=3)


def test_hybrid_top_result_follows_documented_formula(corpus) -> None:
    engine = build_engine(corpus)
    query_vector = [1.0, 0.2, 0.0]
    weight = 0.5

    hits = engine.search("gare", query_vector, weight=weight, k=3)

    # "alpha" is the closest vector, "beta" holds the only lexical match.
    expected = {
        document.doc_id: weight * cosine_similarity(query_vector, document.embedding)
        + (1 - weight) * (1.0 if document.doc_id == "beta" else 0.0)
        for document in corpus
    }
    best = max(expected, key=expected.get)
    assert hits[0].document.doc_id == best == "beta"
    assert hits[0].score == pytest.approx(expected["beta"])
    assert [hit.score for hit in hits] == sorted((hit.score for hit in hits), reverse=True)


def test_semantic_weight_shifts_the_ranking(corpus) -> None:
    engine = build_engine(corpus)

    hits = engine.search("gare", [1.0, 0.2, 0.0], weight=0.9, k=1)

    assert [hit.document.doc_id for hit in hits] == ["alpha"]


def test_hits_carry_documents_and_metadata(corpus) -> None:
    engine = build_engine(corpus)

    hits = engine.search("bibliothèque", [0.0, 1.0, 0.0], weight=0.5, k=2)

    assert len(hits) == 2
    assert hits[0].document.metadata["titre"] in {"Transports", "Culture"}
    payload = hits[0].to_dict()
    assert payload["document_id"] == hits[0].document.doc_id
    assert set(payload) >= {"content", "metadata", "score", "semantic_score", "lexical_score"}


def test_zero_query_vector_keeps_scores_finite(corpus) -> None:
    engine = build_engine(corpus)

    hits = engine.search("gare", [0.0, 0.0, 0.0], weight=0.5, k=3)

    assert hits[0].document.doc_id == "beta"
    assert all(math.isfinite(hit.score) for hit in hits)
    assert all(hit.semantic_score == 0.0 for hit in hits)
