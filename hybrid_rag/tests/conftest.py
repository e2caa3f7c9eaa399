from __future__ import annotations

"""Shared pytest fixtures and test environment defaults."""

import os
import sys
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[2]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

os.environ["RAG_GENERATOR"] = "extractive"
os.environ["EMBEDDING_PROVIDER"] = "hash"
os.environ["EMBEDDING_DIMENSION"] = "256"
os.environ.pop("OPENAI_API_KEY", None)
os.environ.setdefault("RAG_METRICS_ENABLED", "true")

from hybrid_rag.rag.types import Document  # noqa: E402


def _document(doc_id: str, content: str, embedding: list[float], **metadata: object) -> Document:
    return Document(doc_id=doc_id, content=content, embedding=tuple(embedding), metadata=dict(metadata))


@pytest.fixture
def corpus() -> list[Document]:
    """Three passages with hand-picked 3-d embeddings."""
    return [
        _document(
            "alpha",
            "Le budget municipal finance les écoles et les transports.",
            [1.0, 0.0, 0.0],
            titre="Budget",
            dossier="finances",
        ),
        _document(
            "beta",
            "Les transports publics desservent la gare centrale.",
            [0.0, 1.0, 0.0],
            titre="Transports",
            dossier="mobilite",
        ),
        _document(
            "gamma",
            "La bibliothèque ouvre le samedi pour les écoles.",
            [0.6, 0.8, 0.0],
            titre="Culture",
            dossier="culture",
        ),
    ]


@pytest.fixture
def anyio_backend() -> str:
    """The code under test is asyncio-based; run anyio-marked tests on asyncio only."""
    return "asyncio"
