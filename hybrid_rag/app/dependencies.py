from __future__ import annotations

import logging
from functools import lru_cache

from fastapi import HTTPException, Request

from hybrid_rag.app.metrics import record_retrieval
from hybrid_rag.app.settings import settings
from hybrid_rag.loaders.dataset import load_dataset
from hybrid_rag.rag.embeddings import (
    EmbeddingProvider,
    HashEmbedder,
    OllamaEmbedder,
    OpenAIEmbedder,
)
from hybrid_rag.rag.engine import RetrievalEngine
from hybrid_rag.rag.errors import ConfigurationError
from hybrid_rag.rag.events import QueryEvent
from hybrid_rag.rag.llm import GenerationProvider, build_generator
from hybrid_rag.rag.orchestrator import QueryOrchestrator

logger = logging.getLogger(__name__)


@lru_cache
def get_embedder() -> EmbeddingProvider:
    return build_embedder()


@lru_cache
def get_generator() -> GenerationProvider:
    return build_generator(
        settings.generator_provider,
        openai_api_key=settings.openai_api_key,
        openai_base_url=settings.openai_base_url,
        openai_model=settings.openai_completion_model,
        ollama_base_url=settings.ollama_base_url,
        ollama_model=settings.ollama_model,
        temperature=settings.ollama_temperature,
        timeout=settings.ollama_timeout,
    )


def reset_provider_cache() -> None:
    get_embedder.cache_clear()
    get_generator.cache_clear()


def build_embedder() -> EmbeddingProvider:
    provider = settings.embedding_provider.lower().strip()
    if provider == "hash":
        return HashEmbedder(dimension=settings.embedding_dimension)
    if provider == "openai":
        return OpenAIEmbedder(
            api_key=settings.openai_api_key or "",
            model=settings.openai_embedding_model or "",
            dimension=settings.embedding_dimension,
            base_url=settings.openai_base_url,
        )
    if provider == "ollama":
        return OllamaEmbedder(
            base_url=settings.ollama_base_url,
            model=settings.ollama_embedding_model,
            dimension=settings.embedding_dimension,
            timeout=settings.ollama_timeout,
        )
    raise ConfigurationError(f"Unsupported embedding provider: {provider}")


def _log_event(event: QueryEvent) -> None:
    logger.info("indexing_progress", extra={"event": event.type})


async def build_orchestrator() -> QueryOrchestrator:
    """Load the corpus and index it once for the lifetime of the process."""
    documents = await load_dataset(settings.dataset_path, timeout=settings.dataset_timeout)
    orchestrator = QueryOrchestrator(
        engine=RetrievalEngine(lexical_candidates=settings.lexical_candidates),
        embedder=get_embedder(),
        generator=get_generator(),
        top_k=settings.top_k,
        semantic_weight=settings.semantic_weight,
        max_tokens=settings.max_new_tokens,
        stream_lookback=settings.stream_lookback,
        on_retrieval=record_retrieval,
    )
    orchestrator.index(documents, sink=_log_event)
    return orchestrator


def get_orchestrator(request: Request) -> QueryOrchestrator:
    orchestrator = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None:
        raise HTTPException(status_code=503, detail="Index is not ready")
    return orchestrator
