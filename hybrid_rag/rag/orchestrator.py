from __future__ import annotations

"""Query orchestration: embed, retrieve, prompt, generate and demultiplex."""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Iterable

from hybrid_rag.rag.embeddings import EmbeddingProvider
from hybrid_rag.rag.engine import RetrievalEngine
from hybrid_rag.rag.errors import (
    ConfigurationError,
    DimensionMismatchError,
    EmbeddingError,
    EventSinkError,
    GenerationError,
    ProviderError,
    QueryInProgressError,
    RAGError,
)
from hybrid_rag.rag.events import (
    ErrorEvent,
    EventSink,
    IndexingComplete,
    IndexingStarted,
    QueryComplete,
    SearchStarted,
    SourcesReady,
    StreamChunk,
    discard_event,
)
from hybrid_rag.rag.llm import GenerationProvider
from hybrid_rag.rag.prompt import build_generation_prompt
from hybrid_rag.rag.stream import StreamDemultiplexer
from hybrid_rag.rag.types import Document, SearchHit

logger = logging.getLogger(__name__)


def error_kind(exc: RAGError) -> str:
    if isinstance(exc, ProviderError):
        return exc.provider
    if isinstance(exc, ConfigurationError):
        return "configuration"
    if isinstance(exc, QueryInProgressError):
        return "busy"
    if isinstance(exc, EventSinkError):
        return "sink"
    return "internal"


@dataclass
class QueryAnswer:
    question: str
    analysis: str
    answer: str
    sources: list[SearchHit]


@dataclass
class QueryOrchestrator:
    """Runs one query at a time against a shared retrieval engine."""
    engine: RetrievalEngine
    embedder: EmbeddingProvider
    generator: GenerationProvider
    top_k: int = 3
    semantic_weight: float = 0.7
    max_tokens: int = 1024
    stream_lookback: bool = True
    on_retrieval: Callable[[float], None] | None = None
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock, init=False, repr=False)

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    def index(self, documents: Iterable[Document], sink: EventSink = discard_event) -> int:
        """Build the engine's index, reporting progress to ``sink``."""
        sink(IndexingStarted())
        documents = list(documents)
        try:
            # Checked before initialize so a rejected corpus leaves the engine empty.
            if documents and documents[0].dimension != self.embedder.dimension:
                raise DimensionMismatchError(
                    expected=documents[0].dimension, actual=self.embedder.dimension
                )
            count = self.engine.initialize(documents)
        except ConfigurationError as exc:
            sink(ErrorEvent(kind=error_kind(exc), message=str(exc)))
            raise
        sink(IndexingComplete(document_count=count))
        return count

    async def run_query(
        self,
        question: str,
        weight: float | None = None,
        sink: EventSink = discard_event,
        top_k: int | None = None,
    ) -> QueryAnswer:
        """Answer ``question``; fails fast if another query is still running."""
        if self._lock.locked():
            exc = QueryInProgressError("A query is already in progress")
            sink(ErrorEvent(kind=error_kind(exc), message=str(exc)))
            raise exc
        async with self._lock:
            try:
                return await self._run(
                    question,
                    self.semantic_weight if weight is None else weight,
                    self.top_k if top_k is None else top_k,
                    sink,
                )
            except RAGError as exc:
                logger.warning(
                    "query_failed",
                    extra={"kind": error_kind(exc), "error": type(exc).__name__},
                )
                sink(ErrorEvent(kind=error_kind(exc), message=str(exc)))
                raise

    async def _run(self, question: str, weight: float, top_k: int, sink: EventSink) -> QueryAnswer:
        logger.info(
            "query_received",
            extra={"query_length": len(question), "semantic_weight": weight, "top_k": top_k},
        )
        query_vector = await self._embed(question)
        sink(SearchStarted())
        started = time.monotonic()
        hits = self.engine.search(question, query_vector, weight=weight, k=top_k)
        if self.on_retrieval is not None:
            self.on_retrieval(time.monotonic() - started)
        sink(SourcesReady(documents=tuple(hits)))

        prompt = build_generation_prompt(question, hits)
        demux = StreamDemultiplexer(lookback=self.stream_lookback)

        def publish(pre_tag: str, post_tag: str) -> None:
            try:
                sink(StreamChunk(pre_tag_text=pre_tag, post_tag_text=post_tag))
            except Exception as exc:
                raise EventSinkError(f"Event sink failed: {exc}") from exc

        def on_chunk(chunk: str) -> None:
            publish(*demux.feed(chunk))

        await self._generate(prompt, on_chunk)
        before = demux.buffers
        analysis, answer = demux.flush()
        if (analysis, answer) != before:
            publish(analysis, answer)
        sink(QueryComplete(analysis=analysis, answer=answer))
        logger.info(
            "query_completed",
            extra={
                "sources": len(hits),
                "analysis_length": len(analysis),
                "answer_length": len(answer),
                "split_seen": demux.state.tag_seen,
            },
        )
        return QueryAnswer(question=question, analysis=analysis, answer=answer, sources=hits)

    async def _embed(self, question: str) -> list[float]:
        try:
            return await asyncio.to_thread(self.embedder.embed, question)
        except EmbeddingError:
            raise
        except Exception as exc:
            raise EmbeddingError(str(exc)) from exc

    async def _generate(self, prompt: str, on_chunk) -> str:
        try:
            return await self.generator.generate(
                prompt, max_tokens=self.max_tokens, stream_callback=on_chunk
            )
        except (GenerationError, EventSinkError):
            raise
        except Exception as exc:
            raise GenerationError(str(exc)) from exc
