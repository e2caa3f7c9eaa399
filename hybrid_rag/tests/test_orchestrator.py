from __future__ import annotations

"""Query orchestration tests with in-process providers."""

import asyncio

import pytest

from hybrid_rag.rag.engine import RetrievalEngine
from hybrid_rag.rag.errors import (
    ConfigurationError,
    DimensionMismatchError,
    EmbeddingError,
    EmptyCorpusError,
    EventSinkError,
    GenerationError,
    QueryInProgressError,
)
from hybrid_rag.rag.events import QueryEvent, StreamChunk
from hybrid_rag.rag.llm import ExtractiveGenerator
from hybrid_rag.rag.orchestrator import QueryOrchestrator

pytestmark = pytest.mark.anyio


class FixedEmbedder:
    dimension = 3

    def __init__(self, vector: list[float] | None = None, fail: bool = False) -> None:
        self.vector = vector or [0.0, 1.0, 0.0]
        self.fail = fail

    def embed(self, text: str) -> list[float]:
        if self.fail:
            raise RuntimeError("embedding backend unavailable")
        return list(self.vector)


class ScriptedGenerator:
    def __init__(self, chunks: list[str], fail_after: int | None = None) -> None:
        self.chunks = chunks
        self.fail_after = fail_after
        self.prompts: list[str] = []
        self.release = asyncio.Event()
        self.wait_for_release = False

    async def generate(self, prompt, *, max_tokens, stream_callback=None) -> str:
        self.prompts.append(prompt)
        if self.wait_for_release:
            await self.release.wait()
        for idx, chunk in enumerate(self.chunks):
            if self.fail_after is not None and idx >= self.fail_after:
                raise GenerationError("model crashed")
            if stream_callback is not None:
                stream_callback(chunk)
        return "".join(self.chunks)


class Recorder:
    def __init__(self) -> None:
        self.events: list[QueryEvent] = []

    def __call__(self, event: QueryEvent) -> None:
        self.events.append(event)

    @property
    def types(self) -> list[str]:
        return [event.type for event in self.events]


def build_orchestrator(corpus, embedder=None, generator=None) -> QueryOrchestrator:
    orchestrator = QueryOrchestrator(
        engine=RetrievalEngine(),
        embedder=embedder or FixedEmbedder(),
        generator=generator or ScriptedGenerator([]),
    )
    orchestrator.index(corpus)
    return orchestrator


async def test_index_reports_progress(corpus) -> None:
    recorder = Recorder()
    orchestrator = QueryOrchestrator(
        engine=RetrievalEngine(), embedder=FixedEmbedder(), generator=ScriptedGenerator([])
    )

    count = orchestrator.index(corpus, sink=recorder)

    assert count == 3
    assert recorder.types == ["indexing-started", "indexing-complete"]
    assert recorder.events[1].to_dict() == {"type": "indexing-complete", "document_count": 3}


async def test_index_empty_corpus_emits_error() -> None:
    recorder = Recorder()
    orchestrator = QueryOrchestrator(
        engine=RetrievalEngine(), embedder=FixedEmbedder(), generator=ScriptedGenerator([])
    )

    with pytest.raises(EmptyCorpusError):
        orchestrator.index([], sink=recorder)
    assert recorder.types == ["indexing-started", "error"]
    assert recorder.events[-1].to_dict()["kind"] == "configuration"


async def test_index_rejects_embedder_with_other_dimension(corpus) -> None:
    embedder = FixedEmbedder()
    embedder.dimension = 8
    orchestrator = QueryOrchestrator(
        engine=RetrievalEngine(), embedder=embedder, generator=ScriptedGenerator([])
    )

    with pytest.raises(DimensionMismatchError):
        orchestrator.index(corpus)
    assert not orchestrator.engine.ready
    assert orchestrator.engine.stats()["document_count"] == 0

    embedder.dimension = 3
    assert orchestrator.index(corpus) == 3
    assert orchestrator.engine.ready


async def test_run_query_streams_and_returns_demultiplexed_answer(corpus) -> None:
    generator = ScriptedGenerator(
        ["Source beta ", "mentions the station", "<|source_analysis_end|><|answer_start|>", "Gare centrale.", "<|answer_end|>"]
    )
    orchestrator = build_orchestrator(corpus, generator=generator)
    recorder = Recorder()

    answer = await orchestrator.run_query("Où est la gare ?", weight=0.5, sink=recorder)

    assert answer.analysis == "Source beta mentions the station"
    assert answer.answer == "Gare centrale."
    assert [hit.document.doc_id for hit in answer.sources][0] == "beta"
    assert len(answer.sources) == 3
    assert recorder.types[:2] == ["search-started", "sources-ready"]
    assert recorder.types[-1] == "query-complete"
    chunks = [event.to_dict() for event in recorder.events if event.type == "stream-chunk"]
    assert len(chunks) == 5
    assert chunks[1] == {
        "type": "stream-chunk",
        "pre_tag_text": "Source beta mentions the station",
        "post_tag_text": "",
    }
    assert chunks[-1]["post_tag_text"] == "Gare centrale."
    sources = recorder.events[1].to_dict()["documents"]
    assert sources[0]["document_id"] == "beta"
    assert sources[0]["metadata"]["titre"] == "Transports"


async def test_prompt_wraps_question_and_sources(corpus) -> None:
    generator = ScriptedGenerator([])
    orchestrator = build_orchestrator(corpus, generator=generator)
    orchestrator.top_k = 1

    await orchestrator.run_query("Où est la gare ?", weight=0.5)

    assert generator.prompts == [
        "<|query_start|>Où est la gare ?<|query_end|>\n"
        "<|source_start|><|source_id_start|>beta<|source_id_end|>"
        "Les transports publics desservent la gare centrale.<|source_end|>\n"
        "<|source_analysis_start|>"
    ]


async def test_embedding_failure_emits_error_and_aborts(corpus) -> None:
    generator = ScriptedGenerator(["never"])
    orchestrator = build_orchestrator(corpus, embedder=FixedEmbedder(fail=True), generator=generator)
    recorder = Recorder()

    with pytest.raises(EmbeddingError):
        await orchestrator.run_query("gare", sink=recorder)

    assert recorder.types == ["error"]
    assert recorder.events[0].to_dict()["kind"] == "embedding"
    assert generator.prompts == []
    assert not orchestrator.busy


async def test_generation_failure_emits_error_without_completion(corpus) -> None:
    generator = ScriptedGenerator(["partial ", "text"], fail_after=1)
    orchestrator = build_orchestrator(corpus, generator=generator)
    recorder = Recorder()

    with pytest.raises(GenerationError):
        await orchestrator.run_query("gare", sink=recorder)

    assert recorder.types == ["search-started", "sources-ready", "stream-chunk", "error"]
    assert recorder.events[-1].to_dict()["kind"] == "generation"
    assert "query-complete" not in recorder.types


async def test_concurrent_query_is_rejected(corpus) -> None:
    generator = ScriptedGenerator(["done"])
    generator.wait_for_release = True
    orchestrator = build_orchestrator(corpus, generator=generator)

    first = asyncio.create_task(orchestrator.run_query("gare"))
    while not generator.prompts:
        await asyncio.sleep(0)
    recorder = Recorder()
    with pytest.raises(QueryInProgressError):
        await orchestrator.run_query("écoles", sink=recorder)
    assert recorder.types == ["error"]
    assert recorder.events[0].to_dict()["kind"] == "busy"

    generator.release.set()
    answer = await first
    assert answer.analysis == "done"
    assert not orchestrator.busy


async def test_extractive_generator_answers_with_top_passage(corpus) -> None:
    orchestrator = build_orchestrator(corpus, generator=ExtractiveGenerator())

    answer = await orchestrator.run_query("Où est la gare ?", weight=0.5)

    assert answer.analysis == "Reviewed sources: beta, gamma, alpha."
    assert answer.answer == "Les transports publics desservent la gare centrale."


async def test_explicit_zero_top_k_is_rejected(corpus) -> None:
    generator = ScriptedGenerator(["never"])
    orchestrator = build_orchestrator(corpus, generator=generator)
    recorder = Recorder()

    with pytest.raises(ConfigurationError):
        await orchestrator.run_query("gare", sink=recorder, top_k=0)

    assert recorder.types == ["search-started", "error"]
    assert recorder.events[-1].to_dict()["kind"] == "configuration"
    assert generator.prompts == []


async def test_failing_sink_is_not_reported_as_generation_error(corpus) -> None:
    recorder = Recorder()

    def sink(event) -> None:
        if isinstance(event, StreamChunk):
            raise ValueError("client went away")
        recorder(event)

    orchestrator = build_orchestrator(corpus, generator=ScriptedGenerator(["analysis"]))

    with pytest.raises(EventSinkError) as excinfo:
        await orchestrator.run_query("gare", sink=sink)

    assert isinstance(excinfo.value.__cause__, ValueError)
    assert recorder.types == ["search-started", "sources-ready", "error"]
    assert recorder.events[-1].to_dict()["kind"] == "sink"
    assert not orchestrator.busy


async def test_retrieval_duration_is_reported(corpus) -> None:
    durations: list[float] = []
    orchestrator = build_orchestrator(corpus, generator=ScriptedGenerator(["done"]))
    orchestrator.on_retrieval = durations.append

    await orchestrator.run_query("gare")

    assert len(durations) == 1
    assert durations[0] >= 0.0
