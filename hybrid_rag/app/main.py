from __future__ import annotations

"""FastAPI application entrypoint for the hybrid retrieval service."""

import asyncio
import contextlib
import json
import logging
import time
import uuid
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import StreamingResponse

from hybrid_rag.app.dependencies import build_orchestrator, get_orchestrator
from hybrid_rag.app.metrics import metrics_middleware, metrics_response, record_query
from hybrid_rag.app.schemas import QueryRequest, QueryResponse, SourceDocument, StatsResponse
from hybrid_rag.app.settings import settings
from hybrid_rag.rag.errors import (
    ConfigurationError,
    ProviderError,
    QueryInProgressError,
    RAGError,
)
from hybrid_rag.rag.events import ErrorEvent, QueryEvent
from hybrid_rag.rag.orchestrator import QueryOrchestrator, error_kind

logger = logging.getLogger(__name__)


def _configure_logging() -> None:
    """Configure root logging using environment settings."""
    level_name = settings.log_level.strip().upper()
    level = getattr(logging, level_name, logging.INFO)
    root_logger = logging.getLogger()
    if not root_logger.handlers:
        logging.basicConfig(
            level=level,
            format="%(asctime)s %(levelname)s %(name)s %(message)s",
        )
    logger.setLevel(level)


_configure_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Index the corpus once before serving queries."""
    app.state.orchestrator = await build_orchestrator()
    yield


app = FastAPI(title="Hybrid RAG Stream", version="0.1.0", lifespan=lifespan)


def _safe_error_message(exc: Exception) -> str:
    """Return a safe error type name for logs and responses."""
    return type(exc).__name__


@app.middleware("http")
async def add_request_id(request: Request, call_next):
    """Attach or create a request ID for traceability."""
    request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
    request.state.request_id = request_id
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


@app.middleware("http")
async def record_metrics(request: Request, call_next):
    """Capture request metrics before returning the response."""
    return await metrics_middleware(request, call_next)


@app.get("/metrics")
async def metrics():
    """Expose Prometheus-style metrics."""
    return metrics_response()


@app.get("/health")
async def health() -> dict[str, str]:
    """Simple health probe for uptime checks."""
    return {"status": "ok"}


@app.get("/stats", response_model=StatsResponse)
async def stats(orchestrator: QueryOrchestrator = Depends(get_orchestrator)) -> StatsResponse:
    """Return corpus and index stats."""
    return StatsResponse(**orchestrator.engine.stats())


@app.post("/query", response_model=QueryResponse)
async def query(
    request: QueryRequest,
    http_request: Request,
    orchestrator: QueryOrchestrator = Depends(get_orchestrator),
) -> QueryResponse:
    """Answer a question and return the final analysis and answer buffers."""
    request_id = getattr(http_request.state, "request_id", None)
    start = time.monotonic()
    try:
        result = await orchestrator.run_query(
            request.question,
            weight=request.semantic_weight,
            top_k=request.top_k,
        )
    except QueryInProgressError as exc:
        record_query("busy", time.monotonic() - start)
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except ProviderError as exc:
        record_query(exc.provider, time.monotonic() - start)
        logger.warning(
            "query_provider_failed",
            extra={
                "request_id": request_id,
                "provider": exc.provider,
                "error": _safe_error_message(exc),
            },
        )
        raise HTTPException(status_code=502, detail=f"{exc.provider} provider failed") from exc
    except ConfigurationError as exc:
        record_query("configuration", time.monotonic() - start)
        logger.error(
            "query_configuration_failed",
            extra={"request_id": request_id, "error": _safe_error_message(exc)},
        )
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    record_query("ok", time.monotonic() - start)
    return QueryResponse(
        question=result.question,
        analysis=result.analysis,
        answer=result.answer,
        sources=[SourceDocument(**hit.to_dict()) for hit in result.sources],
    )


async def stream_query_events(
    orchestrator: QueryOrchestrator, request: QueryRequest, request_id: str | None = None
):
    """Run one query and yield its events as NDJSON lines.

    Closing the generator early cancels the running query so the orchestrator
    is free for the next one.
    """
    queue: asyncio.Queue[QueryEvent | None] = asyncio.Queue()

    async def run() -> None:
        start = time.monotonic()
        outcome = "ok"
        try:
            await orchestrator.run_query(
                request.question,
                weight=request.semantic_weight,
                sink=queue.put_nowait,
                top_k=request.top_k,
            )
        except RAGError as exc:
            outcome = error_kind(exc)
        except asyncio.CancelledError:
            outcome = "cancelled"
            logger.info("query_stream_cancelled", extra={"request_id": request_id})
            raise
        except Exception as exc:
            outcome = "internal"
            logger.exception("query_stream_failed", extra={"request_id": request_id})
            queue.put_nowait(ErrorEvent(kind="internal", message=_safe_error_message(exc)))
        finally:
            record_query(outcome, time.monotonic() - start)
            queue.put_nowait(None)

    task = asyncio.create_task(run())
    try:
        while True:
            event = await queue.get()
            if event is None:
                break
            yield json.dumps(event.to_dict(), ensure_ascii=False) + "\n"
        await task
    finally:
        if not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task


@app.post("/query/stream")
async def query_stream(
    request: QueryRequest,
    http_request: Request,
    orchestrator: QueryOrchestrator = Depends(get_orchestrator),
) -> StreamingResponse:
    """Stream query events as newline-delimited JSON."""
    if orchestrator.busy:
        raise HTTPException(status_code=409, detail="A query is already in progress")
    request_id = getattr(http_request.state, "request_id", None)
    return StreamingResponse(
        stream_query_events(orchestrator, request, request_id),
        media_type="application/x-ndjson",
    )
