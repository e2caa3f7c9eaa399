from __future__ import annotations

import time

from fastapi import Request
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest
from starlette.responses import Response

from hybrid_rag.app.settings import settings

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"],
)
REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "path"],
)
QUERY_COUNT = Counter(
    "rag_queries_total",
    "Queries processed by outcome",
    ["outcome"],
)
QUERY_LATENCY = Histogram(
    "rag_query_duration_seconds",
    "End-to-end query duration in seconds",
)
RETRIEVAL_LATENCY = Histogram(
    "rag_retrieval_duration_seconds",
    "Hybrid retrieval duration in seconds",
)


async def metrics_middleware(request: Request, call_next):
    if not settings.metrics_enabled:
        return await call_next(request)
    path = request.url.path
    if path == "/metrics":
        return await call_next(request)
    start = time.monotonic()
    status = 500
    try:
        response = await call_next(request)
        status = response.status_code
        return response
    finally:
        duration = time.monotonic() - start
        REQUEST_COUNT.labels(request.method, path, str(status)).inc()
        REQUEST_LATENCY.labels(request.method, path).observe(duration)


def record_query(outcome: str, duration: float) -> None:
    if not settings.metrics_enabled:
        return
    QUERY_COUNT.labels(outcome).inc()
    QUERY_LATENCY.observe(duration)


def record_retrieval(duration: float) -> None:
    if not settings.metrics_enabled:
        return
    RETRIEVAL_LATENCY.observe(duration)


def metrics_response() -> Response:
    if not settings.metrics_enabled:
        return Response(status_code=404)
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)
