from __future__ import annotations

"""Load pre-embedded corpus records from a JSON file or URL."""

import json
import logging
import math
from pathlib import Path
from typing import Any

import httpx

from hybrid_rag.rag.types import Document

logger = logging.getLogger(__name__)

_ID_FIELD = "id"
_BODY_FIELD = "chunk"
_EMBEDDING_FIELD = "embeddings"


class DatasetError(RuntimeError):
    pass


def _is_url(location: str) -> bool:
    return location.startswith(("http://", "https://"))


async def load_dataset(
    location: str,
    timeout: float = 30.0,
    client: httpx.AsyncClient | None = None,
) -> list[Document]:
    """Load documents from a local path or an http(s) URL."""
    if not location:
        raise DatasetError("RAG_DATASET_PATH is not configured")
    if not _is_url(location):
        return load_dataset_file(Path(location))
    owns_client = client is None
    if owns_client:
        client = httpx.AsyncClient(timeout=timeout)
    try:
        response = await client.get(location)
        response.raise_for_status()
        content = response.content
    except httpx.HTTPError as exc:
        raise DatasetError(str(exc)) from exc
    finally:
        if owns_client and client is not None:
            await client.aclose()
    return parse_dataset(content, source=location)


def load_dataset_file(path: Path) -> list[Document]:
    try:
        content = path.read_bytes()
    except OSError as exc:
        raise DatasetError(f"Failed to read dataset {path}: {exc}") from exc
    return parse_dataset(content, source=str(path))


def parse_dataset(content: bytes, source: str = "dataset") -> list[Document]:
    """Parse a JSON array of records into documents."""
    try:
        data = json.loads(content.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise DatasetError("Failed to parse dataset JSON") from exc
    if not isinstance(data, list):
        raise DatasetError("Dataset must be a JSON array of records")
    documents = [_record_to_document(record, position) for position, record in enumerate(data, start=1)]
    logger.info("dataset_loaded", extra={"source": source, "documents": len(documents)})
    return documents


def _record_to_document(record: Any, position: int) -> Document:
    if not isinstance(record, dict):
        raise DatasetError(f"Record {position} is not an object")
    doc_id = record.get(_ID_FIELD)
    body = record.get(_BODY_FIELD)
    if not isinstance(doc_id, str) or not doc_id:
        raise DatasetError(f"Record {position} is missing '{_ID_FIELD}'")
    if not isinstance(body, str):
        raise DatasetError(f"Record {doc_id} is missing '{_BODY_FIELD}'")
    return Document(
        doc_id=doc_id,
        content=body,
        embedding=_parse_embedding(record.get(_EMBEDDING_FIELD), doc_id),
        metadata={
            key: value
            for key, value in record.items()
            if key not in {_ID_FIELD, _BODY_FIELD, _EMBEDDING_FIELD}
        },
    )


def _parse_embedding(raw: Any, doc_id: str) -> tuple[float, ...]:
    if not isinstance(raw, list) or not raw:
        raise DatasetError(f"Record {doc_id} is missing '{_EMBEDDING_FIELD}'")
    values: list[float] = []
    for value in raw:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise DatasetError(f"Record {doc_id} has a non-numeric embedding value")
        if not math.isfinite(value):
            raise DatasetError(f"Record {doc_id} has a non-finite embedding value")
        values.append(float(value))
    return tuple(values)
