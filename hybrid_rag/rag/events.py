from __future__ import annotations

"""Progress events emitted while indexing and answering queries."""

from dataclasses import dataclass, field
from typing import Any, Callable, ClassVar

from hybrid_rag.rag.types import SearchHit


@dataclass(frozen=True)
class QueryEvent:
    """Base class; ``type`` is the wire name of the event."""
    type: ClassVar[str] = "event"

    def payload(self) -> dict[str, Any]:
        return {}

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, **self.payload()}


@dataclass(frozen=True)
class IndexingStarted(QueryEvent):
    type: ClassVar[str] = "indexing-started"


@dataclass(frozen=True)
class IndexingComplete(QueryEvent):
    type: ClassVar[str] = "indexing-complete"
    document_count: int = 0

    def payload(self) -> dict[str, Any]:
        return {"document_count": self.document_count}


@dataclass(frozen=True)
class SearchStarted(QueryEvent):
    type: ClassVar[str] = "search-started"


@dataclass(frozen=True)
class SourcesReady(QueryEvent):
    type: ClassVar[str] = "sources-ready"
    documents: tuple[SearchHit, ...] = field(default_factory=tuple)

    def payload(self) -> dict[str, Any]:
        return {"documents": [hit.to_dict() for hit in self.documents]}


@dataclass(frozen=True)
class StreamChunk(QueryEvent):
    type: ClassVar[str] = "stream-chunk"
    pre_tag_text: str = ""
    post_tag_text: str = ""

    def payload(self) -> dict[str, Any]:
        return {"pre_tag_text": self.pre_tag_text, "post_tag_text": self.post_tag_text}


@dataclass(frozen=True)
class QueryComplete(QueryEvent):
    type: ClassVar[str] = "query-complete"
    analysis: str = ""
    answer: str = ""

    def payload(self) -> dict[str, Any]:
        return {"analysis": self.analysis, "answer": self.answer}


@dataclass(frozen=True)
class ErrorEvent(QueryEvent):
    type: ClassVar[str] = "error"
    kind: str = "unknown"
    message: str = ""

    def payload(self) -> dict[str, Any]:
        return {"kind": self.kind, "message": self.message}


EventSink = Callable[[QueryEvent], None]


def discard_event(event: QueryEvent) -> None:
    """Sink that ignores every event."""
    return None
