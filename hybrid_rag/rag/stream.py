from __future__ import annotations

"""Demultiplexer splitting a generation stream into analysis and answer text."""

import enum
from dataclasses import dataclass

from hybrid_rag.rag.prompt import ANALYSIS_END, NOOP_MARKERS

_ALL_MARKERS = (ANALYSIS_END, *NOOP_MARKERS)


class StreamPhase(str, enum.Enum):
    PRE_SPLIT = "pre_split"
    POST_SPLIT = "post_split"


@dataclass
class StreamState:
    """Accumulated buffers for one generation call."""
    pre_tag: str = ""
    post_tag: str = ""
    tag_seen: bool = False


def strip_noop_markers(text: str) -> str:
    """Remove markers that carry no payload."""
    for marker in NOOP_MARKERS:
        text = text.replace(marker, "")
    return text


def _partial_marker_length(text: str) -> int:
    """Length of the longest tail of ``text`` that could start a marker."""
    longest = 0
    for marker in _ALL_MARKERS:
        for size in range(min(len(marker) - 1, len(text)), longest, -1):
            if text.endswith(marker[:size]):
                longest = size
                break
    return longest


class StreamDemultiplexer:
    """Route streamed text into ``pre_tag`` until the analysis-end marker, then ``post_tag``.

    ``feed`` is synchronous and cheap so it can run inside a provider's stream
    callback. With ``lookback`` enabled, a chunk tail that may be the start of
    a marker is held until the next chunk, so markers split across chunks are
    still recognized; ``flush`` releases whatever is held once the stream ends.
    Without it, a marker is only recognized when a single chunk contains it.
    """

    def __init__(self, lookback: bool = True) -> None:
        self.lookback = lookback
        self.state = StreamState()
        self._held = ""

    @property
    def phase(self) -> StreamPhase:
        return StreamPhase.POST_SPLIT if self.state.tag_seen else StreamPhase.PRE_SPLIT

    @property
    def buffers(self) -> tuple[str, str]:
        return self.state.pre_tag, self.state.post_tag

    def feed(self, chunk: str) -> tuple[str, str]:
        """Consume one chunk and return the current ``(pre_tag, post_tag)``."""
        text = self._held + chunk
        self._held = ""
        if self.lookback:
            keep = _partial_marker_length(text)
            if keep:
                self._held = text[-keep:]
                text = text[:-keep]
        self._route(text)
        return self.buffers

    def flush(self) -> tuple[str, str]:
        """Release any held text; call once the stream has finished."""
        text, self._held = self._held, ""
        self._route(text)
        return self.buffers

    def _route(self, text: str) -> None:
        if not text:
            return
        state = self.state
        if state.tag_seen:
            state.post_tag += strip_noop_markers(text)
            return
        before, marker, after = text.partition(ANALYSIS_END)
        state.pre_tag += strip_noop_markers(before)
        if marker:
            state.tag_seen = True
            state.post_tag += strip_noop_markers(after)
