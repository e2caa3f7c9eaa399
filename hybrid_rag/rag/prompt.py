from __future__ import annotations

"""Prompt markers shared with the generation model and prompt assembly."""

from typing import Iterable

from hybrid_rag.rag.types import SearchHit

QUERY_START = "<|query_start|>"
QUERY_END = "<|query_end|>"
SOURCE_START = "<|source_start|>"
SOURCE_END = "<|source_end|>"
SOURCE_ID_START = "<|source_id_start|>"
SOURCE_ID_END = "<|source_id_end|>"
ANALYSIS_START = "<|source_analysis_start|>"
ANALYSIS_END = "<|source_analysis_end|>"
ANSWER_START = "<|answer_start|>"
ANSWER_END = "<|answer_end|>"
END_OF_TEXT = "<|end_of_text|>"

NOOP_MARKERS = (ANSWER_START, ANSWER_END, END_OF_TEXT)


def format_source(doc_id: str, content: str) -> str:
    """Wrap a passage in source and source-id markers."""
    return f"{SOURCE_START}{SOURCE_ID_START}{doc_id}{SOURCE_ID_END}{content}{SOURCE_END}"


def build_generation_prompt(question: str, hits: Iterable[SearchHit]) -> str:
    """Build the prompt, leaving the analysis section open for the model."""
    context = "\n".join(format_source(hit.document.doc_id, hit.document.content) for hit in hits)
    return f"{QUERY_START}{question}{QUERY_END}\n{context}\n{ANALYSIS_START}"
