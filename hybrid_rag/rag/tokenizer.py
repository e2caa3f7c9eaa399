from __future__ import annotations

"""Text normalization shared by indexing and querying."""

import re

_NON_WORD_RE = re.compile(r"[^\w\s]")
MIN_TERM_LENGTH = 3


def tokenize(text: str) -> list[str]:
    """Lower-case, drop punctuation, split on whitespace and keep terms of 3+ chars."""
    cleaned = _NON_WORD_RE.sub("", text.lower())
    return [term for term in cleaned.split() if len(term) >= MIN_TERM_LENGTH]
