from __future__ import annotations

"""Error taxonomy shared by retrieval, providers and orchestration."""


class RAGError(RuntimeError):
    """Base error for the retrieval and answering core."""
    pass


class ConfigurationError(RAGError):
    """Raised when the corpus or a search request is misconfigured."""
    pass


class EmptyCorpusError(ConfigurationError):
    """Raised when indexing is attempted with no documents."""
    pass


class DimensionMismatchError(ConfigurationError):
    """Raised when two vectors that must be compared differ in length."""

    def __init__(self, expected: int, actual: int) -> None:
        super().__init__(f"Embedding dimension mismatch: expected {expected}, got {actual}")
        self.expected = expected
        self.actual = actual


class ProviderError(RAGError):
    """Raised when an external provider call fails."""
    provider = "provider"


class EmbeddingError(ProviderError):
    """Raised when embeddings fail or are invalid."""
    provider = "embedding"


class GenerationError(ProviderError):
    """Raised when generation requests fail or responses are invalid."""
    provider = "generation"


class QueryInProgressError(RAGError):
    """Raised when a query is submitted while another one is still running."""
    pass


class EventSinkError(RAGError):
    """Raised when the caller's event sink fails while a query is streaming."""
    pass
