from __future__ import annotations

"""Embedding providers used to vectorize queries."""

import hashlib
import math
import re
from dataclasses import dataclass, field
from typing import Any, Protocol

import httpx

from hybrid_rag.rag.errors import ConfigurationError, EmbeddingError

_TOKEN_RE = re.compile(r"\w+")


class EmbeddingProvider(Protocol):
    """Protocol for embedding providers."""
    dimension: int

    def embed(self, text: str) -> list[float]:
        """Return an embedding vector for the provided text."""
        raise NotImplementedError


def validate_vector(vector: list[float], dimension: int) -> list[float]:
    """Validate embedding vectors against the configured dimension."""
    if len(vector) != dimension:
        raise EmbeddingError(
            f"Embedding dimension mismatch: expected {dimension}, got {len(vector)}"
        )
    cleaned: list[float] = []
    for value in vector:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise EmbeddingError("Embedding contains a non-numeric value")
        if not math.isfinite(value):
            raise EmbeddingError("Embedding contains a non-finite value")
        cleaned.append(float(value))
    return cleaned


@dataclass
class HashEmbedder:
    """Deterministic hash-based embedder for testing or offline use."""
    dimension: int = 256

    def embed(self, text: str) -> list[float]:
        """Embed text using token hashing and L2 normalization."""
        tokens = _TOKEN_RE.findall(text.lower())
        if not tokens:
            return validate_vector([0.0] * self.dimension, self.dimension)
        vector = [0.0] * self.dimension
        for token in tokens:
            digest = hashlib.sha256(token.encode("utf-8")).digest()
            idx = int.from_bytes(digest[:4], "big") % self.dimension
            vector[idx] += 1.0
        return validate_vector(self._l2_normalize(vector), self.dimension)

    def _l2_normalize(self, vector: list[float]) -> list[float]:
        """Normalize vector magnitude to 1.0."""
        norm = math.sqrt(sum(value * value for value in vector))
        if norm == 0.0:
            return vector
        return [value / norm for value in vector]


def resolve_openai_dimension(model: str) -> int | None:
    """Return expected dimension for OpenAI embedding model."""
    mapping = {
        "text-embedding-3-small": 1536,
        "text-embedding-3-large": 3072,
        "text-embedding-ada-002": 1536,
    }
    return mapping.get(model)


@dataclass
class OpenAIEmbedder:
    """Embedding provider using OpenAI embeddings API."""
    api_key: str
    model: str
    dimension: int
    base_url: str | None = None
    client: Any = field(init=False, repr=False)

    def __post_init__(self) -> None:
        """Validate OpenAI configuration and create a client."""
        if not self.api_key:
            raise ConfigurationError("OPENAI_API_KEY is required for OpenAIEmbedder")
        if not self.model:
            raise ConfigurationError("OPENAI_EMBEDDING_MODEL is required for OpenAIEmbedder")
        resolved = resolve_openai_dimension(self.model)
        if self.dimension <= 0:
            if resolved is None:
                raise ConfigurationError(
                    "EMBEDDING_DIMENSION must be set for OpenAI embeddings when model is unknown"
                )
            self.dimension = resolved
        elif resolved is not None and self.dimension != resolved:
            raise ConfigurationError(
                f"EMBEDDING_DIMENSION should be {resolved} for model {self.model}"
            )
        from openai import OpenAI

        self.client = OpenAI(api_key=self.api_key, base_url=self.base_url)

    def embed(self, text: str) -> list[float]:
        """Embed text using the OpenAI embeddings API."""
        try:
            response = self.client.embeddings.create(model=self.model, input=text)
        except Exception as exc:
            raise EmbeddingError(str(exc)) from exc
        vector = list(response.data[0].embedding)
        return validate_vector(vector, self.dimension)


@dataclass
class OllamaEmbedder:
    """Embedding provider backed by the Ollama embeddings endpoint."""
    base_url: str
    model: str
    dimension: int
    timeout: float = 60.0
    client: httpx.Client | None = field(default=None, repr=False)

    def __post_init__(self) -> None:
        if not self.model:
            raise ConfigurationError("OLLAMA_EMBEDDING_MODEL is required for OllamaEmbedder")
        if self.dimension <= 0:
            raise ConfigurationError("EMBEDDING_DIMENSION must be set for Ollama embeddings")

    def embed(self, text: str) -> list[float]:
        """Embed text using the Ollama embeddings API."""
        payload = {"model": self.model, "prompt": text}
        owns_client = self.client is None
        client = self.client or httpx.Client(timeout=self.timeout)
        try:
            response = client.post(f"{self.base_url.rstrip('/')}/api/embeddings", json=payload)
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise EmbeddingError(str(exc)) from exc
        finally:
            if owns_client:
                client.close()
        embedding = data.get("embedding") if isinstance(data, dict) else None
        if not isinstance(embedding, list):
            raise EmbeddingError("Ollama embedding response missing embedding vector")
        return validate_vector(embedding, self.dimension)
