from __future__ import annotations

import os
from dataclasses import dataclass

try:
    from dotenv import load_dotenv
except ImportError:  # pragma: no cover - optional in minimal setups
    load_dotenv = None

if load_dotenv is not None:
    load_dotenv()


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in {"1", "true", "yes"}


@dataclass(frozen=True)
class Settings:
    dataset_path: str = os.getenv("RAG_DATASET_PATH", "")
    dataset_timeout: float = float(os.getenv("RAG_DATASET_TIMEOUT", "30"))
    top_k: int = int(os.getenv("RAG_TOP_K", "3"))
    semantic_weight: float = float(os.getenv("RAG_SEMANTIC_WEIGHT", "0.7"))
    lexical_candidates: int = int(os.getenv("RAG_LEXICAL_CANDIDATES", "10"))
    max_new_tokens: int = int(os.getenv("RAG_MAX_NEW_TOKENS", "1024"))
    stream_lookback: bool = _env_flag("RAG_STREAM_LOOKBACK", "true")
    generator_provider: str = os.getenv("RAG_GENERATOR", "extractive")
    embedding_provider: str = os.getenv("EMBEDDING_PROVIDER", "hash")
    embedding_dimension: int = int(os.getenv("EMBEDDING_DIMENSION", "256"))
    openai_api_key: str | None = os.getenv("OPENAI_API_KEY")
    openai_base_url: str = os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1")
    openai_embedding_model: str | None = os.getenv("OPENAI_EMBEDDING_MODEL")
    openai_completion_model: str | None = os.getenv("OPENAI_COMPLETION_MODEL")
    ollama_base_url: str = os.getenv("OLLAMA_BASE_URL", "http://localhost:11434")
    ollama_model: str = os.getenv("OLLAMA_MODEL", "pleias-pico")
    ollama_embedding_model: str = os.getenv("OLLAMA_EMBEDDING_MODEL", "gte-multilingual-base")
    ollama_temperature: float = float(os.getenv("OLLAMA_TEMPERATURE", "0.0"))
    ollama_timeout: float = float(os.getenv("OLLAMA_TIMEOUT", "60"))
    metrics_enabled: bool = _env_flag("RAG_METRICS_ENABLED", "true")
    log_level: str = os.getenv("RAG_LOG_LEVEL", "INFO")


settings = Settings()
