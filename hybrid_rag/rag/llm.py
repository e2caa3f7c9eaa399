from __future__ import annotations

"""Streaming generation providers."""

from dataclasses import dataclass, field
import asyncio
import json
import logging
import re
from typing import Callable, Protocol

import httpx

from hybrid_rag.rag.errors import ConfigurationError, GenerationError
from hybrid_rag.rag.prompt import (
    ANALYSIS_END,
    ANSWER_END,
    ANSWER_START,
    END_OF_TEXT,
    SOURCE_END,
    SOURCE_ID_END,
    SOURCE_ID_START,
    SOURCE_START,
)

logger = logging.getLogger(__name__)

StreamCallback = Callable[[str], None]


class GenerationProvider(Protocol):
    """Protocol for generation providers that push text chunks as they arrive."""

    async def generate(
        self,
        prompt: str,
        *,
        max_tokens: int,
        stream_callback: StreamCallback | None = None,
    ) -> str:
        """Generate a completion for ``prompt`` and return the full text."""
        raise NotImplementedError


def _emit(stream_callback: StreamCallback | None, chunk: str) -> None:
    if stream_callback is not None and chunk:
        stream_callback(chunk)


@dataclass
class OllamaGenerator:
    """Generator backed by the Ollama generate API in raw prompt mode."""
    base_url: str
    model: str
    temperature: float = 0.0
    timeout: float = 60.0
    client: httpx.AsyncClient | None = field(default=None, repr=False)

    async def generate(
        self,
        prompt: str,
        *,
        max_tokens: int,
        stream_callback: StreamCallback | None = None,
    ) -> str:
        """Stream a completion from Ollama, forwarding every chunk."""
        payload = {
            "model": self.model,
            "prompt": prompt,
            "raw": True,
            "stream": True,
            "options": {
                "temperature": self.temperature,
                "num_predict": max_tokens,
            },
        }
        pieces: list[str] = []
        owns_client = self.client is None
        client = self.client or httpx.AsyncClient(timeout=self.timeout)
        try:
            async with client.stream(
                "POST", f"{self.base_url.rstrip('/')}/api/generate", json=payload
            ) as response:
                response.raise_for_status()
                async for line in response.aiter_lines():
                    if not line.strip():
                        continue
                    try:
                        data = json.loads(line)
                    except json.JSONDecodeError as exc:
                        raise GenerationError("Invalid Ollama stream line") from exc
                    if data.get("error"):
                        raise GenerationError(str(data["error"]))
                    chunk = data.get("response") or ""
                    if chunk:
                        pieces.append(chunk)
                        _emit(stream_callback, chunk)
                    if data.get("done"):
                        break
        except httpx.HTTPError as exc:
            raise GenerationError(str(exc)) from exc
        finally:
            if owns_client:
                await client.aclose()
        logger.info(
            "generation_complete",
            extra={"provider": "ollama", "model": self.model, "chunks": len(pieces)},
        )
        return "".join(pieces)


@dataclass
class OpenAIGenerator:
    """Generator backed by an OpenAI-compatible completions endpoint."""
    api_key: str
    base_url: str
    model: str
    temperature: float = 0.0
    timeout: float = 60.0
    client: httpx.AsyncClient | None = field(default=None, repr=False)

    async def generate(
        self,
        prompt: str,
        *,
        max_tokens: int,
        stream_callback: StreamCallback | None = None,
    ) -> str:
        """Stream a completion over server-sent events."""
        payload = {
            "model": self.model,
            "prompt": prompt,
            "max_tokens": max_tokens,
            "temperature": self.temperature,
            "stream": True,
        }
        headers = {"Authorization": f"Bearer {self.api_key}"}
        pieces: list[str] = []
        owns_client = self.client is None
        client = self.client or httpx.AsyncClient(timeout=self.timeout)
        try:
            async with client.stream(
                "POST",
                f"{self.base_url.rstrip('/')}/completions",
                json=payload,
                headers=headers,
            ) as response:
                response.raise_for_status()
                async for line in response.aiter_lines():
                    if not line.startswith("data:"):
                        continue
                    data_text = line[len("data:"):].strip()
                    if data_text == "[DONE]":
                        break
                    try:
                        data = json.loads(data_text)
                    except json.JSONDecodeError as exc:
                        raise GenerationError("Invalid OpenAI stream event") from exc
                    choices = data.get("choices") or []
                    if not choices:
                        continue
                    chunk = choices[0].get("text") or ""
                    if chunk:
                        pieces.append(chunk)
                        _emit(stream_callback, chunk)
        except httpx.HTTPError as exc:
            raise GenerationError(str(exc)) from exc
        finally:
            if owns_client:
                await client.aclose()
        logger.info(
            "generation_complete",
            extra={"provider": "openai", "model": self.model, "chunks": len(pieces)},
        )
        return "".join(pieces)


_SOURCE_RE = re.compile(
    re.escape(SOURCE_START)
    + re.escape(SOURCE_ID_START)
    + r"(.*?)"
    + re.escape(SOURCE_ID_END)
    + r"(.*?)"
    + re.escape(SOURCE_END),
    flags=re.DOTALL,
)
_PIECE_RE = re.compile(r"<\|[a-z_]+\|>|\s+|[^\s<]+|<")


@dataclass
class ExtractiveGenerator:
    """Offline generator that answers with an extract of the first source."""
    max_chars: int = 480

    async def generate(
        self,
        prompt: str,
        *,
        max_tokens: int,
        stream_callback: StreamCallback | None = None,
    ) -> str:
        """Stream a source review followed by the leading passage as the answer."""
        sources = _SOURCE_RE.findall(prompt)
        if sources:
            analysis = "Reviewed sources: " + ", ".join(doc_id for doc_id, _ in sources) + "."
            answer = self._truncate(sources[0][1].strip())
        else:
            analysis = "No sources were provided."
            answer = "I don't know based on the provided context."
        text = f"{analysis}{ANALYSIS_END}{ANSWER_START}{answer}{ANSWER_END}{END_OF_TEXT}"
        pieces: list[str] = []
        for piece in _PIECE_RE.findall(text)[:max_tokens]:
            pieces.append(piece)
            _emit(stream_callback, piece)
            await asyncio.sleep(0)
        return "".join(pieces)

    def _truncate(self, text: str) -> str:
        """Trim text to the max character budget without cutting words."""
        if len(text) <= self.max_chars:
            return text
        return text[: self.max_chars].rsplit(" ", 1)[0] + "..."


def build_generator(
    provider: str,
    *,
    openai_api_key: str | None,
    openai_base_url: str,
    openai_model: str | None,
    ollama_base_url: str,
    ollama_model: str,
    temperature: float,
    timeout: float,
) -> OllamaGenerator | OpenAIGenerator | ExtractiveGenerator:
    """Factory for generation providers based on provider name."""
    normalized = provider.strip().lower()
    if normalized == "openai":
        if not openai_api_key:
            raise ConfigurationError("OPENAI_API_KEY is required for OpenAI provider")
        if not openai_model:
            raise ConfigurationError("OPENAI_COMPLETION_MODEL is required for OpenAI provider")
        return OpenAIGenerator(
            api_key=openai_api_key,
            base_url=openai_base_url,
            model=openai_model,
            temperature=temperature,
            timeout=timeout,
        )
    if normalized == "ollama":
        return OllamaGenerator(
            base_url=ollama_base_url,
            model=ollama_model,
            temperature=temperature,
            timeout=timeout,
        )
    if normalized in {"", "extractive"}:
        return ExtractiveGenerator()
    raise ConfigurationError(f"Unsupported generation provider: {provider}")
