# =============================================================================
# Embedding Service - Text → Fixed-Length Vector (Provider-Agnostic)
# =============================================================================
#
# Providers return embeddings in different shapes:
#   OpenAI  → {"embedding": [0.1, 0.2, ...]}              (flat)
#   Gemini  → {"embedding": {"values": [0.1, 0.2, ...]}}  (nested)
#   some    → [0.1, 0.2, ...]                             (bare list)
#
# Each backend hands its raw payload to `decode_embedding()`, which parses it
# ONCE into a tagged variant (NestedValues | FlatVector) and returns a plain
# list[float]. Anything else raises EmbeddingError, so downstream code only
# ever sees one canonical vector type.
#
# ARCHITECTURE:
#   EmbeddingBackend (Protocol)
#   ├── OpenAIEmbeddingBackend   - AsyncOpenAI embeddings.create
#   └── GeminiEmbeddingBackend   - google-genai aio.models.embed_content
#   Embedder                     - decode + dimension check + summariser
#
# No retry logic here: a failed embed surfaces to the caller as a 500.
# =============================================================================

from __future__ import annotations

import logging
import numbers
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Protocol

from brainvault.config import Settings
from brainvault.errors import EmbeddingError, GenerationError
from brainvault.services.llm import LLMProvider

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Response Shapes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class NestedValues:
    """`{"embedding": {"values": [...]}}`"""

    values: list[float]


@dataclass(frozen=True)
class FlatVector:
    """`{"embedding": [...]}` or a bare `[...]`"""

    values: list[float]


EmbeddingPayload = NestedValues | FlatVector


def _as_numbers(candidate: Any) -> list[float] | None:
    if isinstance(candidate, (str, bytes)) or not isinstance(candidate, Sequence):
        return None
    if not candidate:
        return None
    if not all(
        isinstance(v, numbers.Real) and not isinstance(v, bool) for v in candidate
    ):
        return None
    return [float(v) for v in candidate]


def parse_embedding_payload(raw: Any) -> EmbeddingPayload:
    """
    Recognise a provider payload's shape.

    Raises:
        EmbeddingError: No numeric vector in any recognised shape.
    """
    if isinstance(raw, Mapping) and "embedding" in raw:
        inner = raw["embedding"]
        if isinstance(inner, Mapping):
            values = _as_numbers(inner.get("values"))
            if values is not None:
                return NestedValues(values)
        else:
            values = _as_numbers(inner)
            if values is not None:
                return FlatVector(values)
    else:
        values = _as_numbers(raw)
        if values is not None:
            return FlatVector(values)

    logger.error("Unexpected embedding format: %.200r", raw)
    raise EmbeddingError("Failed to get valid embedding")


def decode_embedding(raw: Any) -> list[float]:
    """Normalise any recognised payload to a plain list of floats."""
    payload = parse_embedding_payload(raw)
    match payload:
        case NestedValues(values=values) | FlatVector(values=values):
            return values


# ---------------------------------------------------------------------------
# Backends
# ---------------------------------------------------------------------------


class EmbeddingBackend(Protocol):
    """Fetches the raw provider payload for one text."""

    model: str

    async def fetch(self, text: str) -> Any:
        ...


class OpenAIEmbeddingBackend:
    """
    OpenAI (or OpenAI-compatible) embeddings via AsyncOpenAI.

    API key resolution order: OPENAI_API_KEY, then LLM_API_KEY.
    """

    def __init__(self, settings: Settings) -> None:
        from openai import AsyncOpenAI

        resolved_key = settings.openai_api_key or settings.llm_api_key
        if not resolved_key:
            raise ValueError(
                "No API key configured for embeddings. "
                "Set OPENAI_API_KEY or LLM_API_KEY in .env"
            )

        client_kwargs: dict = {"api_key": resolved_key}
        if settings.embedding_base_url:
            client_kwargs["base_url"] = settings.embedding_base_url

        self._client = AsyncOpenAI(**client_kwargs)
        self.model = settings.embedding_model
        self._dimensions = settings.embedding_dimensions

        logger.info(
            "Initialized OpenAI embedding backend (model=%s, base_url=%s)",
            self.model,
            settings.embedding_base_url or "https://api.openai.com/v1",
        )

    async def fetch(self, text: str) -> Any:
        create_kwargs: dict = {"model": self.model, "input": [text]}
        if self._dimensions:
            create_kwargs["dimensions"] = self._dimensions

        response = await self._client.embeddings.create(**create_kwargs)
        if not response.data:
            return {}
        return {"embedding": response.data[0].embedding}


class GeminiEmbeddingBackend:
    """
    Gemini embeddings via google-genai.

    API key resolution order: GEMINI_API_KEY, then LLM_API_KEY.
    """

    def __init__(self, settings: Settings) -> None:
        from google import genai

        resolved_key = settings.gemini_api_key or settings.llm_api_key
        if not resolved_key:
            raise ValueError(
                "No API key configured for embeddings. "
                "Set GEMINI_API_KEY or LLM_API_KEY in .env"
            )

        self._client = genai.Client(api_key=resolved_key)
        self.model = settings.embedding_model
        self._dimensions = settings.embedding_dimensions

        logger.info("Initialized Gemini embedding backend (model=%s)", self.model)

    async def fetch(self, text: str) -> Any:
        from google.genai import types

        response = await self._client.aio.models.embed_content(
            model=self.model,
            contents=text,
            config=types.EmbedContentConfig(output_dimensionality=self._dimensions),
        )
        if not response.embeddings:
            return {}
        return {"embedding": {"values": response.embeddings[0].values}}


_BACKENDS = {
    "openai": OpenAIEmbeddingBackend,
    "gemini": GeminiEmbeddingBackend,
}


def build_embedding_backend(settings: Settings) -> EmbeddingBackend:
    backend_cls = _BACKENDS.get(settings.embedding_provider)
    if backend_cls is None:
        raise ValueError(
            f"Unknown embedding provider '{settings.embedding_provider}'. "
            f"Supported: {sorted(_BACKENDS)}"
        )
    return backend_cls(settings)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

SUMMARY_PROMPT = "Summarize the key points from this text: {chunk}"


def split_chunks(text: str, chunk_size: int) -> list[str]:
    """Fixed-size character chunks, in order. Empty text → no chunks."""
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")
    return [text[i : i + chunk_size] for i in range(0, len(text), chunk_size)]


class Embedder:
    """
    Turns text into vectors and, optionally, long text into summaries.

    Args:
        backend: Provider adapter returning raw payloads.
        dimensions: Expected vector length. 0 disables the check.
        llm: Provider used by summarize_chunks(). Optional.
        summary_chunk_size: Characters per summarised chunk.
    """

    def __init__(
        self,
        backend: EmbeddingBackend,
        dimensions: int = 0,
        llm: LLMProvider | None = None,
        summary_chunk_size: int = 2000,
    ) -> None:
        self._backend = backend
        self._dimensions = dimensions
        self._llm = llm
        self._summary_chunk_size = summary_chunk_size

    async def embed(self, text: str) -> list[float]:
        """
        Embed one text.

        Raises:
            EmbeddingError: Provider call failed, payload unrecognised, or
                the vector length differs from the configured dimensions.
        """
        try:
            raw = await self._backend.fetch(text)
        except EmbeddingError:
            raise
        except Exception as e:
            logger.error("Embedding provider call failed (model=%s): %s", self._backend.model, e)
            raise EmbeddingError("Failed to get valid embedding") from e

        vector = decode_embedding(raw)

        if self._dimensions and len(vector) != self._dimensions:
            logger.error(
                "Embedding dimension mismatch: got %d, expected %d",
                len(vector), self._dimensions,
            )
            raise EmbeddingError(
                f"Embedding has {len(vector)} dimensions, expected {self._dimensions}"
            )

        logger.debug("Embedded %d chars → %d dims", len(text), len(vector))
        return vector

    async def summarize_chunks(self, text: str) -> str:
        """
        Summarise `text` chunk by chunk and join the summaries with newlines.

        Each chunk is summarised independently, in order, with one LLM call.

        Raises:
            GenerationError: An LLM call failed.
        """
        if self._llm is None:
            raise ValueError("summarize_chunks() needs an LLM provider")

        chunks = split_chunks(text, self._summary_chunk_size)
        logger.info(
            "Summarising %d chars in %d chunks of %d",
            len(text), len(chunks), self._summary_chunk_size,
        )

        summaries: list[str] = []
        for chunk in chunks:
            try:
                response = await self._llm.complete(
                    messages=[{"role": "user", "content": SUMMARY_PROMPT.format(chunk=chunk)}],
                )
            except Exception as e:
                logger.error("Chunk summary failed (%d chunks): %s", len(chunks), e)
                raise GenerationError("Failed to summarise content") from e
            summaries.append(response.content)
        return "\n".join(summaries)
