# =============================================================================
# Embedding Service - Text → Fixed-Length Vectors
# =============================================================================
#
# Two interchangeable embedders behind one Protocol:
#
#   Embedder (Protocol)
#   ├── HashEmbedder    - deterministic character-hash accumulator (default)
#   │                     pure function of the text, no network, no randomness
#   └── OpenAIEmbedder  - any OpenAI-compatible embeddings endpoint, requested
#                         at settings.embedding_dimensions
#
# HASH EMBEDDING ALGORITHM (embed_text):
#   acc = [0.0] * 384
#   for word i (0-based) in lower(text) split on whitespace runs:
#       for char j in word:
#           acc[j % 384] += ord(char) / (i + 1)
#   return acc / ‖acc‖   (the zero vector is returned unchanged)
#
# The 1/(i+1) factor weights earlier words more heavily. This is NOT a
# semantic embedding: paraphrased queries rank poorly. Swap in the OpenAI
# embedder (EMBEDDING_PROVIDER=openai) for semantic recall, then re-embed.
#
# Splitting uses re.split(r"\s+") rather than str.split(): leading
# whitespace yields an empty first "word" that still consumes position 0,
# which keeps vectors identical to those already stored.
# =============================================================================

from __future__ import annotations

import logging
import math
import re
from collections.abc import Sequence
from typing import Protocol

from findocai.config import settings

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")


# ---------------------------------------------------------------------------
# Hash embedding - pure functions
# ---------------------------------------------------------------------------


def embed_text(text: str, dimensions: int | None = None) -> list[float]:
    """
    Deterministically embed text as a unit (or all-zero) vector.

    Args:
        text: Any text; empty and whitespace-only text yield the zero vector.
        dimensions: Vector width. Defaults to settings.embedding_dimensions.

    Returns:
        A list of `dimensions` floats with Euclidean norm 1, or all zeros.
    """
    dims = dimensions or settings.embedding_dimensions
    acc = [0.0] * dims

    for i, word in enumerate(_WHITESPACE.split(text.lower())):
        weight = i + 1
        for j, char in enumerate(word):
            acc[j % dims] += ord(char) / weight

    norm = math.sqrt(sum(v * v for v in acc))
    if norm == 0:
        return acc

    return [v / norm for v in acc]


def embed_batch(texts: Sequence[str], dimensions: int | None = None) -> list[list[float]]:
    """Hash-embed a batch of texts, preserving input order."""
    return [embed_text(t, dimensions) for t in texts]


# ---------------------------------------------------------------------------
# Protocol Definition
# ---------------------------------------------------------------------------


class Embedder(Protocol):
    """Anything that turns text into fixed-width vectors."""

    dimensions: int

    def embed_query(self, text: str) -> list[float]:
        ...

    def embed_batch(self, texts: Sequence[str]) -> list[list[float]]:
        ...


# ---------------------------------------------------------------------------
# Implementation 1: Hash embedder
# ---------------------------------------------------------------------------


class HashEmbedder:
    """Embedder backed by the deterministic character-hash accumulator."""

    def __init__(self, dimensions: int | None = None) -> None:
        self.dimensions = dimensions or settings.embedding_dimensions

    def embed_query(self, text: str) -> list[float]:
        return embed_text(text, self.dimensions)

    def embed_batch(self, texts: Sequence[str]) -> list[list[float]]:
        return embed_batch(texts, self.dimensions)


# ---------------------------------------------------------------------------
# Implementation 2: OpenAI-compatible embeddings API
# ---------------------------------------------------------------------------


class OpenAIEmbedder:
    """
    Embedder backed by an OpenAI-compatible embeddings endpoint.

    API key resolution order: OPENAI_API_KEY, then LLM_API_KEY (one key can
    serve both the chat model and embeddings on shared providers).
    Vectors are requested at `dimensions` so they fit the same column as
    hash vectors.
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        base_url: str | None = None,
        dimensions: int | None = None,
    ) -> None:
        from openai import OpenAI

        resolved_key = api_key or settings.openai_api_key or settings.llm_api_key
        if not resolved_key:
            raise ValueError(
                "No API key configured for embeddings. "
                "Set OPENAI_API_KEY or LLM_API_KEY in .env"
            )

        client_kwargs: dict = {"api_key": resolved_key}
        resolved_base_url = base_url or settings.embedding_base_url
        if resolved_base_url:
            client_kwargs["base_url"] = resolved_base_url

        self._client = OpenAI(**client_kwargs)
        self._model = model or settings.embedding_model
        self._batch_size = settings.embedding_batch_size
        self.dimensions = dimensions or settings.embedding_dimensions

        logger.info(
            "Initialized OpenAIEmbedder (model=%s, dimensions=%d, base_url=%s)",
            self._model,
            self.dimensions,
            resolved_base_url or "https://api.openai.com/v1",
        )

    def embed_query(self, text: str) -> list[float]:
        return self.embed_batch([text])[0]

    def embed_batch(self, texts: Sequence[str]) -> list[list[float]]:
        """
        Embed texts in sub-batches of settings.embedding_batch_size.

        Returns embeddings in the SAME ORDER as the input texts.
        """
        if not texts:
            return []

        all_embeddings: list[list[float]] = [[] for _ in texts]

        for i in range(0, len(texts), self._batch_size):
            batch = list(texts[i : i + self._batch_size])
            logger.info(
                "Embedding batch %d–%d of %d texts (model=%s)",
                i + 1, min(i + self._batch_size, len(texts)), len(texts), self._model,
            )
            response = self._client.embeddings.create(
                model=self._model,
                input=batch,
                dimensions=self.dimensions,
            )
            # Items carry their input index; order output by it
            for item in sorted(response.data, key=lambda x: x.index):
                all_embeddings[i + item.index] = item.embedding

        return all_embeddings


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------

_embedder: HashEmbedder | OpenAIEmbedder | None = None


def get_embedder() -> HashEmbedder | OpenAIEmbedder:
    """
    Return the configured embedder (lazy singleton).

    Reads `embedding_provider` from settings:
    - "hash"   → HashEmbedder (default)
    - "openai" → OpenAIEmbedder
    """
    global _embedder
    if _embedder is None:
        if settings.embedding_provider == "openai":
            _embedder = OpenAIEmbedder()
        else:
            _embedder = HashEmbedder()
        logger.info("Using %s embeddings", settings.embedding_provider)
    return _embedder
