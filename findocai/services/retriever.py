# =============================================================================
# Retriever - Linear-Scan Cosine Ranking over a User's Chunks
# =============================================================================
#
# 1. EMBED - the query goes through the same embedder as the chunks
# 2. LOAD - every chunk of the caller's documents, with its vector
# 3. SCORE - cosine similarity against each chunk
# 4. RANK - stable sort, highest first; ties keep load order
#
# DESIGN DECISION: Exact linear scan instead of an ANN index.
# A user's corpus is a handful of invoices and statements, so scoring every
# chunk in Python is exact and fast enough. The Retriever protocol is the
# seam for an indexed implementation.
#
# Embedding and scoring are CPU-bound (or a blocking HTTP call for the
# OpenAI embedder), so they run via asyncio.to_thread() to keep the FastAPI
# event loop free.
# =============================================================================

from __future__ import annotations

import asyncio
import logging
import math
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol

from findocai.errors import InvalidArgumentError
from findocai.services.embedder import Embedder, get_embedder
from findocai.services.embedding_store import (
    EmbeddingStore,
    StoredChunk,
    get_embedding_store,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Data Structures
# ---------------------------------------------------------------------------


@dataclass
class SearchResult:
    """
    One ranked chunk.

    metadata carries documentId, documentType, source and, where known,
    vendor, amount and date. Used by the context and citation builders.
    """

    chunk_id: str
    document_id: str
    document_name: str | None
    content: str
    similarity: float  # cosine similarity in [-1, 1], higher = more relevant
    metadata: dict[str, Any] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Similarity
# ---------------------------------------------------------------------------


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """
    Cosine similarity of two equal-length vectors.

    Returns 0.0 when either vector has zero norm.

    Raises:
        ValueError: If the vectors differ in length.
    """
    if len(a) != len(b):
        raise ValueError(f"Vectors must have the same length ({len(a)} != {len(b)})")

    dot = 0.0
    norm_a = 0.0
    norm_b = 0.0
    for x, y in zip(a, b):
        dot += x * y
        norm_a += x * x
        norm_b += y * y

    if norm_a == 0 or norm_b == 0:
        return 0.0

    return dot / (math.sqrt(norm_a) * math.sqrt(norm_b))


def rank_chunks(
    query_embedding: Sequence[float],
    chunks: Sequence[StoredChunk],
    limit: int,
) -> list[SearchResult]:
    """Score every chunk against the query and return the top `limit`."""
    scored = [
        SearchResult(
            chunk_id=chunk.chunk_id,
            document_id=chunk.document_id,
            document_name=chunk.document_name,
            content=chunk.content,
            similarity=cosine_similarity(query_embedding, chunk.embedding),
            metadata={"documentId": chunk.document_id, **chunk.metadata},
        )
        for chunk in chunks
    ]
    # sorted() is stable: equal scores keep load order
    scored = sorted(scored, key=lambda r: r.similarity, reverse=True)
    return scored[:limit]


# ---------------------------------------------------------------------------
# Protocol Definition
# ---------------------------------------------------------------------------


class Retriever(Protocol):
    """Anything that ranks a user's chunks against a query."""

    async def search(
        self,
        query: str,
        limit: int = 5,
        user_id: str | None = None,
    ) -> list[SearchResult]:
        ...


# ---------------------------------------------------------------------------
# Implementation: linear scan
# ---------------------------------------------------------------------------


class LinearScanRetriever:
    """Exact retriever: scores every stored chunk of the user."""

    def __init__(self, store: EmbeddingStore, embedder: Embedder) -> None:
        self._store = store
        self._embedder = embedder

    async def search(
        self,
        query: str,
        limit: int = 5,
        user_id: str | None = None,
    ) -> list[SearchResult]:
        """
        Rank the user's chunks by similarity to the query.

        Args:
            query: Free-text question.
            limit: Maximum number of results (>= 1).
            user_id: Restrict to this user's documents; None searches all.

        Returns:
            At most `limit` results, highest similarity first. Empty when
            the user has no embedded documents.
        """
        if limit < 1:
            raise InvalidArgumentError(f"limit must be at least 1, got {limit}")

        chunks = await self._store.load_user_chunks(user_id)
        if not chunks:
            logger.info("No embedded chunks for user_id=%s", user_id)
            return []

        query_embedding = await asyncio.to_thread(self._embedder.embed_query, query)
        results = await asyncio.to_thread(rank_chunks, query_embedding, chunks, limit)

        logger.info(
            "Retrieved %d/%d chunks for user_id=%s (top similarity=%.3f)",
            len(results), len(chunks), user_id,
            results[0].similarity if results else 0.0,
        )
        return results


def get_retriever() -> LinearScanRetriever:
    """Build the retriever over the configured store and embedder."""
    return LinearScanRetriever(get_embedding_store(), get_embedder())
