# =============================================================================
# Embedding Store - Durable Chunks + Vectors, Keyed by Document
# =============================================================================
#
# DESIGN DECISION: Protocol (structural typing) over ABC.
# Ingestion, the retriever and the tests depend only on the method shapes,
# so the in-memory store needs no inheritance to stand in for PostgreSQL.
#
# DESIGN DECISION: Mixed sync/async interface.
# - add_chunks() / delete_*() are sync → called by Celery workers
# - load_user_chunks() / count_user_chunks() are async → called by FastAPI
#
# DESIGN DECISION: The store hands back raw vectors, it does not rank.
# Ranking is a linear cosine scan in services/retriever.py, so the pgvector
# column is used for storage only.
#
# ARCHITECTURE:
#   EmbeddingStore (Protocol)
#   ├── PgEmbeddingStore       - PostgreSQL, document_embeddings table
#   └── InMemoryEmbeddingStore - process-local, resolves owners through a
#                                DocumentSource
# =============================================================================

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Protocol

from sqlalchemy import delete, func, select

from findocai.config import settings
from findocai.db.engine import async_session_factory, get_sync_session
from findocai.db.models import Document, DocumentEmbedding
from findocai.services.documents import DocumentSource, get_document_source

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Data Structures
# ---------------------------------------------------------------------------


@dataclass
class NewChunk:
    """A chunk ready to be written: text, its vector and its metadata."""

    chunk_index: int
    content: str
    embedding: list[float]
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class StoredChunk:
    """
    A persisted chunk joined with the name of its owning document.

    document_name is None when the document can no longer be resolved.
    """

    chunk_id: str
    document_id: str
    document_name: str | None
    chunk_index: int
    content: str
    embedding: list[float]
    metadata: dict[str, Any] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Protocol Definition
# ---------------------------------------------------------------------------


class EmbeddingStore(Protocol):
    """Persistence for document chunks and their embeddings."""

    def add_chunks(self, document_id: str, chunks: list[NewChunk]) -> list[str]:
        """Store chunks for one document. Sync (for Celery). Returns chunk IDs."""
        ...

    def delete_document_chunks(self, document_id: str) -> int:
        """Delete every chunk of one document. Returns the number deleted."""
        ...

    def delete_user_chunks(self, user_id: str) -> int:
        """Delete every chunk of every document the user owns."""
        ...

    async def load_user_chunks(self, user_id: str | None = None) -> list[StoredChunk]:
        """
        Load chunks with their vectors. Async (for FastAPI).

        Args:
            user_id: Restrict to this user's documents; None loads all.
        """
        ...

    async def count_user_chunks(self, user_id: str) -> dict[str, int]:
        """Chunk count per document ID, for documents the user owns."""
        ...


# ---------------------------------------------------------------------------
# Implementation 1: PostgreSQL
# ---------------------------------------------------------------------------


class PgEmbeddingStore:
    """
    SQLAlchemy-backed store over the document_embeddings table.

    Uses the sync engine for writes (Celery) and the async engine for reads
    (FastAPI), matching each caller's execution model.
    """

    def add_chunks(self, document_id: str, chunks: list[NewChunk]) -> list[str]:
        with get_sync_session() as session:
            rows = [
                DocumentEmbedding(
                    document_id=document_id,
                    chunk_index=chunk.chunk_index,
                    content=chunk.content,
                    embedding=chunk.embedding,
                    metadata_=chunk.metadata,
                )
                for chunk in chunks
            ]
            session.add_all(rows)

            # Flush assigns IDs without committing the transaction
            session.flush()
            chunk_ids = [row.id for row in rows]

        logger.info("Stored %d chunks for document_id=%s", len(chunk_ids), document_id)
        return chunk_ids

    def delete_document_chunks(self, document_id: str) -> int:
        with get_sync_session() as session:
            result = session.execute(
                delete(DocumentEmbedding).where(
                    DocumentEmbedding.document_id == document_id
                )
            )
            deleted = result.rowcount or 0

        logger.debug("Deleted %d chunks for document_id=%s", deleted, document_id)
        return deleted

    def delete_user_chunks(self, user_id: str) -> int:
        owned = select(Document.id).where(Document.user_id == user_id)
        with get_sync_session() as session:
            result = session.execute(
                delete(DocumentEmbedding)
                .where(DocumentEmbedding.document_id.in_(owned))
                .execution_options(synchronize_session=False)
            )
            deleted = result.rowcount or 0

        logger.info("Deleted %d chunks for user_id=%s", deleted, user_id)
        return deleted

    async def load_user_chunks(self, user_id: str | None = None) -> list[StoredChunk]:
        stmt = select(DocumentEmbedding, Document.original_name).join(
            Document, Document.id == DocumentEmbedding.document_id,
        )
        if user_id is not None:
            stmt = stmt.where(Document.user_id == user_id)

        async with async_session_factory() as session:
            result = await session.execute(stmt)
            rows = result.all()

        logger.debug("Loaded %d chunks (user_id=%s)", len(rows), user_id)

        return [
            StoredChunk(
                chunk_id=row.id,
                document_id=row.document_id,
                document_name=name,
                chunk_index=row.chunk_index,
                content=row.content,
                # pgvector returns numpy arrays
                embedding=[float(v) for v in row.embedding],
                metadata=row.metadata_ or {},
            )
            for row, name in rows
        ]

    async def count_user_chunks(self, user_id: str) -> dict[str, int]:
        stmt = (
            select(DocumentEmbedding.document_id, func.count(DocumentEmbedding.id))
            .join(Document, Document.id == DocumentEmbedding.document_id)
            .where(Document.user_id == user_id)
            .group_by(DocumentEmbedding.document_id)
        )
        async with async_session_factory() as session:
            result = await session.execute(stmt)
            return {document_id: count for document_id, count in result.all()}


# ---------------------------------------------------------------------------
# Implementation 2: In-memory
# ---------------------------------------------------------------------------


class InMemoryEmbeddingStore:
    """
    Process-local store for local development and tests.

    Ownership and display names come from the DocumentSource, the same way
    the PostgreSQL store joins against the documents table. Chunks whose
    document is unknown are skipped on read.
    """

    def __init__(self, documents: DocumentSource) -> None:
        self._documents = documents
        self._chunks: dict[str, list[StoredChunk]] = {}
        self._next_id = 0

    def add_chunks(self, document_id: str, chunks: list[NewChunk]) -> list[str]:
        stored = self._chunks.setdefault(document_id, [])
        ids: list[str] = []
        for chunk in chunks:
            self._next_id += 1
            chunk_id = f"chunk-{self._next_id}"
            stored.append(StoredChunk(
                chunk_id=chunk_id,
                document_id=document_id,
                document_name=None,
                chunk_index=chunk.chunk_index,
                content=chunk.content,
                embedding=list(chunk.embedding),
                metadata=dict(chunk.metadata),
            ))
            ids.append(chunk_id)
        return ids

    def delete_document_chunks(self, document_id: str) -> int:
        return len(self._chunks.pop(document_id, []))

    def delete_user_chunks(self, user_id: str) -> int:
        deleted = 0
        for doc in self._documents.list_user_documents(user_id):
            deleted += self.delete_document_chunks(doc.id)
        return deleted

    def _load(self, user_id: str | None) -> list[StoredChunk]:
        loaded: list[StoredChunk] = []
        for document_id, chunks in self._chunks.items():
            doc = self._documents.get_document(document_id)
            if doc is None:
                continue
            if user_id is not None and doc.user_id != user_id:
                continue
            for chunk in chunks:
                loaded.append(StoredChunk(
                    chunk_id=chunk.chunk_id,
                    document_id=document_id,
                    document_name=doc.display_name,
                    chunk_index=chunk.chunk_index,
                    content=chunk.content,
                    embedding=chunk.embedding,
                    metadata=chunk.metadata,
                ))
        return loaded

    async def load_user_chunks(self, user_id: str | None = None) -> list[StoredChunk]:
        return self._load(user_id)

    async def count_user_chunks(self, user_id: str) -> dict[str, int]:
        counts: dict[str, int] = {}
        for chunk in self._load(user_id):
            counts[chunk.document_id] = counts.get(chunk.document_id, 0) + 1
        return counts


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------

_memory_store: InMemoryEmbeddingStore | None = None


def get_embedding_store() -> PgEmbeddingStore | InMemoryEmbeddingStore:
    """
    Return the embedding store for settings.storage_backend.

    - "postgres" → PgEmbeddingStore (default)
    - "memory"   → InMemoryEmbeddingStore sharing the in-memory document
                   source singleton
    """
    global _memory_store
    if settings.storage_backend == "memory":
        if _memory_store is None:
            _memory_store = InMemoryEmbeddingStore(get_document_source())
        return _memory_store
    return PgEmbeddingStore()
