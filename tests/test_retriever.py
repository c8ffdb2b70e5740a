# =============================================================================
# Unit Tests - Retriever and In-Memory Embedding Store
# =============================================================================
#
# Uses the in-memory document source and store with hand-made vectors, so
# rankings are exact and no database is needed.
# =============================================================================

from __future__ import annotations

import asyncio
import math

import pytest

from findocai.errors import InvalidArgumentError
from findocai.services.documents import InMemoryDocumentSource
from findocai.services.embedding_store import InMemoryEmbeddingStore, NewChunk
from findocai.services.retriever import LinearScanRetriever, cosine_similarity


def _run(coro):
    """Helper to run async functions in sync tests."""
    return asyncio.run(coro)


class _FixedEmbedder:
    """Embeds every query as the same vector."""

    dimensions = 3

    def __init__(self, vector: list[float]) -> None:
        self.vector = vector

    def embed_query(self, text: str) -> list[float]:
        return list(self.vector)

    def embed_batch(self, texts):
        return [list(self.vector) for _ in texts]


def _setup(query_vector: list[float] | None = None):
    documents = InMemoryDocumentSource()
    store = InMemoryEmbeddingStore(documents)
    retriever = LinearScanRetriever(store, _FixedEmbedder(query_vector or [1.0, 0.0, 0.0]))
    return documents, store, retriever


def _chunk(index: int, content: str, vector: list[float], **meta) -> NewChunk:
    return NewChunk(chunk_index=index, content=content, embedding=vector, metadata=meta)


# ---------------------------------------------------------------------------
# Test: Cosine Similarity
# ---------------------------------------------------------------------------


class TestCosineSimilarity:
    """Tests for cosine_similarity()."""

    def test_self_similarity_is_one(self):
        v = [0.3, -1.2, 4.0]
        assert math.isclose(cosine_similarity(v, v), 1.0)

    def test_symmetric(self):
        a, b = [1.0, 2.0, 3.0], [-2.0, 0.5, 1.0]
        assert cosine_similarity(a, b) == cosine_similarity(b, a)

    def test_orthogonal_and_opposite(self):
        assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == 0.0
        assert math.isclose(cosine_similarity([1.0, 0.0], [-1.0, 0.0]), -1.0)

    def test_zero_vector_gives_zero(self):
        assert cosine_similarity([0.0, 0.0], [1.0, 1.0]) == 0.0
        assert cosine_similarity([1.0, 1.0], [0.0, 0.0]) == 0.0

    def test_length_mismatch_raises(self):
        with pytest.raises(ValueError):
            cosine_similarity([1.0, 2.0], [1.0, 2.0, 3.0])


# ---------------------------------------------------------------------------
# Test: Linear-scan retrieval
# ---------------------------------------------------------------------------


class TestLinearScanRetriever:
    """Tests for LinearScanRetriever.search()."""

    def test_ranks_by_similarity_descending(self):
        documents, store, retriever = _setup()
        documents.add("d1", "alice", "invoice.pdf")
        store.add_chunks("d1", [
            _chunk(0, "weak", [0.0, 1.0, 0.0]),
            _chunk(1, "strong", [1.0, 0.0, 0.0]),
            _chunk(2, "medium", [1.0, 1.0, 0.0]),
        ])

        results = _run(retriever.search("anything", limit=5, user_id="alice"))

        assert [r.content for r in results] == ["strong", "medium", "weak"]
        similarities = [r.similarity for r in results]
        assert similarities == sorted(similarities, reverse=True)

    def test_limit_truncates(self):
        documents, store, retriever = _setup()
        documents.add("d1", "alice", "a.pdf")
        store.add_chunks("d1", [_chunk(i, f"c{i}", [1.0, float(i), 0.0]) for i in range(8)])

        results = _run(retriever.search("q", limit=3, user_id="alice"))
        assert len(results) == 3

    def test_ties_keep_load_order(self):
        documents, store, retriever = _setup()
        documents.add("d1", "alice", "a.pdf")
        store.add_chunks("d1", [
            _chunk(0, "first", [2.0, 0.0, 0.0]),
            _chunk(1, "second", [5.0, 0.0, 0.0]),
        ])

        results = _run(retriever.search("q", user_id="alice"))
        assert [r.content for r in results] == ["first", "second"]

    def test_scoped_to_owner(self):
        documents, store, retriever = _setup()
        documents.add("d1", "alice", "alice.pdf")
        documents.add("d2", "bob", "bob.pdf")
        store.add_chunks("d1", [_chunk(0, "alice chunk", [1.0, 0.0, 0.0])])
        store.add_chunks("d2", [_chunk(0, "bob chunk", [1.0, 0.0, 0.0])])

        results = _run(retriever.search("q", user_id="alice"))
        assert [r.content for r in results] == ["alice chunk"]

    def test_no_user_searches_everything(self):
        documents, store, retriever = _setup()
        documents.add("d1", "alice", "alice.pdf")
        documents.add("d2", "bob", "bob.pdf")
        store.add_chunks("d1", [_chunk(0, "a", [1.0, 0.0, 0.0])])
        store.add_chunks("d2", [_chunk(0, "b", [1.0, 0.0, 0.0])])

        assert len(_run(retriever.search("q"))) == 2

    def test_empty_corpus_returns_empty(self):
        _, _, retriever = _setup()
        assert _run(retriever.search("q", user_id="nobody")) == []

    def test_result_carries_document_and_metadata(self):
        documents, store, retriever = _setup()
        documents.add("d1", "alice", "March invoice.pdf")
        store.add_chunks("d1", [
            _chunk(0, "Invoice", [1.0, 0.0, 0.0], source="analysis", vendor="ACME"),
        ])

        result = _run(retriever.search("q", user_id="alice"))[0]

        assert result.document_id == "d1"
        assert result.document_name == "March invoice.pdf"
        assert result.metadata["documentId"] == "d1"
        assert result.metadata["vendor"] == "ACME"
        assert math.isclose(result.similarity, 1.0)

    def test_limit_must_be_positive(self):
        _, _, retriever = _setup()
        with pytest.raises(InvalidArgumentError):
            _run(retriever.search("q", limit=0))


# ---------------------------------------------------------------------------
# Test: In-memory store bookkeeping
# ---------------------------------------------------------------------------


class TestInMemoryEmbeddingStore:
    """Tests for InMemoryEmbeddingStore."""

    def test_delete_document_chunks(self):
        documents, store, _ = _setup()
        documents.add("d1", "alice", "a.pdf")
        store.add_chunks("d1", [_chunk(0, "x", [1.0, 0.0, 0.0]), _chunk(1, "y", [0.0, 1.0, 0.0])])

        assert store.delete_document_chunks("d1") == 2
        assert _run(store.load_user_chunks("alice")) == []

    def test_delete_user_chunks_leaves_other_users(self):
        documents, store, _ = _setup()
        documents.add("d1", "alice", "a.pdf")
        documents.add("d2", "bob", "b.pdf")
        store.add_chunks("d1", [_chunk(0, "x", [1.0, 0.0, 0.0])])
        store.add_chunks("d2", [_chunk(0, "y", [1.0, 0.0, 0.0])])

        assert store.delete_user_chunks("alice") == 1
        assert len(_run(store.load_user_chunks("bob"))) == 1

    def test_count_user_chunks(self):
        documents, store, _ = _setup()
        documents.add("d1", "alice", "a.pdf")
        documents.add("d2", "alice", "b.pdf")
        store.add_chunks("d1", [_chunk(i, "x", [1.0, 0.0, 0.0]) for i in range(3)])
        store.add_chunks("d2", [_chunk(0, "y", [1.0, 0.0, 0.0])])

        assert _run(store.count_user_chunks("alice")) == {"d1": 3, "d2": 1}

    def test_chunks_of_removed_document_are_hidden(self):
        documents, store, _ = _setup()
        documents.add("d1", "alice", "a.pdf")
        store.add_chunks("d1", [_chunk(0, "x", [1.0, 0.0, 0.0])])
        documents.remove("d1")

        assert _run(store.load_user_chunks()) == []
