# =============================================================================
# Embedding Ingestion - Document → Chunks → Vectors → Store
# =============================================================================
#
# PIPELINE (embed_document):
# 1. Resolve the document (ownership-checked when a user_id is given)
# 2. Mark it PROCESSING
# 3. Emit chunks from two sources, OCR first:
#    - "ocr":      sentence chunks of the OCR text
#    - "analysis": one searchable sentence per structured fact (invoice /
#                  statement / receipt line, summary, extracted_data JSON)
# 4. Embed all chunks in one batch
# 5. Replace the document's stored chunks wholesale
# 6. Mark it COMPLETED, or FAILED with the error, and re-raise
#
# chunk_index runs 0..n-1 across both sources in emission order.
#
# DESIGN DECISION: Key fields travel with every chunk.
# The type-specific fields (vendor, amount, date) are document-level facts,
# so they are copied into the metadata of the document's OCR chunks as well
# as its analysis chunks. Whichever chunk ranks first can then be cited with
# its vendor and amount.
#
# Runs synchronously inside Celery workers (see workers/tasks.py).
# =============================================================================

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any

from findocai.db.models import EmbeddingStatus
from findocai.errors import NotFoundError
from findocai.services.chunker import chunk_text
from findocai.services.context import format_amount
from findocai.services.documents import DocumentAnalysis, DocumentSource, get_document_source
from findocai.services.embedder import Embedder, get_embedder
from findocai.services.embedding_store import EmbeddingStore, NewChunk, get_embedding_store

logger = logging.getLogger(__name__)

MAX_ERROR_CHARS = 1000
UNKNOWN = "unknown"


# ---------------------------------------------------------------------------
# Data Structures
# ---------------------------------------------------------------------------


@dataclass
class IngestionSummary:
    """Outcome of embedding one document."""

    document_id: str
    status: str
    ocr_chunks: int = 0
    analysis_chunks: int = 0
    error: str | None = None

    @property
    def chunk_count(self) -> int:
        return self.ocr_chunks + self.analysis_chunks


@dataclass
class DocumentEmbeddingStatus:
    document_id: str
    filename: str
    embedding_count: int
    is_embedded: bool
    embedding_status: str
    embedding_error: str | None = None


@dataclass
class EmbeddingStatusReport:
    total_documents: int
    embedded_documents: int
    total_chunks: int
    documents: list[DocumentEmbeddingStatus] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Analysis → searchable sentences
# ---------------------------------------------------------------------------


def _iso(value: date | datetime | str | None) -> str | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return str(value)


def _text(value: Any) -> str:
    return UNKNOWN if value is None or value == "" else str(value)


def _money(value: float | None) -> str:
    return UNKNOWN if value is None else format_amount(value)


def key_fields(analysis: DocumentAnalysis | None) -> dict[str, Any]:
    """Vendor / amount / date for the document type, omitting missing ones."""
    if analysis is None:
        return {}

    doc_type = analysis.document_type
    if doc_type == "invoice":
        fields = {
            "vendor": analysis.vendor,
            "amount": analysis.amount,
            "date": _iso(analysis.due_date),
        }
    elif doc_type in ("bank_statement", "statement"):
        fields = {"amount": analysis.balance, "date": _iso(analysis.statement_date)}
    elif doc_type == "receipt":
        fields = {"vendor": analysis.vendor, "amount": analysis.amount}
    else:
        fields = {}

    return {
        k: (float(v) if k == "amount" else v)
        for k, v in fields.items()
        if v is not None and v != ""
    }


def analysis_sentences(analysis: DocumentAnalysis) -> list[str]:
    """
    Render structured analysis as standalone searchable sentences.

    Missing fields render as "unknown"; amounts as 1,650.00.
    """
    sentences: list[str] = []
    doc_type = analysis.document_type

    if doc_type == "invoice":
        sentences.append(
            f"Invoice {_text(analysis.invoice_number)} from {_text(analysis.vendor)} "
            f"for amount ${_money(analysis.amount)} "
            f"due on {_text(_iso(analysis.due_date))}"
        )
    elif doc_type in ("bank_statement", "statement"):
        sentences.append(
            f"Bank statement for account {_text(analysis.account_number)} "
            f"with balance ${_money(analysis.balance)} "
            f"dated {_text(_iso(analysis.statement_date))}"
        )
    elif doc_type == "receipt":
        sentences.append(
            f"Receipt from {_text(analysis.vendor)} for amount ${_money(analysis.amount)}"
        )

    if analysis.summary and analysis.summary.strip():
        sentences.append(analysis.summary)

    if isinstance(analysis.extracted_data, dict) and analysis.extracted_data:
        sentences.append(json.dumps(analysis.extracted_data, sort_keys=True, default=str))

    return sentences


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def embed_document(
    document_id: str,
    user_id: str | None = None,
    *,
    documents: DocumentSource | None = None,
    store: EmbeddingStore | None = None,
    embedder: Embedder | None = None,
) -> IngestionSummary:
    """
    (Re-)embed one document, replacing all of its stored chunks.

    Args:
        document_id: Document to embed.
        user_id: When given, the document must belong to this user.
        documents, store, embedder: Overrides for the configured backends.

    Returns:
        IngestionSummary with per-source chunk counts.

    Raises:
        NotFoundError: Unknown document, or not owned by user_id.
        Exception: Any failure after the document was found; the document
            is marked FAILED with the message before re-raising.
    """
    documents = documents or get_document_source()
    store = store or get_embedding_store()
    embedder = embedder or get_embedder()

    doc = documents.get_document(document_id)
    if doc is None or (user_id is not None and doc.user_id != user_id):
        raise NotFoundError(f"Document {document_id} not found")

    documents.set_embedding_status(document_id, EmbeddingStatus.PROCESSING)

    try:
        analysis = documents.get_analysis(document_id)
        ocr_text = documents.get_ocr_text(document_id)

        doc_type = analysis.document_type if analysis else UNKNOWN
        shared = key_fields(analysis)
        pieces: list[tuple[str, dict[str, Any]]] = []

        if ocr_text and ocr_text.strip():
            for text in chunk_text(ocr_text):
                pieces.append((text, {"documentType": doc_type, "source": "ocr", **shared}))
        ocr_count = len(pieces)

        if analysis is not None:
            for text in analysis_sentences(analysis):
                pieces.append((text, {"documentType": doc_type, "source": "analysis", **shared}))

        vectors = embedder.embed_batch([text for text, _ in pieces])
        chunks = [
            NewChunk(
                chunk_index=i,
                content=text,
                embedding=vector,
                metadata={"chunkIndex": i, **meta},
            )
            for i, ((text, meta), vector) in enumerate(zip(pieces, vectors, strict=True))
        ]

        store.delete_document_chunks(document_id)
        if chunks:
            store.add_chunks(document_id, chunks)

        documents.set_embedding_status(document_id, EmbeddingStatus.COMPLETED)

    except Exception as exc:
        logger.exception("Embedding failed for document_id=%s", document_id)
        documents.set_embedding_status(
            document_id, EmbeddingStatus.FAILED, error=str(exc)[:MAX_ERROR_CHARS],
        )
        raise

    summary = IngestionSummary(
        document_id=document_id,
        status=EmbeddingStatus.COMPLETED.value,
        ocr_chunks=ocr_count,
        analysis_chunks=len(chunks) - ocr_count,
    )
    logger.info(
        "Embedded document_id=%s: %d chunks (%d ocr, %d analysis)",
        document_id, summary.chunk_count, summary.ocr_chunks, summary.analysis_chunks,
    )
    return summary


def reembed_all_documents(
    user_id: str,
    *,
    documents: DocumentSource | None = None,
    store: EmbeddingStore | None = None,
    embedder: Embedder | None = None,
) -> list[IngestionSummary]:
    """
    Drop every chunk the user owns, then embed each of their documents.

    A failing document is recorded as FAILED in the returned summaries and
    does not stop the others.
    """
    documents = documents or get_document_source()
    store = store or get_embedding_store()
    embedder = embedder or get_embedder()

    deleted = store.delete_user_chunks(user_id)
    logger.info("Re-embedding for user_id=%s (dropped %d chunks)", user_id, deleted)

    summaries: list[IngestionSummary] = []
    for doc in documents.list_user_documents(user_id):
        try:
            summaries.append(embed_document(
                doc.id, user_id, documents=documents, store=store, embedder=embedder,
            ))
        except Exception as exc:
            logger.warning("Skipping document_id=%s after failure: %s", doc.id, exc)
            summaries.append(IngestionSummary(
                document_id=doc.id,
                status=EmbeddingStatus.FAILED.value,
                error=str(exc)[:MAX_ERROR_CHARS],
            ))
    return summaries


async def embedding_status(
    user_id: str,
    *,
    documents: DocumentSource | None = None,
    store: EmbeddingStore | None = None,
) -> EmbeddingStatusReport:
    """Per-document chunk counts and embedding state for one user."""
    documents = documents or get_document_source()
    store = store or get_embedding_store()

    docs = await asyncio.to_thread(documents.list_user_documents, user_id)
    counts = await store.count_user_chunks(user_id)

    rows = [
        DocumentEmbeddingStatus(
            document_id=doc.id,
            filename=doc.display_name,
            embedding_count=counts.get(doc.id, 0),
            is_embedded=counts.get(doc.id, 0) > 0,
            embedding_status=doc.embedding_status,
            embedding_error=doc.embedding_error,
        )
        for doc in docs
    ]
    return EmbeddingStatusReport(
        total_documents=len(rows),
        embedded_documents=sum(1 for r in rows if r.is_embedded),
        total_chunks=sum(r.embedding_count for r in rows),
        documents=rows,
    )
