# =============================================================================
# Document Source - Read Access to Uploaded Documents
# =============================================================================
#
# The upload, OCR and analysis pipelines own the documents, their text and
# their structured fields. This module is the narrow read interface the
# embedding pipeline needs, plus the one write it is allowed: recording the
# embedding outcome on the document.
#
#   DocumentSource (Protocol)
#   ├── SqlDocumentSource       - sync SQLAlchemy (Celery workers)
#   └── InMemoryDocumentSource  - process-local (local development, tests)
#
# Methods are synchronous because ingestion runs in Celery workers; the API
# calls them through asyncio.to_thread().
# =============================================================================

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Protocol

from sqlalchemy import select, update

from findocai.config import settings
from findocai.db.engine import get_sync_session
from findocai.db.models import AnalysisResult, Document, EmbeddingStatus, OcrResult

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Data Structures
# ---------------------------------------------------------------------------


@dataclass
class DocumentInfo:
    """Identity, ownership and embedding state of one document."""

    id: str
    user_id: str
    display_name: str
    embedding_status: str = EmbeddingStatus.PENDING.value
    embedding_error: str | None = None


@dataclass
class DocumentAnalysis:
    """
    Structured fields produced by the analysis pipeline.

    Only document_type is guaranteed; the rest depend on the type.
    """

    document_type: str
    summary: str | None = None
    vendor: str | None = None
    amount: float | None = None
    invoice_number: str | None = None
    due_date: date | datetime | str | None = None
    account_number: str | None = None
    balance: float | None = None
    statement_date: date | datetime | str | None = None
    extracted_data: dict[str, Any] | None = field(default=None)


# ---------------------------------------------------------------------------
# Protocol Definition
# ---------------------------------------------------------------------------


class DocumentSource(Protocol):
    """Read access to documents plus embedding-status bookkeeping."""

    def get_document(self, document_id: str) -> DocumentInfo | None:
        ...

    def get_ocr_text(self, document_id: str) -> str | None:
        ...

    def get_analysis(self, document_id: str) -> DocumentAnalysis | None:
        ...

    def list_user_documents(self, user_id: str) -> list[DocumentInfo]:
        ...

    def set_embedding_status(
        self,
        document_id: str,
        status: EmbeddingStatus,
        error: str | None = None,
    ) -> None:
        ...


# ---------------------------------------------------------------------------
# Implementation 1: SQLAlchemy
# ---------------------------------------------------------------------------


def _to_info(doc: Document) -> DocumentInfo:
    return DocumentInfo(
        id=doc.id,
        user_id=doc.user_id,
        display_name=doc.original_name,
        embedding_status=EmbeddingStatus(doc.embedding_status).value,
        embedding_error=doc.embedding_error,
    )


class SqlDocumentSource:
    """Reads the upload pipeline's tables with short-lived sync sessions."""

    def get_document(self, document_id: str) -> DocumentInfo | None:
        with get_sync_session() as session:
            doc = session.get(Document, document_id)
            return _to_info(doc) if doc else None

    def get_ocr_text(self, document_id: str) -> str | None:
        with get_sync_session() as session:
            return session.execute(
                select(OcrResult.text).where(OcrResult.document_id == document_id)
            ).scalar_one_or_none()

    def get_analysis(self, document_id: str) -> DocumentAnalysis | None:
        with get_sync_session() as session:
            row = session.execute(
                select(AnalysisResult).where(AnalysisResult.document_id == document_id)
            ).scalar_one_or_none()
            if row is None:
                return None
            return DocumentAnalysis(
                document_type=row.document_type,
                summary=row.summary,
                vendor=row.vendor,
                amount=row.amount,
                invoice_number=row.invoice_number,
                due_date=row.due_date,
                account_number=row.account_number,
                balance=row.balance,
                statement_date=row.statement_date,
                extracted_data=row.extracted_data,
            )

    def list_user_documents(self, user_id: str) -> list[DocumentInfo]:
        with get_sync_session() as session:
            docs = session.execute(
                select(Document)
                .where(Document.user_id == user_id)
                .order_by(Document.created_at)
            ).scalars().all()
            return [_to_info(d) for d in docs]

    def set_embedding_status(
        self,
        document_id: str,
        status: EmbeddingStatus,
        error: str | None = None,
    ) -> None:
        """
        Record embedding progress in its own committed transaction.

        Committed immediately so the status survives a failing pipeline.
        """
        with get_sync_session() as session:
            session.execute(
                update(Document)
                .where(Document.id == document_id)
                .values(embedding_status=status, embedding_error=error)
            )


# ---------------------------------------------------------------------------
# Implementation 2: In-memory
# ---------------------------------------------------------------------------


class InMemoryDocumentSource:
    """Process-local document store; documents are registered with add()."""

    def __init__(self) -> None:
        self._documents: dict[str, DocumentInfo] = {}
        self._ocr: dict[str, str] = {}
        self._analysis: dict[str, DocumentAnalysis] = {}

    def add(
        self,
        document_id: str,
        user_id: str,
        display_name: str,
        ocr_text: str | None = None,
        analysis: DocumentAnalysis | None = None,
    ) -> DocumentInfo:
        info = DocumentInfo(id=document_id, user_id=user_id, display_name=display_name)
        self._documents[document_id] = info
        if ocr_text is not None:
            self._ocr[document_id] = ocr_text
        if analysis is not None:
            self._analysis[document_id] = analysis
        return info

    def remove(self, document_id: str) -> None:
        self._documents.pop(document_id, None)
        self._ocr.pop(document_id, None)
        self._analysis.pop(document_id, None)

    def get_document(self, document_id: str) -> DocumentInfo | None:
        return self._documents.get(document_id)

    def get_ocr_text(self, document_id: str) -> str | None:
        return self._ocr.get(document_id)

    def get_analysis(self, document_id: str) -> DocumentAnalysis | None:
        return self._analysis.get(document_id)

    def list_user_documents(self, user_id: str) -> list[DocumentInfo]:
        return [d for d in self._documents.values() if d.user_id == user_id]

    def set_embedding_status(
        self,
        document_id: str,
        status: EmbeddingStatus,
        error: str | None = None,
    ) -> None:
        doc = self._documents.get(document_id)
        if doc is not None:
            doc.embedding_status = EmbeddingStatus(status).value
            doc.embedding_error = error


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------

_memory_source: InMemoryDocumentSource | None = None


def get_document_source() -> SqlDocumentSource | InMemoryDocumentSource:
    """
    Return the document source for settings.storage_backend.

    The in-memory source is a process-wide singleton so the API and the
    embedding store observe the same documents.
    """
    global _memory_source
    if settings.storage_backend == "memory":
        if _memory_source is None:
            _memory_source = InMemoryDocumentSource()
        return _memory_source
    return SqlDocumentSource()
