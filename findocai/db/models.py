# =============================================================================
# Database Models - SQLAlchemy ORM
# =============================================================================
#
# SCHEMA OVERVIEW:
#
# ┌──────────────────┐       ┌──────────────────────────────────┐
# │  documents       │       │  document_embeddings             │
# ├──────────────────┤       ├──────────────────────────────────┤
# │ id (PK)          │──1:N─▶│ id (PK)                          │
# │ user_id          │       │ document_id (FK → documents.id)  │
# │ original_name    │       │ chunk_index (int)                │
# │ embedding_status │       │ content (text)                   │
# │ embedding_error  │       │ embedding (vector(384))          │
# │ created_at       │       │ metadata_ (jsonb)                │
# └──────────────────┘       │ created_at                       │
#   │1:1   │1:1              └──────────────────────────────────┘
#   ▼      ▼
# ocr_results  analysis_results
#
# ┌────────────────────┐       ┌──────────────────────────────────────────┐
# │ chat_conversations │       │ chat_messages                            │
# ├────────────────────┤       ├──────────────────────────────────────────┤
# │ id (PK)            │──1:N─▶│ id (PK)                                  │
# │ user_id            │       │ conversation_id (FK → chat_conversations)│
# │ title              │       │ role ("user" | "assistant")              │
# │ created_at         │       │ content (text)                           │
# │ updated_at         │       │ metadata_ (jsonb: {"citations": [...]})  │
# └────────────────────┘       │ created_at                               │
#                              └──────────────────────────────────────────┘
#
# documents, ocr_results and analysis_results are written by the upload,
# OCR and analysis pipelines; this service only reads them, plus the two
# embedding_* bookkeeping columns on documents.
#
# The embedding column is a pgvector `vector(384)` but retrieval does NOT
# use a pgvector index: the retriever loads a user's vectors and scores them
# in Python (see services/retriever.py).
#
# `metadata_` has a trailing underscore to avoid SQLAlchemy's reserved
# `.metadata` attribute on declarative classes.
# =============================================================================

import enum
import uuid
from datetime import datetime

from pgvector.sqlalchemy import Vector
from sqlalchemy import (
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from findocai.config import settings


def _new_id() -> str:
    return str(uuid.uuid4())


class Base(DeclarativeBase):
    """SQLAlchemy declarative base class for all FinDocAI tables."""

    pass


class EmbeddingStatus(str, enum.Enum):
    """
    Tracks the embedding pipeline state for a document.

    State machine:
        PENDING → PROCESSING → COMPLETED
                             → FAILED
    """

    PENDING = "pending"          # Uploaded, never embedded
    PROCESSING = "processing"    # Worker is chunking/embedding
    COMPLETED = "completed"      # All chunks embedded and stored
    FAILED = "failed"            # See embedding_error; re-embed to retry


# ---------------------------------------------------------------------------
# Documents (owned by the upload / OCR / analysis pipelines)
# ---------------------------------------------------------------------------


class Document(Base):
    """An uploaded financial document, owned by exactly one user."""

    __tablename__ = "documents"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)

    # Display name shown in citations ("March invoice.pdf")
    original_name: Mapped[str] = mapped_column(String(500), nullable=False)

    embedding_status: Mapped[EmbeddingStatus] = mapped_column(
        Enum(EmbeddingStatus),
        nullable=False,
        default=EmbeddingStatus.PENDING,
    )
    embedding_error: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    ocr_result: Mapped["OcrResult | None"] = relationship(
        "OcrResult",
        back_populates="document",
        cascade="all, delete-orphan",
        uselist=False,
    )
    analysis_result: Mapped["AnalysisResult | None"] = relationship(
        "AnalysisResult",
        back_populates="document",
        cascade="all, delete-orphan",
        uselist=False,
    )
    # Chunks go with their document
    embeddings: Mapped[list["DocumentEmbedding"]] = relationship(
        "DocumentEmbedding",
        back_populates="document",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return (
            f"<Document(id={self.id}, user_id={self.user_id}, "
            f"name='{self.original_name}', status={self.embedding_status})>"
        )


class OcrResult(Base):
    """Plain text extracted from a document by the OCR pipeline."""

    __tablename__ = "ocr_results"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    document_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("documents.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    text: Mapped[str] = mapped_column(Text, nullable=False, default="")

    document: Mapped["Document"] = relationship("Document", back_populates="ocr_result")


class AnalysisResult(Base):
    """
    Structured fields extracted from a document by the analysis pipeline.

    Which columns are populated depends on document_type:
    - invoice: invoice_number, vendor, amount, due_date
    - bank_statement: account_number, balance, statement_date
    - receipt: vendor, amount
    Anything else the extractor found goes to extracted_data.
    """

    __tablename__ = "analysis_results"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    document_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("documents.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    document_type: Mapped[str] = mapped_column(String(50), nullable=False)
    summary: Mapped[str | None] = mapped_column(Text, nullable=True)

    vendor: Mapped[str | None] = mapped_column(String(500), nullable=True)
    amount: Mapped[float | None] = mapped_column(Float, nullable=True)
    invoice_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    due_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    account_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    balance: Mapped[float | None] = mapped_column(Float, nullable=True)
    statement_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )

    extracted_data: Mapped[dict | None] = mapped_column(JSONB, nullable=True)

    document: Mapped["Document"] = relationship(
        "Document", back_populates="analysis_result",
    )


# ---------------------------------------------------------------------------
# Embedding chunks
# ---------------------------------------------------------------------------


class DocumentEmbedding(Base):
    """
    One retrievable chunk of a document plus its embedding vector.

    Rows are created in bulk when a document is (re-)embedded and are
    deleted and recreated wholesale on re-embedding.
    """

    __tablename__ = "document_embeddings"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)

    document_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("documents.id", ondelete="CASCADE"),
        nullable=False,
    )

    # 0-indexed emission order, unique within a document
    chunk_index: Mapped[int] = mapped_column(Integer, nullable=False)

    content: Mapped[str] = mapped_column(Text, nullable=False)

    embedding: Mapped[list[float]] = mapped_column(
        Vector(settings.embedding_dimensions),
        nullable=False,
    )

    # documentType, source ("ocr" | "analysis"), vendor?, amount?, date?
    metadata_: Mapped[dict | None] = mapped_column(
        "metadata",
        JSONB,
        nullable=True,
        default=dict,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    document: Mapped["Document"] = relationship("Document", back_populates="embeddings")

    def __repr__(self) -> str:
        return (
            f"<DocumentEmbedding(id={self.id}, doc_id={self.document_id}, "
            f"index={self.chunk_index})>"
        )


# ---------------------------------------------------------------------------
# Conversations
# ---------------------------------------------------------------------------


class ChatConversation(Base):
    """A multi-turn chat owned by one user."""

    __tablename__ = "chat_conversations"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    title: Mapped[str | None] = mapped_column(String(200), nullable=True)

    # Stamped by the application, not the server clock, so the ordering of
    # turns written in one transaction is well defined.
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    messages: Mapped[list["ChatMessage"]] = relationship(
        "ChatMessage",
        back_populates="conversation",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="ChatMessage.created_at",
    )

    def __repr__(self) -> str:
        return f"<ChatConversation(id={self.id}, user_id={self.user_id}, title='{self.title}')>"


class ChatMessage(Base):
    """An immutable user or assistant message within a conversation."""

    __tablename__ = "chat_messages"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    conversation_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("chat_conversations.id", ondelete="CASCADE"),
        nullable=False,
    )
    role: Mapped[str] = mapped_column(String(20), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)

    # Assistant messages: {"citations": [Citation, ...]}
    metadata_: Mapped[dict | None] = mapped_column("metadata", JSONB, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    conversation: Mapped["ChatConversation"] = relationship(
        "ChatConversation", back_populates="messages",
    )


# =============================================================================
# Database Indexes
# =============================================================================
# Every read path filters by owner, so index the owner columns. Scoring is a
# linear scan per user and has no vector index.
# =============================================================================

document_user_idx = Index("idx_document_user_id", Document.user_id)

embedding_document_idx = Index(
    "idx_embedding_document_chunk",
    DocumentEmbedding.document_id,
    DocumentEmbedding.chunk_index,
    unique=True,
)

conversation_user_updated_idx = Index(
    "idx_conversation_user_updated",
    ChatConversation.user_id,
    ChatConversation.updated_at,
)

message_conversation_created_idx = Index(
    "idx_message_conversation_created",
    ChatMessage.conversation_id,
    ChatMessage.created_at,
)
