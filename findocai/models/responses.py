# =============================================================================
# API Response Models - Pydantic V2 Schemas
# =============================================================================
#
# Shapes of data going OUT of the API. Service-layer dataclasses are mapped
# onto these in the routers; vectors and raw message metadata never leave
# the server.
# =============================================================================

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """Response for GET /health - confirms the API is running."""

    status: str = "ok"
    version: str
    service: str


class CitationResponse(BaseModel):
    """A source document excerpt supporting an answer."""

    document_id: str
    document_name: str
    content: str = Field(description="Excerpt, at most 200 characters plus '...'")
    source: str = Field(description="'ocr', 'analysis' or 'document'")
    metadata: dict[str, Any] = Field(
        default_factory=dict,
        description="vendor / amount / date when known",
    )


class MessageResponse(BaseModel):
    """One message of a conversation."""

    id: str
    role: str
    content: str
    citations: list[CitationResponse] | None = Field(
        default=None,
        description="Present on assistant messages only",
    )
    timestamp: datetime


class SendMessageResponse(BaseModel):
    """Response for POST /chat/messages."""

    conversation_id: str
    assistant_message: MessageResponse
    citations: list[CitationResponse] = Field(default_factory=list)


class ConversationSummaryResponse(BaseModel):
    """One entry of GET /chat/conversations."""

    id: str
    title: str
    created_at: datetime
    updated_at: datetime
    last_message_preview: str | None = None


class ConversationResponse(BaseModel):
    """Response for PATCH /chat/conversations/{id}."""

    id: str
    title: str
    created_at: datetime
    updated_at: datetime


class DocumentEmbeddingStatusResponse(BaseModel):
    document_id: str
    filename: str
    embedding_count: int
    is_embedded: bool
    embedding_status: str
    embedding_error: str | None = None


class EmbeddingStatusResponse(BaseModel):
    """Response for GET /embeddings/status."""

    total_documents: int
    embedded_documents: int
    total_chunks: int
    documents: list[DocumentEmbeddingStatusResponse] = Field(default_factory=list)


class EnqueuedResponse(BaseModel):
    """Response for the 202 embedding endpoints."""

    task_id: str = Field(description="Celery task ID")
    status: str = "queued"
    message: str
