# =============================================================================
# Embeddings API - Enqueue Embedding Work, Report Status
# =============================================================================
#
# POST /embeddings/documents/{document_id}  → 202, embed one owned document
# POST /embeddings/reembed                  → 202, rebuild all of the caller's chunks
# GET  /embeddings/status                   → per-document chunk counts
#
# FLOW (POST):
#   1. Verify ownership now (404 for unknown or foreign documents)
#   2. Enqueue the Celery task and return its task_id immediately
#   3. The worker records progress on the document (embedding_status)
# =============================================================================

from __future__ import annotations

import asyncio
import logging

from fastapi import APIRouter, Depends

from findocai.api.deps import get_current_user_id, get_documents, get_store
from findocai.errors import NotFoundError
from findocai.models.responses import (
    DocumentEmbeddingStatusResponse,
    EmbeddingStatusResponse,
    EnqueuedResponse,
)
from findocai.services.documents import DocumentSource
from findocai.services.embedding_store import EmbeddingStore
from findocai.services.ingestion import embedding_status
from findocai.workers.tasks import embed_document_task, reembed_user_documents_task

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/embeddings", tags=["Embeddings"])


@router.post(
    "/documents/{document_id}",
    response_model=EnqueuedResponse,
    status_code=202,
    summary="Embed (or re-embed) one of your documents",
)
async def embed_document_endpoint(
    document_id: str,
    user_id: str = Depends(get_current_user_id),
    documents: DocumentSource = Depends(get_documents),
) -> EnqueuedResponse:
    doc = await asyncio.to_thread(documents.get_document, document_id)
    if doc is None or doc.user_id != user_id:
        raise NotFoundError(f"Document {document_id} not found")

    task = embed_document_task.delay(document_id, user_id)
    logger.info(
        "Enqueued embedding: document_id=%s, user_id=%s, task_id=%s",
        document_id, user_id, task.id,
    )
    return EnqueuedResponse(
        task_id=task.id,
        message=f"Embedding queued for document {document_id}.",
    )


@router.post(
    "/reembed",
    response_model=EnqueuedResponse,
    status_code=202,
    summary="Rebuild embeddings for all of your documents",
)
async def reembed_endpoint(
    user_id: str = Depends(get_current_user_id),
) -> EnqueuedResponse:
    task = reembed_user_documents_task.delay(user_id)
    logger.info("Enqueued re-embed: user_id=%s, task_id=%s", user_id, task.id)
    return EnqueuedResponse(
        task_id=task.id,
        message="Re-embedding queued for all of your documents.",
    )


@router.get(
    "/status",
    response_model=EmbeddingStatusResponse,
    summary="Embedding status of your documents",
)
async def status_endpoint(
    user_id: str = Depends(get_current_user_id),
    documents: DocumentSource = Depends(get_documents),
    store: EmbeddingStore = Depends(get_store),
) -> EmbeddingStatusResponse:
    report = await embedding_status(user_id, documents=documents, store=store)
    return EmbeddingStatusResponse(
        total_documents=report.total_documents,
        embedded_documents=report.embedded_documents,
        total_chunks=report.total_chunks,
        documents=[
            DocumentEmbeddingStatusResponse(
                document_id=d.document_id,
                filename=d.filename,
                embedding_count=d.embedding_count,
                is_embedded=d.is_embedded,
                embedding_status=d.embedding_status,
                embedding_error=d.embedding_error,
            )
            for d in report.documents
        ],
    )
