# =============================================================================
# Celery Task Definitions - Embedding Pipeline
# =============================================================================
#
#   embed_document_task(document_id, user_id=None)
#       → services.ingestion.embed_document
#   reembed_user_documents_task(user_id)
#       → services.ingestion.reembed_all_documents
#
# IMPORTANT: Celery workers are SYNCHRONOUS.
# The ingestion services use the sync SQLAlchemy engine; nothing here may
# await or touch the async engine.
#
# RETRY STRATEGY:
# max_retries=3 with exponential backoff (60s, 120s, 240s) for transient
# errors (database drops, embedding API rate limits). A document that no
# longer exists (NotFoundError) is not retried. While retries remain the
# document stays FAILED with the last error, which the next attempt clears.
# =============================================================================

import logging

from findocai.errors import NotFoundError
from findocai.services.ingestion import embed_document, reembed_all_documents
from findocai.workers.celery_app import celery_app

logger = logging.getLogger(__name__)

_BASE_RETRY_DELAY = 60


def _backoff(retries: int) -> int:
    return _BASE_RETRY_DELAY * (2 ** retries)


@celery_app.task(bind=True, name="embed_document", max_retries=3)
def embed_document_task(self, document_id: str, user_id: str | None = None) -> dict:
    """
    Embed one document (replacing its chunks).

    Returns:
        dict summary: document_id, status, chunk_count, ocr_chunks,
        analysis_chunks.
    """
    task_id = self.request.id
    logger.info(
        "[%s] Embedding document_id=%s (attempt %d)",
        task_id, document_id, self.request.retries + 1,
    )

    try:
        summary = embed_document(document_id, user_id)
    except NotFoundError:
        logger.warning("[%s] document_id=%s not found; not retrying", task_id, document_id)
        raise
    except Exception as exc:
        # embed_document already logged the traceback and marked it FAILED
        raise self.retry(exc=exc, countdown=_backoff(self.request.retries))

    result = {
        "document_id": summary.document_id,
        "status": summary.status,
        "chunk_count": summary.chunk_count,
        "ocr_chunks": summary.ocr_chunks,
        "analysis_chunks": summary.analysis_chunks,
    }
    logger.info("[%s] Embedding complete: %s", task_id, result)
    return result


@celery_app.task(bind=True, name="reembed_user_documents", max_retries=3)
def reembed_user_documents_task(self, user_id: str) -> dict:
    """
    Rebuild every chunk of one user's documents.

    Per-document failures are reported in the result, not retried; only a
    failure of the whole run (e.g. the database is down) is retried.
    """
    task_id = self.request.id
    logger.info("[%s] Re-embedding all documents for user_id=%s", task_id, user_id)

    try:
        summaries = reembed_all_documents(user_id)
    except Exception as exc:
        logger.exception("[%s] Re-embed failed for user_id=%s", task_id, user_id)
        raise self.retry(exc=exc, countdown=_backoff(self.request.retries))

    failed = [s.document_id for s in summaries if s.error]
    result = {
        "user_id": user_id,
        "documents": len(summaries),
        "chunk_count": sum(s.chunk_count for s in summaries),
        "failed_documents": failed,
    }
    logger.info("[%s] Re-embed complete: %s", task_id, result)
    return result
