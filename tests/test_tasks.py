# =============================================================================
# Unit Tests - Celery Embedding Tasks
# =============================================================================
#
# Calls the task bodies directly (task.run) with the ingestion service
# patched. No broker or worker is involved.
# =============================================================================

from __future__ import annotations

from unittest.mock import patch

import pytest
from celery.exceptions import Retry

from findocai.errors import NotFoundError
from findocai.services.ingestion import IngestionSummary
from findocai.workers.tasks import embed_document_task, reembed_user_documents_task


class TestEmbedDocumentTask:
    """Tests for embed_document_task."""

    def test_returns_summary_dict(self):
        summary = IngestionSummary(
            document_id="d1", status="completed", ocr_chunks=2, analysis_chunks=3,
        )
        with patch("findocai.workers.tasks.embed_document", return_value=summary) as mock:
            result = embed_document_task.run("d1", "alice")

        mock.assert_called_once_with("d1", "alice")
        assert result == {
            "document_id": "d1",
            "status": "completed",
            "chunk_count": 5,
            "ocr_chunks": 2,
            "analysis_chunks": 3,
        }

    def test_missing_document_not_retried(self):
        with patch("findocai.workers.tasks.embed_document",
                   side_effect=NotFoundError("Document d1 not found")), \
                patch.object(embed_document_task, "retry") as mock_retry:
            with pytest.raises(NotFoundError):
                embed_document_task.run("d1", "alice")

        mock_retry.assert_not_called()

    def test_transient_error_retried_with_backoff(self):
        error = ConnectionError("database went away")
        with patch("findocai.workers.tasks.embed_document", side_effect=error), \
                patch.object(embed_document_task, "retry", side_effect=Retry()) as mock_retry:
            with pytest.raises(Retry):
                embed_document_task.run("d1")

        mock_retry.assert_called_once_with(exc=error, countdown=60)


class TestReembedTask:
    """Tests for reembed_user_documents_task."""

    def test_reports_failed_documents(self):
        summaries = [
            IngestionSummary(document_id="d1", status="completed", ocr_chunks=4),
            IngestionSummary(document_id="d2", status="failed", error="boom"),
        ]
        with patch("findocai.workers.tasks.reembed_all_documents", return_value=summaries):
            result = reembed_user_documents_task.run("alice")

        assert result == {
            "user_id": "alice",
            "documents": 2,
            "chunk_count": 4,
            "failed_documents": ["d2"],
        }
