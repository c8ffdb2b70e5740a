# =============================================================================
# Workers Package - Celery Background Tasks
# =============================================================================
#   - celery_app.py: Celery application configuration
#   - tasks.py: embedding tasks (one document, or all of a user's documents)
#
# Embedding runs off the request path: the API enqueues and returns 202, and
# failures are retried here and recorded on the document.
# =============================================================================
