# =============================================================================
# Celery Application Configuration
# =============================================================================
#
# Celery runs the embedding pipeline off the request path:
#   API (enqueue, 202) → Redis broker → worker: chunk → embed → store
#
# ARCHITECTURE:
# ┌──────────┐     ┌───────┐     ┌──────────────┐     ┌───────┐
# │ FastAPI  │────▶│ Redis │────▶│ Celery Worker│────▶│ Redis │
# │(producer)│     │(broker)│    │  (consumer)  │     │(result)│
# └──────────┘     └───────┘     └──────────────┘     └───────┘
#    db 0 ──────────┘                                    └── db 1
#
# Run a worker with:
#   celery -A findocai.workers.celery_app worker --loglevel=info
# =============================================================================

from celery import Celery

from findocai.config import settings

celery_app = Celery(
    "findocai.workers",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
)

celery_app.conf.update(
    # --- Serialization ---
    # JSON only: task arguments are document and user IDs.
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",

    # --- Reliability ---
    # Acknowledge after completion so a crashed worker's task is re-queued.
    # Re-running an embedding is safe: it replaces the document's chunks.
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    worker_prefetch_multiplier=1,

    # --- Timeouts ---
    # A user re-embed walks every document, so allow a few minutes.
    task_soft_time_limit=300,
    task_time_limit=600,

    # --- Results ---
    result_expires=3600,

    # --- Task Discovery ---
    include=["findocai.workers.tasks"],
)
