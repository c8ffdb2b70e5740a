# =============================================================================
# Database Package
# =============================================================================
# Provides lazily-built SQLAlchemy engines, session helpers, and ORM models.
#
# Key exports:
#   - async_session_factory: opens an AsyncSession for API reads
#   - get_sync_session: context manager for Celery workers
#   - Base: SQLAlchemy declarative base for ORM models
#   - Document, DocumentEmbedding, ChatConversation, ChatMessage: ORM models
# =============================================================================
