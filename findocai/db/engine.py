# =============================================================================
# Database Engine & Session Management
# =============================================================================
#
# Two engines share one PostgreSQL schema:
# - async engine (asyncpg) → FastAPI request handlers
# - sync engine (psycopg2) → Celery ingestion workers
#
# Celery workers are SYNCHRONOUS and cannot use the async engine; using
# the wrong driver type fails at runtime in either context.
#
# Both engines are built lazily on first use. Importing this module never
# opens a connection or requires a driver, so the in-memory storage
# backend and the test-suite run without PostgreSQL installed.
#
# COMMIT POLICY:
# - get_sync_session() commits on clean exit and rolls back on exception.
# - Async repositories open sessions from async_session_factory() and
#   commit explicitly.
# =============================================================================

from collections.abc import Generator
from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import Session, sessionmaker

from findocai.config import settings

# ---------------------------------------------------------------------------
# Async Engine - For FastAPI
# ---------------------------------------------------------------------------
# - echo follows settings.debug (logs every SQL statement)
# - expire_on_commit=False: loaded objects stay readable after commit;
#   otherwise attribute access would trigger lazy IO outside the session.
# ---------------------------------------------------------------------------

_async_engine: AsyncEngine | None = None
_async_session_factory: async_sessionmaker[AsyncSession] | None = None


def get_async_engine() -> AsyncEngine:
    """Lazily create and cache the async SQLAlchemy engine."""
    global _async_engine
    if _async_engine is None:
        _async_engine = create_async_engine(
            settings.database_url,
            echo=settings.debug,
            pool_size=5,
            max_overflow=10,
        )
    return _async_engine


def async_session_factory() -> AsyncSession:
    """Open a new AsyncSession bound to the async engine."""
    global _async_session_factory
    if _async_session_factory is None:
        _async_session_factory = async_sessionmaker(
            bind=get_async_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
        )
    return _async_session_factory()


# ---------------------------------------------------------------------------
# Sync Engine - For Celery Workers
# ---------------------------------------------------------------------------

_sync_engine = None
_sync_session_factory = None


def _get_sync_engine():
    """Lazily create and cache the sync SQLAlchemy engine."""
    global _sync_engine
    if _sync_engine is None:
        _sync_engine = create_engine(
            settings.database_url_sync,
            echo=settings.debug,
            pool_size=5,
            max_overflow=10,
        )
    return _sync_engine


def _get_sync_session_factory():
    """Lazily create and cache the sync session factory."""
    global _sync_session_factory
    if _sync_session_factory is None:
        _sync_session_factory = sessionmaker(
            bind=_get_sync_engine(),
            class_=Session,
            expire_on_commit=False,
        )
    return _sync_session_factory


@contextmanager
def get_sync_session() -> Generator[Session, None, None]:
    """
    Context manager that provides a sync database session for Celery workers.

    Usage:
        with get_sync_session() as session:
            doc = session.get(Document, document_id)
            # Auto-commits on exit, auto-rollbacks on exception
    """
    factory = _get_sync_session_factory()
    session = factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()

