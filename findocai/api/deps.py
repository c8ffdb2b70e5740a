# =============================================================================
# API Dependencies - Caller Identity and Service Providers
# =============================================================================
#
# DESIGN DECISION: Identity comes from the X-User-Id header.
# Authentication happens upstream (the gateway that owns sessions and
# tokens); this service trusts the user id it is handed and scopes every
# read and write to it. A missing or blank header is a 401.
#
# DESIGN DECISION: Every collaborator is a FastAPI dependency.
# Routers never build services themselves, so tests swap in in-memory
# stores and a mocked LLM via app.dependency_overrides.
# =============================================================================

from __future__ import annotations

import logging

from fastapi import Header, HTTPException

from findocai.services.conversations import ConversationManager, get_conversation_repository
from findocai.services.documents import DocumentSource, get_document_source
from findocai.services.embedding_store import EmbeddingStore, get_embedding_store
from findocai.services.llm import LLMProvider, get_llm_provider
from findocai.services.retriever import Retriever
from findocai.services.retriever import get_retriever as build_retriever

logger = logging.getLogger(__name__)


async def get_current_user_id(
    x_user_id: str | None = Header(default=None, alias="X-User-Id"),
) -> str:
    """
    Resolve the calling user from the X-User-Id header.

    Raises:
        HTTPException 401: Header missing or blank.
    """
    if x_user_id is None or not x_user_id.strip():
        raise HTTPException(
            status_code=401,
            detail="Missing caller identity. Provide the 'X-User-Id' header.",
        )
    return x_user_id.strip()


def get_retriever() -> Retriever:
    return build_retriever()


def get_conversation_manager() -> ConversationManager:
    return ConversationManager(get_conversation_repository())


def get_documents() -> DocumentSource:
    return get_document_source()


def get_store() -> EmbeddingStore:
    return get_embedding_store()


def get_llm() -> LLMProvider:
    """
    The configured LLM provider.

    Raises:
        HTTPException 503: The provider has no API key configured.
    """
    try:
        return get_llm_provider()
    except ValueError as e:
        logger.error("Configuration error: %s", e)
        raise HTTPException(
            status_code=503,
            detail=f"Service configuration error: {e}",
        ) from e
