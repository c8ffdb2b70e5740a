# =============================================================================
# Chat API - Questions and Conversation Management
# =============================================================================
#
# POST   /chat/messages                       ask a question (new or existing chat)
# GET    /chat/conversations                  list the caller's conversations
# GET    /chat/conversations/{id}/messages    full history, oldest first
# PATCH  /chat/conversations/{id}             rename
# DELETE /chat/conversations/{id}             delete with its messages
#
# Thin handlers: validation, dependency wiring and response mapping only.
# Domain errors (NotFoundError → 404, InvalidArgumentError → 400) are mapped
# by the exception handlers in findocai.main.
# =============================================================================

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Response

from findocai.agents.orchestrator import answer
from findocai.api.deps import (
    get_conversation_manager,
    get_current_user_id,
    get_llm,
    get_retriever,
)
from findocai.models.requests import RenameConversationRequest, SendMessageRequest
from findocai.models.responses import (
    CitationResponse,
    ConversationResponse,
    ConversationSummaryResponse,
    MessageResponse,
    SendMessageResponse,
)
from findocai.services.context import Citation
from findocai.services.conversations import ConversationManager, MessageRecord
from findocai.services.llm import LLMProvider
from findocai.services.retriever import Retriever

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/chat", tags=["Chat"])


# ---------------------------------------------------------------------------
# Response mapping
# ---------------------------------------------------------------------------


def _citation_response(citation: Citation) -> CitationResponse:
    return CitationResponse(
        document_id=citation.document_id,
        document_name=citation.document_name,
        content=citation.content,
        source=citation.source,
        metadata=citation.metadata,
    )


def _message_response(message: MessageRecord) -> MessageResponse:
    citations = None
    if message.citations is not None:
        citations = [_citation_response(c) for c in message.citations]
    return MessageResponse(
        id=message.id,
        role=message.role,
        content=message.content,
        citations=citations,
        timestamp=message.created_at,
    )


# ---------------------------------------------------------------------------
# POST /chat/messages
# ---------------------------------------------------------------------------


@router.post(
    "/messages",
    response_model=SendMessageResponse,
    summary="Ask a question about your documents",
    description=(
        "Retrieves the most relevant chunks of the caller's documents, "
        "answers from them with citations, and records the turn. Omitting "
        "conversation_id starts a new conversation."
    ),
)
async def send_message(
    request: SendMessageRequest,
    user_id: str = Depends(get_current_user_id),
    retriever: Retriever = Depends(get_retriever),
    conversations: ConversationManager = Depends(get_conversation_manager),
    llm: LLMProvider = Depends(get_llm),
) -> SendMessageResponse:
    logger.info(
        "Chat message: user_id=%s, conversation_id=%s, message='%s'",
        user_id, request.conversation_id, request.message[:80],
    )

    result = await answer(
        request.message,
        user_id,
        request.conversation_id,
        retriever=retriever,
        conversations=conversations,
        llm=llm,
    )

    return SendMessageResponse(
        conversation_id=result.conversation_id,
        assistant_message=_message_response(result.message),
        citations=[_citation_response(c) for c in result.citations],
    )


# ---------------------------------------------------------------------------
# Conversations
# ---------------------------------------------------------------------------


@router.get(
    "/conversations",
    response_model=list[ConversationSummaryResponse],
    summary="List your conversations, most recent first",
)
async def list_conversations(
    user_id: str = Depends(get_current_user_id),
    conversations: ConversationManager = Depends(get_conversation_manager),
) -> list[ConversationSummaryResponse]:
    summaries = await conversations.list(user_id)
    return [
        ConversationSummaryResponse(
            id=s.id,
            title=s.title,
            created_at=s.created_at,
            updated_at=s.updated_at,
            last_message_preview=s.last_message_preview,
        )
        for s in summaries
    ]


@router.get(
    "/conversations/{conversation_id}/messages",
    response_model=list[MessageResponse],
    summary="Get a conversation's messages, oldest first",
)
async def get_messages(
    conversation_id: str,
    user_id: str = Depends(get_current_user_id),
    conversations: ConversationManager = Depends(get_conversation_manager),
) -> list[MessageResponse]:
    messages = await conversations.history(conversation_id, user_id)
    return [_message_response(m) for m in messages]


@router.patch(
    "/conversations/{conversation_id}",
    response_model=ConversationResponse,
    summary="Rename a conversation",
)
async def rename_conversation(
    conversation_id: str,
    request: RenameConversationRequest,
    user_id: str = Depends(get_current_user_id),
    conversations: ConversationManager = Depends(get_conversation_manager),
) -> ConversationResponse:
    record = await conversations.rename(conversation_id, user_id, request.title)
    return ConversationResponse(
        id=record.id,
        title=record.title or "",
        created_at=record.created_at,
        updated_at=record.updated_at,
    )


@router.delete(
    "/conversations/{conversation_id}",
    status_code=204,
    summary="Delete a conversation and its messages",
)
async def delete_conversation(
    conversation_id: str,
    user_id: str = Depends(get_current_user_id),
    conversations: ConversationManager = Depends(get_conversation_manager),
) -> Response:
    await conversations.delete(conversation_id, user_id)
    return Response(status_code=204)
