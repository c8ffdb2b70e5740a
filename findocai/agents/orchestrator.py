# =============================================================================
# LangGraph Orchestrator - Question → Grounded, Cited, Recorded Answer
# =============================================================================
#
# GRAPH TOPOLOGY:
#   START ──▶ retrieve ──▶ analyse ──▶ record ──▶ END
#
#   retrieve - rank the caller's chunks (retrieval_candidate_count of them)
#   analyse  - build context + citations, pick the prompt, call the LLM
#   record   - find or create the conversation, append the turn
#
# DESIGN DECISION: Linear graph (no conditional edges).
# Every question takes the same path; the "no relevant data" branch is a
# prompt choice inside analyse, not a graph edge. The graph still gives
# per-node tracing and a place to add steps later.
#
# DESIGN DECISION: Plain TypedDict state (not MessagesState).
# Conversation history lives in the conversation store, not in the graph.
#
# DESIGN DECISION: Collaborators travel in the state.
# The retriever, conversation manager and LLM are passed in per call so
# the API can inject its providers and tests can inject fakes.
# NOTE: Not JSON-serialisable. Safe as long as no checkpointer is
# configured on the graph (current: no checkpointer).
#
# Graph compiled once at module level and reused by every request.
# =============================================================================

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from langgraph.graph import END, START, StateGraph
from typing_extensions import TypedDict

from findocai.agents.analyst import AnalysisResult, analyse
from findocai.config import settings
from findocai.errors import InvalidArgumentError
from findocai.services.context import Citation, build_citations, build_context
from findocai.services.conversations import ConversationManager, MessageRecord
from findocai.services.llm import LLMProvider, get_llm_provider
from findocai.services.retriever import Retriever, SearchResult

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Data Structures
# ---------------------------------------------------------------------------


@dataclass
class ChatAnswer:
    """What the chat endpoint returns for one question."""

    conversation_id: str
    message: MessageRecord            # the stored assistant message
    citations: list[Citation] = field(default_factory=list)


class AgentState(TypedDict, total=False):
    """
    State that flows through the graph.

    total=False so nodes only return the keys they update.
    """

    # --- Input (set by caller) ---
    query: str
    user_id: str
    conversation_id: str | None

    # --- Collaborators (set by caller) ---
    retriever: Retriever
    conversations: ConversationManager
    llm: LLMProvider

    # --- Intermediate (set by nodes) ---
    results: list[SearchResult]
    context: str
    citations: list[Citation]
    analysis: AnalysisResult

    # --- Output (set by record node) ---
    answer: ChatAnswer


# ---------------------------------------------------------------------------
# Node Functions
# ---------------------------------------------------------------------------


async def retrieve_node(state: AgentState) -> dict:
    """Rank the caller's chunks against the question."""
    results = await state["retriever"].search(
        state["query"],
        limit=settings.retrieval_candidate_count,
        user_id=state["user_id"],
    )
    return {"results": results}


async def analyse_node(state: AgentState) -> dict:
    """Render context and citations, then generate the reply."""
    results = state.get("results") or []
    context = build_context(results)
    citations = build_citations(results)

    analysis = await analyse(
        query=state["query"],
        context=context,
        results=results,
        llm=state["llm"],
    )
    return {"context": context, "citations": citations, "analysis": analysis}


async def record_node(state: AgentState) -> dict:
    """Persist the turn on a new or existing conversation."""
    conversations = state["conversations"]
    conversation = await conversations.get_or_create(
        state.get("conversation_id"), state["user_id"], state["query"],
    )
    _, assistant_message = await conversations.append_turn(
        conversation.id,
        state["query"],
        state["analysis"].answer,
        state["citations"],
    )
    return {
        "answer": ChatAnswer(
            conversation_id=conversation.id,
            message=assistant_message,
            citations=state["citations"],
        ),
    }


# ---------------------------------------------------------------------------
# Graph Assembly
# ---------------------------------------------------------------------------

_builder = StateGraph(AgentState)
_builder.add_node("retrieve", retrieve_node)
_builder.add_node("analyse", analyse_node)
_builder.add_node("record", record_node)

_builder.add_edge(START, "retrieve")
_builder.add_edge("retrieve", "analyse")
_builder.add_edge("analyse", "record")
_builder.add_edge("record", END)

graph = _builder.compile()


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def answer(
    query: str,
    user_id: str,
    conversation_id: str | None = None,
    *,
    retriever: Retriever,
    conversations: ConversationManager,
    llm: LLMProvider | None = None,
) -> ChatAnswer:
    """
    Answer one question from the user's documents and record the turn.

    Args:
        query: The user's question.
        user_id: Owner whose documents and conversations are in scope.
        conversation_id: Conversation to continue; unknown or foreign IDs
            start a new conversation.
        retriever, conversations: Collaborators for this call.
        llm: Provider override; defaults to the configured singleton.

    Raises:
        InvalidArgumentError: Blank query or user_id (nothing is retrieved).
        ValueError: No LLM provider could be configured.
    """
    if not query or not query.strip():
        raise InvalidArgumentError("Message must not be empty")
    if not user_id or not user_id.strip():
        raise InvalidArgumentError("user_id must not be empty")

    initial_state: AgentState = {
        "query": query,
        "user_id": user_id,
        "conversation_id": conversation_id,
        "retriever": retriever,
        "conversations": conversations,
        "llm": llm or get_llm_provider(),
    }

    logger.info(
        "Invoking answer graph: user_id=%s, conversation_id=%s, query='%s'",
        user_id, conversation_id, query[:80],
    )

    result = await graph.ainvoke(initial_state)
    chat_answer: ChatAnswer = result["answer"]

    logger.info(
        "Answer graph complete: conversation_id=%s, results=%d, citations=%d, fallback=%s",
        chat_answer.conversation_id,
        len(result.get("results", [])),
        len(chat_answer.citations),
        result["analysis"].used_fallback,
    )
    return chat_answer
