# =============================================================================
# Analyst Agent - Grounded Answer Generation
# =============================================================================
#
# Turns the question plus the rendered context into one LLM call.
#
# PROMPT SELECTION:
#   no results, or top similarity <= relevance_threshold
#       → "no relevant data" prompt: admit the gap, suggest which document
#         to upload, never invent figures
#   otherwise
#       → grounded prompt: answer ONLY from the context, cite amounts /
#         dates / vendors, format currency and dates legibly
#
# DESIGN DECISION: The answer never fails the request.
# The LLM call runs under asyncio.timeout(settings.llm_timeout_seconds).
# A timeout, a provider error or an empty completion all produce the same
# fixed apology, and the turn is still recorded by the orchestrator.
# =============================================================================

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass

from findocai.config import settings
from findocai.services.llm import LLMProvider
from findocai.services.retriever import SearchResult

logger = logging.getLogger(__name__)


SYSTEM_PROMPT = (
    "You are FinDocAI, a helpful financial document assistant that analyzes "
    "uploaded financial documents including invoices, bank statements, tax "
    "documents, and receipts."
)

FALLBACK_ANSWER = (
    "I apologize, but I was unable to generate a response. Please try again."
)


# ---------------------------------------------------------------------------
# Data Structures
# ---------------------------------------------------------------------------


@dataclass
class AnalysisResult:
    """Result from the analyst agent."""

    answer: str
    model: str
    input_tokens: int = 0
    output_tokens: int = 0
    used_fallback: bool = False


# ---------------------------------------------------------------------------
# Prompts
# ---------------------------------------------------------------------------


def has_relevant_data(
    results: Sequence[SearchResult],
    threshold: float | None = None,
) -> bool:
    """True when the best result clears the relevance threshold."""
    threshold = settings.relevance_threshold if threshold is None else threshold
    return bool(results) and results[0].similarity > threshold


def _no_data_prompt(query: str) -> str:
    return (
        f'The user asked: "{query}"\n\n'
        "However, I couldn't find relevant information in their uploaded "
        "documents to answer this question.\n\n"
        "Please provide a helpful response that:\n"
        "1. Acknowledges that you don't have the specific information they're looking for\n"
        "2. Suggests what type of document they might need to upload to get this information\n"
        "3. Offers general guidance if appropriate\n\n"
        "Do not state any specific amounts, dates or vendors. "
        "Keep your response friendly and helpful."
    )


def _grounded_prompt(query: str, context: str) -> str:
    return (
        f'USER QUERY: "{query}"\n\n'
        "RELEVANT CONTEXT FROM USER'S DOCUMENTS:\n"
        f"{context}\n"
        "INSTRUCTIONS:\n"
        "1. Answer the user's question based ONLY on the provided context from their documents\n"
        "2. Be specific and cite amounts, dates, vendors when available\n"
        '3. If you mention specific information, refer to it as "according to your '
        'documents" or "based on your uploaded files"\n'
        "4. If the context doesn't fully answer the question, say so and suggest what "
        "additional information might be needed\n"
        "5. Format financial amounts clearly (e.g., $1,234.56)\n"
        "6. Format dates in a readable format (e.g., January 15, 2024)\n"
        "7. Be conversational but professional\n"
        "8. If asked about calculations or totals, show your work\n\n"
        "IMPORTANT: Only use information from the provided context. Do not make up "
        "financial data or provide general financial advice not based on their documents.\n\n"
        "Please provide a helpful and accurate response based on the user's financial documents."
    )


def build_prompt(
    query: str,
    context: str,
    results: Sequence[SearchResult],
    threshold: float | None = None,
) -> str:
    """Pick and render the user prompt for this question."""
    if has_relevant_data(results, threshold):
        return _grounded_prompt(query, context)
    return _no_data_prompt(query)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def analyse(
    query: str,
    context: str,
    results: Sequence[SearchResult],
    llm: LLMProvider,
    timeout: float | None = None,
) -> AnalysisResult:
    """
    Generate the assistant reply for one question.

    Args:
        query: The user's question.
        context: Output of build_context() for `results`.
        results: Ranked search results, best first.
        llm: Provider to call.
        timeout: Deadline in seconds. Defaults to settings.llm_timeout_seconds.

    Returns:
        AnalysisResult; `used_fallback` is set when the fixed apology
        replaced the model's answer.
    """
    prompt = build_prompt(query, context, results)
    deadline = settings.llm_timeout_seconds if timeout is None else timeout

    logger.info(
        "Analyst generating answer: results=%d, relevant=%s",
        len(results), has_relevant_data(results),
    )

    try:
        async with asyncio.timeout(deadline):
            response = await llm.complete(
                messages=[{"role": "user", "content": prompt}],
                system=SYSTEM_PROMPT,
            )
    except TimeoutError:
        logger.warning("LLM call exceeded %.1fs deadline; using fallback answer", deadline)
        return AnalysisResult(answer=FALLBACK_ANSWER, model="n/a", used_fallback=True)
    except Exception:
        logger.exception("LLM call failed; using fallback answer")
        return AnalysisResult(answer=FALLBACK_ANSWER, model="n/a", used_fallback=True)

    logger.info(
        "Analyst complete: model=%s, tokens=%d+%d",
        response.model, response.input_tokens, response.output_tokens,
    )

    if not response.content or not response.content.strip():
        logger.warning("LLM returned an empty completion; using fallback answer")
        return AnalysisResult(
            answer=FALLBACK_ANSWER,
            model=response.model,
            input_tokens=response.input_tokens,
            output_tokens=response.output_tokens,
            used_fallback=True,
        )

    return AnalysisResult(
        answer=response.content,
        model=response.model,
        input_tokens=response.input_tokens,
        output_tokens=response.output_tokens,
    )
