# =============================================================================
# Context & Citation Builders - Ranked Chunks → LLM Context + Sources
# =============================================================================
#
# build_context() renders ranked chunks as a numbered block for the prompt:
#
#   Based on your uploaded documents, here's the relevant information:
#
#   1. Invoice INV-2025-001 from FinTech Solutions Inc. for amount ...
#      - Vendor: FinTech Solutions Inc.
#      - Amount: $1,650.00
#      - Date: June 23, 2025
#
#   2. ...
#
# build_citations() turns the top results into the source list shown to the
# user and stored on the assistant message.
#
# DESIGN DECISION: Citations consider only the top `limit` results, THEN
# apply the relevance threshold. A weak hit at rank 3 is not replaced by
# rank 6; fewer, stronger citations read better than padded ones.
# =============================================================================

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any

from findocai.config import settings
from findocai.services.retriever import SearchResult

logger = logging.getLogger(__name__)

CONTEXT_HEADER = "Based on your uploaded documents, here's the relevant information:"
NO_CONTEXT = "No relevant information found in your documents."


# ---------------------------------------------------------------------------
# Formatting helpers
# ---------------------------------------------------------------------------


def format_amount(amount: Any) -> str:
    """1650 → "1,650.00". Non-numeric values are returned as text."""
    try:
        return f"{float(amount):,.2f}"
    except (TypeError, ValueError):
        return str(amount)


def format_date(value: Any) -> str:
    """ISO date or datetime (or date object) → "June 23, 2025"."""
    if isinstance(value, datetime):
        parsed = value.date()
    elif isinstance(value, date):
        parsed = value
    else:
        try:
            parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00")).date()
        except ValueError:
            return str(value)
    return f"{parsed:%B} {parsed.day}, {parsed.year}"


def _present(value: Any) -> bool:
    return value is not None and value != ""


# ---------------------------------------------------------------------------
# Context
# ---------------------------------------------------------------------------


def _render_entry(number: int, result: SearchResult) -> str:
    meta = result.metadata
    lines = [f"{number}. {result.content}"]
    if _present(meta.get("vendor")):
        lines.append(f"   - Vendor: {meta['vendor']}")
    if _present(meta.get("amount")):
        lines.append(f"   - Amount: ${format_amount(meta['amount'])}")
    if _present(meta.get("date")):
        lines.append(f"   - Date: {format_date(meta['date'])}")
    return "\n".join(lines) + "\n\n"


def build_context(
    results: Sequence[SearchResult],
    max_chars: int | None = None,
) -> str:
    """
    Render ranked results as the numbered context block for the LLM.

    Args:
        results: Ranked search results, best first.
        max_chars: Upper bound on the rendered block. The first entry is
            always kept; later entries that would exceed it are dropped.
            Defaults to settings.context_max_chars.

    Returns:
        The context string, or NO_CONTEXT when there are no results.
    """
    if not results:
        return NO_CONTEXT

    budget = max_chars if max_chars is not None else settings.context_max_chars
    context = CONTEXT_HEADER + "\n\n"
    included = 0

    for result in results:
        entry = _render_entry(included + 1, result)
        if included and len(context) + len(entry) > budget:
            logger.debug("Context budget reached; dropping chunk %s", result.chunk_id)
            continue
        context += entry
        included += 1

    return context


# ---------------------------------------------------------------------------
# Citations
# ---------------------------------------------------------------------------


@dataclass
class Citation:
    """A source reference attached to an assistant message."""

    document_id: str
    document_name: str
    content: str
    source: str = "document"
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Serialised form stored in chat_messages.metadata."""
        return {
            "documentId": self.document_id,
            "documentName": self.document_name,
            "content": self.content,
            "source": self.source,
            "metadata": dict(self.metadata),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Citation:
        return cls(
            document_id=data["documentId"],
            document_name=data["documentName"],
            content=data.get("content", ""),
            source=data.get("source") or "document",
            metadata=dict(data.get("metadata") or {}),
        )


def _excerpt(text: str, max_chars: int) -> str:
    return text[:max_chars] + ("..." if len(text) > max_chars else "")


def build_citations(
    results: Sequence[SearchResult],
    limit: int | None = None,
    threshold: float | None = None,
) -> list[Citation]:
    """
    Build citations from the strongest results.

    Only the first `limit` results are considered. Of those, a result is
    cited when its similarity is strictly above `threshold` and its
    document still resolves to a name.
    """
    limit = limit if limit is not None else settings.citation_limit
    threshold = threshold if threshold is not None else settings.relevance_threshold

    citations: list[Citation] = []
    for result in results[:limit]:
        if not result.document_name or result.similarity <= threshold:
            continue

        meta = result.metadata
        citations.append(Citation(
            document_id=result.document_id,
            document_name=result.document_name,
            content=_excerpt(result.content, settings.citation_excerpt_chars),
            source=meta.get("source") or "document",
            metadata={
                key: meta[key]
                for key in ("vendor", "amount", "date")
                if _present(meta.get(key))
            },
        ))

    return citations
