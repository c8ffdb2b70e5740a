# =============================================================================
# Unit Tests - Context & Citation Builders
# =============================================================================

from datetime import date

from findocai.services.context import (
    CONTEXT_HEADER,
    NO_CONTEXT,
    Citation,
    build_citations,
    build_context,
    format_amount,
    format_date,
)
from findocai.services.retriever import SearchResult


def _result(
    content: str,
    similarity: float = 0.9,
    document_name: str | None = "invoice.pdf",
    **meta,
) -> SearchResult:
    return SearchResult(
        chunk_id=f"c-{content[:8]}",
        document_id="doc-1",
        document_name=document_name,
        content=content,
        similarity=similarity,
        metadata={"documentId": "doc-1", **meta},
    )


# ---------------------------------------------------------------------------
# Test: Formatting
# ---------------------------------------------------------------------------


class TestFormatting:
    """Tests for format_amount() and format_date()."""

    def test_amount_has_thousands_and_two_decimals(self):
        assert format_amount(1650) == "1,650.00"
        assert format_amount(1234567.891) == "1,234,567.89"
        assert format_amount(0) == "0.00"

    def test_non_numeric_amount_passes_through(self):
        assert format_amount("n/a") == "n/a"

    def test_iso_date(self):
        assert format_date("2025-06-23") == "June 23, 2025"

    def test_datetime_string_and_date_object(self):
        assert format_date("2024-01-05T10:30:00Z") == "January 5, 2024"
        assert format_date(date(2024, 12, 31)) == "December 31, 2024"

    def test_unparseable_date_passes_through(self):
        assert format_date("end of month") == "end of month"


# ---------------------------------------------------------------------------
# Test: Context
# ---------------------------------------------------------------------------


class TestBuildContext:
    """Tests for build_context()."""

    def test_no_results(self):
        assert build_context([]) == NO_CONTEXT

    def test_renders_numbered_entries_with_key_fields(self):
        results = [
            _result("Invoice INV-001 from ACME", vendor="ACME", amount=1650.0, date="2025-06-23"),
            _result("Summary line"),
        ]

        context = build_context(results)

        assert context == (
            f"{CONTEXT_HEADER}\n\n"
            "1. Invoice INV-001 from ACME\n"
            "   - Vendor: ACME\n"
            "   - Amount: $1,650.00\n"
            "   - Date: June 23, 2025\n\n"
            "2. Summary line\n\n"
        )

    def test_zero_amount_is_rendered(self):
        context = build_context([_result("Refund", amount=0)])
        assert "   - Amount: $0.00" in context

    def test_empty_vendor_is_omitted(self):
        context = build_context([_result("Receipt", vendor="")])
        assert "Vendor" not in context

    def test_budget_drops_entries_that_do_not_fit(self):
        results = [_result("A"), _result("B" * 500), _result("C")]
        budget = len(CONTEXT_HEADER) + 2 + len("1. A\n\n") + len("2. C\n\n")

        context = build_context(results, max_chars=budget)

        assert context == f"{CONTEXT_HEADER}\n\n1. A\n\n2. C\n\n"
        assert len(context) <= budget

    def test_first_entry_always_kept(self):
        context = build_context([_result("X" * 100)], max_chars=10)
        assert f"1. {'X' * 100}" in context


# ---------------------------------------------------------------------------
# Test: Citations
# ---------------------------------------------------------------------------


class TestBuildCitations:
    """Tests for build_citations()."""

    def test_threshold_is_strict(self):
        results = [_result("at", similarity=0.3), _result("above", similarity=0.31)]

        citations = build_citations(results, threshold=0.3)

        assert [c.content for c in citations] == ["above"]

    def test_only_top_five_considered(self):
        weak = [_result(f"weak {i}", similarity=0.1) for i in range(5)]
        strong = _result("strong but sixth", similarity=0.95)

        assert build_citations(weak + [strong], limit=5, threshold=0.3) == []

    def test_excerpt_truncated_to_200_chars(self):
        long_text = "x" * 250
        exact_text = "y" * 200

        citations = build_citations([_result(long_text), _result(exact_text)])

        assert citations[0].content == "x" * 200 + "..."
        assert citations[1].content == exact_text

    def test_missing_document_name_skipped(self):
        citations = build_citations([_result("orphan", document_name=None), _result("kept")])
        assert [c.content for c in citations] == ["kept"]

    def test_source_and_key_metadata(self):
        results = [
            _result(
                "Invoice", source="analysis", vendor="ACME", amount=1650.0,
                date="2025-06-23", chunkIndex=3, documentType="invoice",
            ),
            _result("Plain"),
        ]

        first, second = build_citations(results)

        assert first.document_id == "doc-1"
        assert first.document_name == "invoice.pdf"
        assert first.source == "analysis"
        assert first.metadata == {"vendor": "ACME", "amount": 1650.0, "date": "2025-06-23"}
        assert second.source == "document"
        assert second.metadata == {}


class TestCitationSerialisation:
    """Tests for Citation.to_dict() / from_dict()."""

    def test_to_dict_uses_camel_case_keys(self):
        citation = Citation(
            document_id="doc-1",
            document_name="a.pdf",
            content="text",
            metadata={"vendor": "ACME"},
        )

        assert citation.to_dict() == {
            "documentId": "doc-1",
            "documentName": "a.pdf",
            "content": "text",
            "source": "document",
            "metadata": {"vendor": "ACME"},
        }

    def test_from_dict_defaults(self):
        citation = Citation.from_dict({"documentId": "d", "documentName": "n"})

        assert citation.content == ""
        assert citation.source == "document"
        assert citation.metadata == {}
