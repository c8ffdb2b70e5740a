# =============================================================================
# Unit Tests - Conversation Manager
# =============================================================================
#
# Runs the manager over the in-memory repository with a stepping clock so
# timestamps (and therefore ordering) are predictable.
# =============================================================================

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from findocai.errors import InvalidArgumentError, NotFoundError
from findocai.services.context import Citation
from findocai.services.conversations import (
    ConversationManager,
    ConversationRecord,
    InMemoryConversationRepository,
    generate_title,
)


def _run(coro):
    """Helper to run async functions in sync tests."""
    return asyncio.run(coro)


class _Clock:
    """Advances one second per call."""

    def __init__(self) -> None:
        self.now = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        self.now += timedelta(seconds=1)
        return self.now


def _manager() -> tuple[ConversationManager, InMemoryConversationRepository]:
    repo = InMemoryConversationRepository()
    return ConversationManager(repo, clock=_Clock()), repo


def _citation() -> Citation:
    return Citation(document_id="doc-1", document_name="invoice.pdf", content="Invoice ...")


# ---------------------------------------------------------------------------
# Test: Titles
# ---------------------------------------------------------------------------


class TestGenerateTitle:
    """Tests for generate_title()."""

    def test_financial_term(self):
        assert generate_title("What is my invoice total") == "Chat about invoice"

    def test_term_match_is_case_insensitive(self):
        assert generate_title("Track my PAYMENT history") == "Chat about payment"

    def test_first_term_wins(self):
        assert generate_title("receipt or invoice") == "Chat about receipt"

    def test_punctuation_blocks_term_match(self):
        assert generate_title("Where is my invoice?") == "Where is my invoice?"

    def test_first_four_words_truncated(self):
        title = generate_title("Supercalifragilistic expialidocious words here too")
        assert title == "Supercalifragilistic expialido..."

    def test_short_question_kept_whole(self):
        assert generate_title("Hello there") == "Hello there"

    def test_blank_question(self):
        assert generate_title("") == "New chat"
        assert generate_title("   ") == "New chat"

    def test_deterministic(self):
        assert generate_title("How much did I spend?") == generate_title("How much did I spend?")


# ---------------------------------------------------------------------------
# Test: Conversation lifecycle
# ---------------------------------------------------------------------------


class TestGetOrCreate:
    """Tests for ConversationManager.get_or_create()."""

    def test_creates_titled_conversation(self):
        manager, _ = _manager()

        record = _run(manager.get_or_create(None, "alice", "Show my invoice list"))

        assert record.user_id == "alice"
        assert record.title == "Chat about invoice"
        assert record.created_at == record.updated_at

    def test_reuses_owned_conversation(self):
        manager, _ = _manager()
        first = _run(manager.get_or_create(None, "alice", "hi"))

        again = _run(manager.get_or_create(first.id, "alice", "another question"))

        assert again.id == first.id
        assert again.title == "hi"

    def test_foreign_conversation_starts_new_one(self):
        manager, _ = _manager()
        bobs = _run(manager.get_or_create(None, "bob", "bob's question"))

        record = _run(manager.get_or_create(bobs.id, "alice", "alice's question"))

        assert record.id != bobs.id
        assert record.user_id == "alice"

    def test_unknown_id_starts_new_one(self):
        manager, _ = _manager()
        record = _run(manager.get_or_create("does-not-exist", "alice", "hello"))
        assert record.id != "does-not-exist"


class TestAppendTurnAndHistory:
    """Tests for append_turn() and history()."""

    def test_turn_is_ordered_user_then_assistant(self):
        manager, _ = _manager()
        conv = _run(manager.get_or_create(None, "alice", "q1"))

        user_msg, assistant_msg = _run(
            manager.append_turn(conv.id, "q1", "a1", [_citation()])
        )

        assert assistant_msg.created_at == user_msg.created_at + timedelta(microseconds=1)
        assert user_msg.citations is None
        assert assistant_msg.citations == [_citation()]

        history = _run(manager.history(conv.id, "alice"))
        assert [(m.role, m.content) for m in history] == [("user", "q1"), ("assistant", "a1")]

    def test_updated_at_follows_last_message(self):
        manager, _ = _manager()
        conv = _run(manager.get_or_create(None, "alice", "q1"))

        _, assistant_msg = _run(manager.append_turn(conv.id, "q1", "a1", []))

        summary = _run(manager.list("alice"))[0]
        assert summary.updated_at == assistant_msg.created_at
        assert summary.updated_at > summary.created_at

    def test_multiple_turns_stay_in_order(self):
        manager, _ = _manager()
        conv = _run(manager.get_or_create(None, "alice", "q1"))
        _run(manager.append_turn(conv.id, "q1", "a1", []))
        _run(manager.append_turn(conv.id, "q2", "a2", []))

        history = _run(manager.history(conv.id, "alice"))
        assert [m.content for m in history] == ["q1", "a1", "q2", "a2"]

    def test_assistant_without_citations_has_empty_list(self):
        manager, _ = _manager()
        conv = _run(manager.get_or_create(None, "alice", "q"))
        _, assistant_msg = _run(manager.append_turn(conv.id, "q", "a", []))
        assert assistant_msg.citations == []

    def test_foreign_history_not_found(self):
        manager, _ = _manager()
        conv = _run(manager.get_or_create(None, "alice", "private"))

        with pytest.raises(NotFoundError):
            _run(manager.history(conv.id, "bob"))


class TestList:
    """Tests for ConversationManager.list()."""

    def test_most_recent_first_with_preview(self):
        manager, _ = _manager()
        older = _run(manager.get_or_create(None, "alice", "older"))
        newer = _run(manager.get_or_create(None, "alice", "newer"))
        _run(manager.append_turn(newer.id, "q", "x" * 150, []))
        _run(manager.append_turn(older.id, "q", "short answer", []))

        summaries = _run(manager.list("alice"))

        assert [s.id for s in summaries] == [older.id, newer.id]
        assert summaries[0].last_message_preview == "short answer"
        assert summaries[1].last_message_preview == "x" * 100

    def test_empty_conversation_has_no_preview(self):
        manager, _ = _manager()
        _run(manager.get_or_create(None, "alice", "q"))
        assert _run(manager.list("alice"))[0].last_message_preview is None

    def test_untitled_conversation(self):
        manager, repo = _manager()
        now = datetime(2025, 1, 1, tzinfo=timezone.utc)
        _run(repo.create(ConversationRecord(
            id="c-1", user_id="alice", title=None, created_at=now, updated_at=now,
        )))

        assert _run(manager.list("alice"))[0].title == "Untitled Chat"

    def test_only_callers_conversations(self):
        manager, _ = _manager()
        _run(manager.get_or_create(None, "alice", "mine"))
        _run(manager.get_or_create(None, "bob", "his"))

        assert [s.title for s in _run(manager.list("alice"))] == ["mine"]


class TestRenameAndDelete:
    """Tests for rename() and delete()."""

    def test_rename_strips_title(self):
        manager, _ = _manager()
        conv = _run(manager.get_or_create(None, "alice", "q"))

        record = _run(manager.rename(conv.id, "alice", "  Q2 spending  "))

        assert record.title == "Q2 spending"
        assert _run(manager.list("alice"))[0].title == "Q2 spending"

    def test_rename_accepts_max_length(self):
        manager, _ = _manager()
        conv = _run(manager.get_or_create(None, "alice", "q"))
        assert _run(manager.rename(conv.id, "alice", "t" * 200)).title == "t" * 200

    @pytest.mark.parametrize("title", ["", "   ", "t" * 201])
    def test_rename_rejects_invalid_title(self, title):
        manager, _ = _manager()
        conv = _run(manager.get_or_create(None, "alice", "q"))

        with pytest.raises(InvalidArgumentError):
            _run(manager.rename(conv.id, "alice", title))

    def test_rename_foreign_not_found_and_unchanged(self):
        manager, _ = _manager()
        conv = _run(manager.get_or_create(None, "alice", "original"))

        with pytest.raises(NotFoundError):
            _run(manager.rename(conv.id, "bob", "hijacked"))

        assert _run(manager.list("alice"))[0].title == "original"

    def test_delete_removes_conversation(self):
        manager, _ = _manager()
        conv = _run(manager.get_or_create(None, "alice", "q"))
        _run(manager.append_turn(conv.id, "q", "a", []))

        _run(manager.delete(conv.id, "alice"))

        assert _run(manager.list("alice")) == []
        with pytest.raises(NotFoundError):
            _run(manager.history(conv.id, "alice"))

    def test_delete_foreign_not_found(self):
        manager, _ = _manager()
        conv = _run(manager.get_or_create(None, "alice", "q"))

        with pytest.raises(NotFoundError):
            _run(manager.delete(conv.id, "bob"))

        assert len(_run(manager.list("alice"))) == 1
