# =============================================================================
# Unit Tests - Chunker Service
# =============================================================================
#
# Tests the sentence-greedy chunking logic without external dependencies.
# =============================================================================

import pytest

from findocai.services.chunker import chunk_text, split_sentences


class TestSplitSentences:
    """Tests for split_sentences()."""

    def test_splits_on_terminator_runs(self):
        assert split_sentences("One. Two?! Three...") == ["One", " Two", " Three"]

    def test_fragments_keep_leading_whitespace(self):
        assert split_sentences("A.  B") == ["A", "  B"]

    def test_blank_fragments_dropped(self):
        assert split_sentences(" . ! ? ") == []


class TestChunkText:
    """Tests for chunk_text()."""

    def test_short_text_single_chunk(self):
        chunks = chunk_text("Hello world. How are you? Fine!", max_chunk_size=1000)
        assert chunks == ["Hello world.  How are you.  Fine"]

    def test_flushes_when_budget_exceeded(self):
        text = "One two three. Four five six. Seven eight nine."
        chunks = chunk_text(text, max_chunk_size=20)
        assert chunks == ["One two three", "Four five six", "Seven eight nine"]

    def test_oversized_sentence_kept_whole(self):
        long_sentence = "x" * 50
        chunks = chunk_text(f"{long_sentence}. short", max_chunk_size=10)
        assert chunks == [long_sentence, "short"]

    def test_text_without_sentences_returned_as_is(self):
        assert chunk_text("...") == ["..."]
        assert chunk_text("") == [""]

    def test_every_sentence_appears_exactly_once(self):
        sentences = [f"Sentence number {i} about invoice {i * 7}" for i in range(40)]
        text = ". ".join(sentences) + "."
        chunks = chunk_text(text, max_chunk_size=120)

        for sentence in sentences:
            hits = sum(chunk.count(sentence) for chunk in chunks)
            assert hits == 1, sentence

    def test_no_chunk_exceeds_budget_when_sentences_fit(self):
        text = ". ".join(f"Line {i} of the statement" for i in range(100))
        chunks = chunk_text(text, max_chunk_size=80)
        assert len(chunks) > 1
        assert all(len(c) <= 80 for c in chunks)

    def test_chunks_are_trimmed(self):
        chunks = chunk_text("  First.   Second.  ", max_chunk_size=8)
        assert all(c == c.strip() for c in chunks)

    def test_default_size_from_settings(self):
        text = ". ".join("word " * 30 for _ in range(100))
        chunks = chunk_text(text)
        assert all(len(c) <= 1000 for c in chunks)

    def test_non_positive_size_rejected(self):
        with pytest.raises(ValueError):
            chunk_text("Some text.", max_chunk_size=0)
