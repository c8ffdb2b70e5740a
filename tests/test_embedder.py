# =============================================================================
# Unit Tests - Embedder Service
# =============================================================================
#
# Tests the deterministic hash embedding. No API keys or network needed.
# =============================================================================

import math

from findocai.services.embedder import HashEmbedder, embed_batch, embed_text


def _norm(vector: list[float]) -> float:
    return math.sqrt(sum(v * v for v in vector))


class TestEmbedText:
    """Tests for embed_text()."""

    def test_default_dimensions(self):
        assert len(embed_text("Invoice from ACME")) == 384

    def test_deterministic(self):
        text = "Bank statement for account 1234 with balance $5,000.00"
        assert embed_text(text) == embed_text(text)

    def test_unit_norm(self):
        vector = embed_text("What is my total invoice amount?")
        assert math.isclose(_norm(vector), 1.0, rel_tol=1e-9)

    def test_empty_and_whitespace_give_zero_vector(self):
        assert embed_text("") == [0.0] * 384
        assert embed_text("   \n\t ") == [0.0] * 384

    def test_case_insensitive(self):
        assert embed_text("INVOICE Total") == embed_text("invoice total")

    def test_characters_accumulate_by_position(self):
        # "ab": slot 0 gets ord('a'), slot 1 gets ord('b')
        vector = embed_text("ab", dimensions=4)
        norm = math.sqrt(97 ** 2 + 98 ** 2)
        assert math.isclose(vector[0], 97 / norm)
        assert math.isclose(vector[1], 98 / norm)
        assert vector[2] == 0.0
        assert vector[3] == 0.0

    def test_later_words_weigh_less(self):
        # word 0 "ab" at weight 1, word 1 "c" at weight 1/2
        vector = embed_text("ab c", dimensions=4)
        raw = [97 + 99 / 2, 98, 0.0, 0.0]
        norm = _norm(raw)
        assert [round(v, 12) for v in vector] == [round(v / norm, 12) for v in raw]

    def test_positions_wrap_around_dimensions(self):
        # Character j lands in slot j % dims
        vector = embed_text("abc", dimensions=2)
        raw = [97 + 99, 98]
        norm = _norm(raw)
        assert math.isclose(vector[0], raw[0] / norm)
        assert math.isclose(vector[1], raw[1] / norm)

    def test_leading_whitespace_shifts_word_positions(self):
        assert embed_text(" ab cd", dimensions=4) != embed_text("ab cd", dimensions=4)

    def test_word_order_matters(self):
        assert embed_text("invoice paid") != embed_text("paid invoice")


class TestBatchAndEmbedder:
    """Tests for embed_batch() and HashEmbedder."""

    def test_batch_preserves_order(self):
        texts = ["first", "second", "third"]
        assert embed_batch(texts) == [embed_text(t) for t in texts]

    def test_hash_embedder_matches_function(self):
        embedder = HashEmbedder()
        assert embedder.dimensions == 384
        assert embedder.embed_query("receipt") == embed_text("receipt")
        assert embedder.embed_batch(["a b", "c"]) == embed_batch(["a b", "c"])

    def test_hash_embedder_custom_dimensions(self):
        embedder = HashEmbedder(dimensions=16)
        assert len(embedder.embed_query("vendor payment")) == 16
