# =============================================================================
# Sentence Chunker - Character-Bounded Text Segments
# =============================================================================
#
# Splits extracted document text into retrievable chunks of whole sentences.
# OCR output from invoices and statements is short and loosely punctuated,
# so sentence boundaries are a better cut line than fixed windows.
#
# ALGORITHM:
# 1. Split on runs of sentence terminators (. ! ?)
# 2. Drop fragments that are blank after trimming (fragments keep their
#    own leading whitespace)
# 3. Greedily append sentences to a buffer joined with ". "
# 4. When the next sentence would push the buffer past max_chunk_size,
#    flush the trimmed buffer and start a new one with that sentence
# 5. Flush the remainder; if no sentences were found, return the text as-is
#
# GUARANTEES:
# - Every sentence appears in exactly one chunk, in order
# - No chunk exceeds max_chunk_size unless one sentence alone does
# =============================================================================

from __future__ import annotations

import logging
import re

from findocai.config import settings

logger = logging.getLogger(__name__)

_SENTENCE_BOUNDARY = re.compile(r"[.!?]+")
_SEPARATOR = ". "


def split_sentences(text: str) -> list[str]:
    """Split text on sentence terminators, discarding blank fragments."""
    return [s for s in _SENTENCE_BOUNDARY.split(text) if s.strip()]


def chunk_text(text: str, max_chunk_size: int | None = None) -> list[str]:
    """
    Split text into sentence-aligned chunks of at most max_chunk_size chars.

    Args:
        text: Plain text (typically OCR output).
        max_chunk_size: Character budget per chunk. Defaults to
            settings.chunk_max_size (1000).

    Returns:
        Chunks in document order. Text without any sentence content comes
        back unchanged as a single chunk.

    Raises:
        ValueError: If max_chunk_size is not positive.

    Pipeline position: Step 1 of ingestion (chunk → embed → store).
    """
    size = max_chunk_size if max_chunk_size is not None else settings.chunk_max_size
    if size <= 0:
        raise ValueError(f"max_chunk_size must be positive, got {size}")

    chunks: list[str] = []
    current = ""

    for sentence in split_sentences(text):
        # The joining separator counts against the budget
        if current and len(current) + len(_SEPARATOR) + len(sentence) > size:
            chunks.append(current.strip())
            current = sentence
        else:
            current += (_SEPARATOR if current else "") + sentence

    if current.strip():
        chunks.append(current.strip())

    if not chunks:
        return [text]

    logger.debug(
        "Chunked %d chars into %d chunks (max_chunk_size=%d)",
        len(text), len(chunks), size,
    )
    return chunks
