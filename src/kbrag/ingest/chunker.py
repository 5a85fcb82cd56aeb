"""Sentence-aware text chunking."""

import logging
import math
import re

from kbrag.constants import (
    DEFAULT_CHUNK_OVERLAP,
    DEFAULT_CHUNK_SIZE,
    MAX_CONTENT_CHARS,
    MIN_CHUNK_CHARS,
    SECTION_CHUNK_SIZE,
    SENTENCE_SEARCH_RATIO,
)
from kbrag.text import strip_control_chars

logger = logging.getLogger(__name__)

SENTENCE_TERMINATORS = (".", "!", "?", "\n")
SECTION_HEADING_RE = re.compile(r"(?m)^(?=#{1,6}\s|Məsələ\s*\d+|\d+\.\s+[A-ZƏIŞÇÖÜĞ])")


def _prepare(text: str) -> str:
    text = text[:MAX_CONTENT_CHARS]
    text = re.sub(r"\s{2,}", " ", text)
    return strip_control_chars(text).strip()


def _cut_position(window: str) -> int:
    """Where to end a non-final window: sentence end, else word boundary, else hard cut."""
    size = len(window)
    search_from = int(size * (1 - SENTENCE_SEARCH_RATIO))
    sentence_end = max(window.rfind(t, search_from) for t in SENTENCE_TERMINATORS)
    if sentence_end != -1:
        return sentence_end + 1

    space = window.rfind(" ")
    if space > 0:
        return space
    return size


class TextChunker:
    """Split long text into overlapping, sentence-aligned chunks.

    Args:
        size: Maximum chunk length in characters
        overlap: Characters shared between consecutive chunks
    """

    def __init__(self, size: int = DEFAULT_CHUNK_SIZE, overlap: int = DEFAULT_CHUNK_OVERLAP) -> None:
        self.size = size
        self.overlap = overlap

    def chunk(self, text: str, size: int | None = None, overlap: int | None = None) -> list[str]:
        """Split text into chunks.

        Args:
            text: Text to split (capped at MAX_CONTENT_CHARS)
            size: Override for the chunk size
            overlap: Override for the overlap

        Returns:
            list[str]: Chunks in order. Text within the size is returned whole;
            pieces of longer text of MIN_CHUNK_CHARS or less are dropped
        """
        size = size or self.size
        overlap = self.overlap if overlap is None else overlap
        if size <= 0:
            raise ValueError(f"chunk size must be positive, got {size}")
        if overlap >= size:
            overlap = math.floor(size * 0.25)
        overlap = max(0, overlap)

        text = _prepare(text)
        if not text:
            return []
        if len(text) <= size:
            return [text]

        chunks: list[str] = []
        start = 0
        length = len(text)
        while start < length:
            end = min(start + size, length)
            window = text[start:end]
            if end < length:
                window = window[: _cut_position(window)]

            piece = window.strip()
            if len(piece) > MIN_CHUNK_CHARS:
                chunks.append(piece)

            if end >= length:
                break

            advance = len(window) - overlap
            if advance < 1:
                advance = len(window)
            start += advance

        logger.debug(f"🔧 Split {length} characters into {len(chunks)} chunks")
        return chunks

    def chunk_by_sections(self, text: str, max_chunk_size: int = SECTION_CHUNK_SIZE) -> list[str]:
        """Split on section headings, re-chunking sections that are too long.

        Args:
            text: Text with line breaks preserved
            max_chunk_size: Maximum section length before falling back to ``chunk``

        Returns:
            list[str]: Section chunks in order
        """
        text = strip_control_chars(text[:MAX_CONTENT_CHARS])
        sections = [s.strip() for s in SECTION_HEADING_RE.split(text) if s.strip()]
        chunks: list[str] = []
        for section in sections:
            if len(section) <= max_chunk_size:
                if len(section) > MIN_CHUNK_CHARS:
                    chunks.append(section)
            else:
                chunks.extend(self.chunk(section, size=max_chunk_size))
        return chunks
