"""Boundary-aware sliding-window chunker.

Windows of ``chunk_size`` characters advance with ``overlap`` characters of
shared context. A window that does not reach the end of the text is snapped
back to the nearest paragraph break (last 200 characters) or, failing that,
the nearest sentence break (last 100 characters).
"""

from __future__ import annotations

from avatar_rag.db.models import ContentChunk
from avatar_rag.ingest.normalizer import estimate_token_count

_PARAGRAPH_BREAK = "\n\n"
_SENTENCE_BREAK = ". "
_PARAGRAPH_WINDOW = 200
_SENTENCE_WINDOW = 100


class TextChunker:
    """Split normalized text into overlapping ContentChunks.

    Args:
        chunk_size: Maximum window size in characters.
        overlap: Characters shared between consecutive windows.
    """

    def __init__(self, chunk_size: int = 1500, overlap: int = 150) -> None:
        if chunk_size < 1:
            raise ValueError("chunk_size must be >= 1")
        if overlap < 0:
            raise ValueError("overlap must be >= 0")
        self.chunk_size = chunk_size
        self.overlap = overlap

    def chunk(self, text: str) -> list[ContentChunk]:
        """Return ordered, non-empty chunks covering *text*."""
        if not text or not text.strip():
            return []

        length = len(text)
        if length <= self.chunk_size:
            return [_make_chunk(text.strip(), 0, length)]

        chunks: list[ContentChunk] = []
        start = 0
        while start < length:
            end = start + self.chunk_size
            if end < length:
                end = self._snap_to_boundary(text, start, end)
            else:
                end = length

            segment = text[start:end].strip()
            if segment:
                chunks.append(_make_chunk(segment, start, end))

            if end >= length:
                break

            next_start = end - self.overlap
            if next_start <= start:
                # overlap >= window: no progress possible, continue without overlap
                next_start = end
            start = next_start

        return chunks

    @staticmethod
    def _snap_to_boundary(text: str, start: int, end: int) -> int:
        """Move *end* to just after the closest paragraph or sentence break.

        A break may start at *end* itself, so the snapped end can be one past it.
        """
        lo = max(start + 1, end - _PARAGRAPH_WINDOW + 1)
        para = text.rfind(_PARAGRAPH_BREAK, lo, end + len(_PARAGRAPH_BREAK))
        if para != -1:
            return para + 1

        lo = max(start + 1, end - _SENTENCE_WINDOW + 1)
        sentence = text.rfind(_SENTENCE_BREAK, lo, end + len(_SENTENCE_BREAK))
        if sentence != -1:
            return sentence + 1

        return end


def chunk_text(text: str, chunk_size: int = 1500, overlap: int = 150) -> list[ContentChunk]:
    """Convenience wrapper around ``TextChunker(chunk_size, overlap).chunk(text)``."""
    return TextChunker(chunk_size=chunk_size, overlap=overlap).chunk(text)


def _make_chunk(segment: str, start: int, end: int) -> ContentChunk:
    return ContentChunk(
        text=segment,
        start_char=start,
        end_char=end,
        token_estimate=estimate_token_count(segment),
    )
