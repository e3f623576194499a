"""Sentence-aware fixed-window text chunking."""

from __future__ import annotations

from docqa.exceptions import ValidationError
from docqa.ingestion.normalizer import normalize

SENTENCE_BOUNDARIES = frozenset(".!?\n")


class Chunker:
    """Split text into overlapping, boundary-aware segments.

    Parameters
    ----------
    chunk_size:
        Target maximum number of characters per chunk.
    chunk_overlap:
        Number of characters repeated between consecutive chunks.
        Must satisfy ``0 <= chunk_overlap < chunk_size``.

    The window end is pulled back to just after the nearest sentence
    terminator (``.``, ``!``, ``?``) or newline found in the second half
    of the window.  When the second half contains none, the hard cut at
    ``chunk_size`` is kept, which may split a word.
    The window that reaches the end of the text is the last one.
    """

    def __init__(self, chunk_size: int = 1000, chunk_overlap: int = 200) -> None:
        if chunk_size <= 0:
            raise ValidationError(
                f"chunk_size must be > 0, got {chunk_size}", field="chunk_size"
            )
        if not 0 <= chunk_overlap < chunk_size:
            raise ValidationError(
                f"chunk_overlap ({chunk_overlap}) must be in [0, chunk_size={chunk_size})",
                field="chunk_overlap",
            )
        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap

    def chunk(self, text: str) -> list[str]:
        """Return the chunks of the normalised *text*, in order."""
        text = normalize(text)
        length = len(text)
        chunks: list[str] = []
        start = 0

        while start < length:
            end = min(start + self.chunk_size, length)
            if end < length:
                end = self._sentence_end(text, start, end)

            piece = text[start:end].strip()
            if piece:
                chunks.append(piece)
            if end >= length:
                break

            next_start = end - self.chunk_overlap
            # start must strictly increase or the loop never ends
            if next_start <= start:
                next_start = start + 1
            start = next_start

        return chunks

    def _sentence_end(self, text: str, start: int, end: int) -> int:
        floor = start + self.chunk_size // 2
        for i in range(end - 1, floor, -1):
            if text[i] in SENTENCE_BOUNDARIES:
                return i + 1
        return end
