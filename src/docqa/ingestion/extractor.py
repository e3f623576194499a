"""Raw-bytes text extraction.

The orchestrator only sees ``bytes + mime type → text``; file-format
parsing lives behind :class:`TextExtractor` so alternative extractors
(OCR, office formats) can be dropped in.
"""

from __future__ import annotations

import io
import logging
from abc import ABC, abstractmethod

from pypdf import PdfReader

from docqa.exceptions import ExtractionError

logger = logging.getLogger(__name__)

TEXT_MIME_TYPES = frozenset({"text/plain", "text/markdown", "text/csv"})


class TextExtractor(ABC):
    """Extraction collaborator contract."""

    @abstractmethod
    def extract_text(self, data: bytes, mime_type: str) -> str:
        """Return the plain text of *data*.

        Raises
        ------
        ExtractionError
            When the format is unsupported, parsing fails, or no text
            is found.
        """
        ...


class DefaultTextExtractor(TextExtractor):
    """PDF (via pypdf) and plain-text extraction."""

    def extract_text(self, data: bytes, mime_type: str) -> str:
        base_type = mime_type.split(";", 1)[0].strip().lower()

        if base_type == "application/pdf":
            text = self._extract_pdf(data)
        elif base_type in TEXT_MIME_TYPES:
            text = data.decode("utf-8", errors="replace")
        else:
            raise ExtractionError(
                f"Unsupported file type: {mime_type}", {"mime_type": mime_type}
            )

        if not text.strip():
            raise ExtractionError("No text extracted from document", {"mime_type": mime_type})
        return text

    @staticmethod
    def _extract_pdf(data: bytes) -> str:
        try:
            reader = PdfReader(io.BytesIO(data))
            pages = reader.pages
        except Exception as exc:
            raise ExtractionError(f"Failed to open PDF: {exc}") from exc

        parts: list[str] = []
        for number, page in enumerate(pages, 1):
            try:
                page_text = page.extract_text() or ""
            except Exception:
                logger.warning("Skipping unreadable PDF page %d", number, exc_info=True)
                continue
            parts.append(page_text + "\n")
        return "".join(parts)
