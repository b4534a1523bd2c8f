"""PDF text rendering with explicit page-break markers.

Each page's text is preceded by a ``--- Page X of Y ---`` line. The LLM prompt
relies on these literal markers to recognise that a representative's section
continues on the next page.
"""

from __future__ import annotations

from os import PathLike
from pathlib import Path

import fitz

from ..errors import ExtractionError
from ..logging_setup import get_logger

_logger = get_logger("statement_extraction.ingest.pdf_text")


def page_marker(page_no: int, page_count: int) -> str:
    return f"--- Page {page_no} of {page_count} ---"


def extract_pdf_text(path: str | PathLike[str]) -> str:
    """Return the document text with one marker line per page.

    Raises :class:`ExtractionError` when the file cannot be opened as a PDF
    or when no page yields any text (e.g. scanned images, which are not
    OCR'd).
    """

    p = Path(path)
    try:
        doc = fitz.open(str(p))
    except Exception as e:  # noqa: BLE001 - PyMuPDF raises several types
        raise ExtractionError(f"could not open PDF {p.name}: {e}", path=str(p)) from e

    try:
        if not doc.is_pdf:
            raise ExtractionError(f"{p.name} is not a PDF document", path=str(p))
        page_count = doc.page_count
        parts: list[str] = []
        chars = 0
        for page in doc:
            text = page.get_text("text").strip()
            chars += len(text)
            parts.append(f"{page_marker(page.number + 1, page_count)}\n{text}")
    finally:
        doc.close()

    if chars == 0:
        raise ExtractionError(f"{p.name} contains no extractable text", path=str(p))

    _logger.info("pdf_text:extracted file=%s pages=%d chars=%d", p.name, page_count, chars)
    return "\n\n".join(parts)


__all__ = ["extract_pdf_text", "page_marker"]
