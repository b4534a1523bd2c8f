"""Ingest entrypoint shared by the pipeline and the CLI.

:func:`extract_file` picks the PDF or spreadsheet reader by file extension
and returns an :class:`ExtractedDocument` carrying both the linear text (for
the LLM path) and, for spreadsheets, the row tables plus the original date
tokens keyed by row id.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from os import PathLike
from pathlib import Path
from typing import Literal

from ..errors import ExtractionError
from .pdf_text import extract_pdf_text
from .spreadsheet import (
    SPREADSHEET_SUFFIXES,
    OriginalDates,
    SheetTable,
    collect_original_dates,
    load_tables,
    render_tables,
)

type DocumentKind = Literal["pdf", "spreadsheet"]


@dataclass(slots=True)
class ExtractedDocument:
    path: Path
    kind: DocumentKind
    text: str
    tables: list[SheetTable] = field(default_factory=list)
    original_dates: dict[int, OriginalDates] = field(default_factory=dict)

    @property
    def file_name(self) -> str:
        return self.path.name


def extract_file(path: str | PathLike[str]) -> ExtractedDocument:
    """Read ``path`` into an :class:`ExtractedDocument`.

    Raises :class:`ExtractionError` for missing files, unsupported extensions
    and unreadable or empty containers. Not retried.
    """

    p = Path(path)
    if not p.is_file():
        raise ExtractionError(f"file not found: {p}", path=str(p))

    suffix = p.suffix.lower()
    if suffix == ".pdf":
        return ExtractedDocument(path=p, kind="pdf", text=extract_pdf_text(p))
    if suffix in SPREADSHEET_SUFFIXES:
        tables = load_tables(p)
        original_dates: dict[int, OriginalDates] = {}
        for table in tables:
            original_dates.update(collect_original_dates(table))
        return ExtractedDocument(
            path=p,
            kind="spreadsheet",
            text=render_tables(tables),
            tables=tables,
            original_dates=original_dates,
        )
    raise ExtractionError(
        f"unsupported file type {p.suffix or '<none>'}; expected PDF or Excel", path=str(p)
    )


__all__ = ["DocumentKind", "ExtractedDocument", "extract_file"]
