"""Spreadsheet loading (.xlsx/.xlsm via openpyxl, .xls via xlrd, .csv via csv).

Rows keep their native cell values (dates stay ``datetime``). Every kept row
carries a stable ``row_id`` that is unique across the workbook; it is the
identifier threaded through extraction so original dates can be patched back
after an LLM round trip without relying on list positions.

:func:`collect_original_dates` performs the dedicated date scan: it finds the
posting/transaction date columns by header name (per header row), falling
back to content statistics when no header names a date column.
"""

from __future__ import annotations

import csv
from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from os import PathLike
from pathlib import Path
from typing import Any

import openpyxl
import xlrd

from ..columns import ColumnMap, detect_column_by_content, detect_columns, row_text
from ..errors import ColumnDetectionFailure, ExtractionError
from ..logging_setup import get_logger
from ..values import date_token, is_date_string

_logger = get_logger("statement_extraction.ingest.spreadsheet")

EXCEL_SUFFIXES = {".xlsx", ".xlsm"}
LEGACY_EXCEL_SUFFIXES = {".xls"}
CSV_SUFFIXES = {".csv"}
SPREADSHEET_SUFFIXES = EXCEL_SUFFIXES | LEGACY_EXCEL_SUFFIXES | CSV_SUFFIXES


@dataclass(frozen=True, slots=True)
class OriginalDates:
    """Date tokens exactly as they appear in one source row."""

    posting: str = ""
    transaction: str = ""

    def best(self) -> str:
        return self.transaction or self.posting


@dataclass(slots=True)
class SheetTable:
    """Non-empty rows of one sheet with their workbook-unique row ids."""

    name: str
    rows: list[list[Any]] = field(default_factory=list)
    row_ids: list[int] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.rows)


def _trim(cells: Iterable[Any]) -> list[Any]:
    out = [None if (isinstance(c, str) and not c.strip()) else c for c in cells]
    while out and out[-1] is None:
        out.pop()
    return out


def _iter_xlsx(path: Path) -> Iterator[tuple[str, Iterator[Sequence[Any]]]]:
    wb = openpyxl.load_workbook(path, read_only=True, data_only=True)
    try:
        for ws in wb.worksheets:
            yield ws.title, ws.iter_rows(values_only=True)
    finally:
        wb.close()


def _xls_cell(cell: xlrd.sheet.Cell, datemode: int) -> Any:
    if cell.ctype in (xlrd.XL_CELL_EMPTY, xlrd.XL_CELL_BLANK):
        return None
    if cell.ctype == xlrd.XL_CELL_DATE:
        return xlrd.xldate.xldate_as_datetime(cell.value, datemode)
    return cell.value


def _iter_xls(path: Path) -> Iterator[tuple[str, Iterator[Sequence[Any]]]]:
    book = xlrd.open_workbook(str(path))
    try:
        for sheet in book.sheets():
            rows = (
                [_xls_cell(c, book.datemode) for c in sheet.row(r)] for r in range(sheet.nrows)
            )
            yield sheet.name, rows
    finally:
        book.release_resources()


def _iter_csv(path: Path) -> Iterator[tuple[str, Iterator[Sequence[Any]]]]:
    with path.open(encoding="utf-8-sig", newline="") as f:
        yield path.stem, iter(list(csv.reader(f)))


def load_tables(path: str | PathLike[str]) -> list[SheetTable]:
    """Read every sheet into a :class:`SheetTable`.

    Raises :class:`ExtractionError` when the container cannot be opened or
    holds no non-empty rows at all.
    """

    p = Path(path)
    suffix = p.suffix.lower()
    if suffix in EXCEL_SUFFIXES:
        reader = _iter_xlsx
    elif suffix in LEGACY_EXCEL_SUFFIXES:
        reader = _iter_xls
    elif suffix in CSV_SUFFIXES:
        reader = _iter_csv
    else:
        raise ExtractionError(f"unsupported spreadsheet type: {p.suffix or '<none>'}", path=str(p))

    tables: list[SheetTable] = []
    offset = 0
    try:
        for name, rows in reader(p):
            table = SheetTable(name=name)
            last_row_no = 0
            for row_no, raw in enumerate(rows, start=1):
                last_row_no = row_no
                cells = _trim(raw)
                if not cells:
                    continue
                table.rows.append(cells)
                table.row_ids.append(offset + row_no)
            offset += last_row_no
            if table.rows:
                tables.append(table)
    except ExtractionError:
        raise
    except Exception as e:  # noqa: BLE001 - openpyxl/xlrd/csv raise assorted types
        raise ExtractionError(f"could not read spreadsheet {p.name}: {e}", path=str(p)) from e

    if not tables:
        raise ExtractionError(f"{p.name} contains no usable rows", path=str(p))
    _logger.info(
        "spreadsheet:loaded file=%s sheets=%d rows=%d",
        p.name,
        len(tables),
        sum(len(t) for t in tables),
    )
    return tables


def _render_cell(value: Any) -> str:
    if isinstance(value, datetime):
        return date_token(value)
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (float, Decimal)):
        return f"{value:.2f}"
    return "" if value is None else str(value).strip()


def render_tables(tables: Sequence[SheetTable]) -> str:
    """Text rendering for the LLM path; each line is tagged with its row id."""

    lines: list[str] = []
    for table in tables:
        lines.append(f"## Sheet: {table.name}")
        for row_id, row in zip(table.row_ids, table.rows, strict=True):
            lines.append(f"[row {row_id}] " + " | ".join(_render_cell(c) for c in row))
        lines.append("")
    return "\n".join(lines).rstrip() + "\n"


def _header_columns(row: Sequence[Any], rows: Sequence[Sequence[Any]], i: int) -> ColumnMap | None:
    # Header rows hold labels only; a date value or a number means data.
    if any(is_date_string(c) or isinstance(c, (int, float, Decimal)) for c in row):
        return None
    if "date" not in row_text(row) and "fecha" not in row_text(row):
        return None
    try:
        return detect_columns(rows, header_row=i, by_content=False)
    except ColumnDetectionFailure:
        return None


def _tokens(row: Sequence[Any], col: int | None) -> str:
    if col is None or col >= len(row):
        return ""
    cell = row[col]
    return date_token(cell) if is_date_string(cell) else ""


def collect_original_dates(table: SheetTable) -> dict[int, OriginalDates]:
    """Map row id to the posting/transaction date tokens found in that row."""

    out: dict[int, OriginalDates] = {}
    current: ColumnMap | None = None
    saw_header = False
    for i, (row_id, row) in enumerate(zip(table.row_ids, table.rows, strict=True)):
        header = _header_columns(row, table.rows, i)
        if header is not None:
            current = header
            saw_header = True
            continue
        if current is None:
            continue
        dates = OriginalDates(
            posting=_tokens(row, current.date),
            transaction=_tokens(row, current.transaction_date),
        )
        if dates.posting or dates.transaction:
            out[row_id] = dates

    if saw_header:
        return out

    col = detect_column_by_content(table.rows, is_date_string)
    if col is None:
        return out
    for row_id, row in zip(table.row_ids, table.rows, strict=True):
        token = _tokens(row, col)
        if token:
            out[row_id] = OriginalDates(posting=token)
    return out


__all__ = [
    "OriginalDates",
    "SPREADSHEET_SUFFIXES",
    "SheetTable",
    "collect_original_dates",
    "load_tables",
    "render_tables",
]
