"""Rule-based transaction extraction from spreadsheet tables.

A sheet may hold several statement sections, each introduced by its own
header row (a row naming posting date, supplier and amount). Each header
opens a :class:`StatementBlock` that runs until the next header or the end of
the sheet. Sheets without any such header fall back to single-header mode:
the first row is the header and columns are located by name, then by content.

Output order follows the source: blocks in sheet order, rows in block order.
Amounts keep the statement's own sign.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from .cards import DEFAULT_DIRECTORY, CardDirectory, extract_last4, unknown_label
from .columns import ColumnMap, cell_text, detect_columns, is_section_marker, row_text
from .errors import ColumnDetectionFailure
from .ingest.spreadsheet import SheetTable
from .logging_setup import get_logger
from .models import RawRecord
from .values import date_token, is_date_string, parse_amount

_logger = get_logger("statement_extraction.tabular")

# Undated rows matching one of these phrases are statement furniture: period
# lines, balances, sub-totals, page numbers, repeated headers. Matched as whole
# words.
NON_TRANSACTION_KEYWORDS: tuple[str, ...] = (
    "posting date",
    "post date",
    "transaction date",
    "statement period",
    "statement date",
    "billing period",
    "opening balance",
    "closing balance",
    "beginning balance",
    "ending balance",
    "previous balance",
    "new balance",
    "account number",
    "account summary",
    "total",
    "subtotal",
    "total usd",
    "debit total",
    "credit total",
    "page",
)
_FURNITURE_RE = re.compile(
    r"\b(?:" + "|".join(re.escape(k) for k in NON_TRANSACTION_KEYWORDS) + r")\b"
)

# Rows directly above a section header are searched for the section's card.
_CARD_HINT_LOOKBACK = 3


@dataclass(frozen=True, slots=True)
class StatementBlock:
    """Rows ``[start, end)`` of ``sheet`` sharing the header at ``header_index``."""

    sheet: str
    header_index: int
    start: int
    end: int
    columns: ColumnMap
    card_hint: str | None = None

    @property
    def row_count(self) -> int:
        return self.end - self.start


@dataclass(slots=True)
class TabularExtraction:
    records: list[RawRecord] = field(default_factory=list)
    blocks: list[StatementBlock] = field(default_factory=list)
    excluded: int = 0
    skipped: int = 0
    # Undated rows that do not look like furniture; counted in ``skipped`` too.
    undated: int = 0


def _cell(row: Sequence[Any], idx: int | None) -> Any:
    if idx is None or idx >= len(row):
        return None
    return row[idx]


def _card_hint(rows: Sequence[Sequence[Any]], header_index: int, floor: int) -> str | None:
    for i in range(header_index - 1, max(floor, header_index - _CARD_HINT_LOOKBACK) - 1, -1):
        for c in rows[i]:
            text = cell_text(c)
            if not text:
                continue
            last4 = extract_last4(text)
            # Bare trailing digits are too weak here (years, page numbers).
            if last4 and not text.isdigit() and any(ch in text for ch in "*Xx."):
                return last4
    return None


class DirectTabularExtractor:
    """Deterministic extractor for the posting-date/supplier/amount layout."""

    def __init__(self, directory: CardDirectory = DEFAULT_DIRECTORY) -> None:
        self._directory = directory

    def find_blocks(self, table: SheetTable) -> list[StatementBlock]:
        """Split a sheet into statement blocks.

        Raises :class:`ColumnDetectionFailure` in single-header mode when no
        date or amount column can be found.
        """

        rows = table.rows
        markers = [i for i, row in enumerate(rows) if is_section_marker(row)]
        if not markers:
            columns = detect_columns(rows, header_row=0, by_content=True)
            return [
                StatementBlock(
                    sheet=table.name, header_index=0, start=1, end=len(rows), columns=columns
                )
            ]

        blocks: list[StatementBlock] = []
        for n, header_index in enumerate(markers):
            end = markers[n + 1] if n + 1 < len(markers) else len(rows)
            floor = markers[n - 1] + 1 if n > 0 else 0
            blocks.append(
                StatementBlock(
                    sheet=table.name,
                    header_index=header_index,
                    start=header_index + 1,
                    end=end,
                    columns=detect_columns(rows, header_row=header_index, by_content=True),
                    card_hint=_card_hint(rows, header_index, floor),
                )
            )
        return blocks

    def extract(self, tables: Sequence[SheetTable]) -> TabularExtraction:
        """Extract records from every sheet.

        Sheets whose columns cannot be detected are skipped with a warning;
        when no sheet yields a block the last :class:`ColumnDetectionFailure`
        is re-raised so the caller can fall back to the LLM path.
        """

        out = TabularExtraction()
        failure: ColumnDetectionFailure | None = None
        for table in tables:
            try:
                blocks = self.find_blocks(table)
            except ColumnDetectionFailure as e:
                _logger.warning(
                    "tabular:columns_not_found sheet=%s missing=%s", table.name, ",".join(e.missing)
                )
                failure = e
                continue
            for block in blocks:
                self._extract_block(table, block, out)
            out.blocks.extend(blocks)

        if not out.blocks:
            raise failure or ColumnDetectionFailure("no sheet contained a statement table")

        _logger.info(
            "tabular:done blocks=%d records=%d excluded=%d skipped=%d undated=%d",
            len(out.blocks),
            len(out.records),
            out.excluded,
            out.skipped,
            out.undated,
        )
        return out

    def _extract_block(self, table: SheetTable, block: StatementBlock, out: TabularExtraction) -> None:
        cols = block.columns
        for i in range(block.start, block.end):
            row = table.rows[i]
            row_id = table.row_ids[i]
            text = row_text(row)
            if not text:
                continue

            date_cell = _cell(row, cols.date)
            tran_cell = _cell(row, cols.transaction_date)
            posting = date_token(date_cell) if is_date_string(date_cell) else ""
            transaction = date_token(tran_cell) if is_date_string(tran_cell) else ""
            if not (posting or transaction):
                out.skipped += 1
                if not _FURNITURE_RE.search(text):
                    out.undated += 1
                    _logger.debug("tabular:undated_row row=%d text=%r", row_id, text)
                continue

            try:
                amount: Decimal = parse_amount(_cell(row, cols.amount))
            except ValueError:
                out.skipped += 1
                continue

            merchant = cell_text(_cell(row, cols.merchant))
            account_text = cell_text(_cell(row, cols.card_number)) or cell_text(
                _cell(row, cols.account)
            )
            last4 = extract_last4(account_text) or block.card_hint

            if self._directory.is_excluded_account(last4, merchant):
                out.excluded += 1
                _logger.debug(
                    "tabular:excluded row=%d account=%s merchant=%r", row_id, last4, merchant
                )
                continue

            rep = self._directory.resolve(last4)
            out.records.append(
                RawRecord(
                    supplier=merchant,
                    amount=amount,
                    posting_date=posting,
                    transaction_date=transaction,
                    account=last4 or account_text,
                    group_name=rep or unknown_label(last4),
                    source_row=row_id,
                )
            )


__all__ = [
    "DirectTabularExtractor",
    "NON_TRANSACTION_KEYWORDS",
    "StatementBlock",
    "TabularExtraction",
]
