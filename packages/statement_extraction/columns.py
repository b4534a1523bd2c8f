"""Column detection for statement tables.

Two strategies, tried in order:

1. Header keywords: the first cell in the header row whose lower-cased text
   contains any of the given keywords (English and Spanish variants).
2. Content statistics: every column is scored by how many cells satisfy a
   type predicate (date-like, amount-like); the highest score wins, ties go
   to the leftmost column, and a zero score means not found.
"""

from __future__ import annotations

from collections.abc import Callable, Collection, Sequence
from dataclasses import dataclass
from typing import Any

from .errors import ColumnDetectionFailure
from .values import is_amount_like, is_date_string

type Row = Sequence[Any]
type Rows = Sequence[Row]

POSTING_DATE_KEYWORDS: tuple[str, ...] = ("posting date", "post date", "posting")
TRANSACTION_DATE_KEYWORDS: tuple[str, ...] = (
    "tran date",
    "transaction date",
    "trans date",
    "trans. date",
)
DATE_KEYWORDS: tuple[str, ...] = (
    "date",
    "fecha",
    "posting",
    "tran",
    "transaction",
    "post date",
    "trans date",
    "trans. date",
    "posting date",
)
MERCHANT_KEYWORDS: tuple[str, ...] = (
    "merchant",
    "supplier",
    "description",
    "concepto",
    "detalle",
    "payee",
    "vendor",
    "business",
)
AMOUNT_KEYWORDS: tuple[str, ...] = (
    "amount",
    "monto",
    "importe",
    "valor",
    "debit",
    "credit",
    "charge",
    "payment",
    "deposit",
    "withdrawal",
)
ACCOUNT_KEYWORDS: tuple[str, ...] = ("account", "cuenta", "card", "tarjeta", "acct", "acc")
CARD_NUMBER_KEYWORDS: tuple[str, ...] = (
    "card number",
    "card #",
    "account number",
    "account #",
)

# A row carrying all of these is the header of a statement section.
SECTION_MARKER_KEYWORDS: tuple[str, ...] = ("posting date", "supplier", "amount")


def cell_text(value: Any) -> str:
    return "" if value is None else str(value).strip()


def row_text(row: Row) -> str:
    """Lower-cased, space-joined text of a row's non-empty cells."""

    return " ".join(t for t in (cell_text(c) for c in row) if t).lower()


def is_section_marker(row: Row) -> bool:
    text = row_text(row)
    filled = sum(1 for c in row if cell_text(c))
    return filled >= 3 and all(k in text for k in SECTION_MARKER_KEYWORDS)


def detect_column(
    rows: Rows,
    keywords: Sequence[str],
    *,
    header_row: int = 0,
    exclude: Collection[int] = (),
) -> int | None:
    """Index of the first header cell containing one of ``keywords``.

    Keywords are tried in the order given so more specific phrases can be
    listed first. Columns in ``exclude`` are skipped.
    """

    if header_row >= len(rows):
        return None
    headers = [cell_text(c).lower() for c in rows[header_row]]
    for kw in keywords:
        for i, h in enumerate(headers):
            if i in exclude or not h:
                continue
            if kw in h:
                return i
    return None


def detect_column_by_content(
    rows: Rows,
    predicate: Callable[[Any], bool],
    *,
    start_row: int = 0,
    exclude: Collection[int] = (),
) -> int | None:
    """Column whose cells most often satisfy ``predicate``; ``None`` when no cell does."""

    scores: dict[int, int] = {}
    for row in rows[start_row:]:
        for i, cell in enumerate(row):
            if i in exclude:
                continue
            if predicate(cell):
                scores[i] = scores.get(i, 0) + 1
    if not scores:
        return None
    best = max(scores.values())
    return min(i for i, s in scores.items() if s == best)


def _is_text_cell(value: Any) -> bool:
    s = cell_text(value)
    if not s or is_amount_like(value) or is_date_string(value):
        return False
    return any(ch.isalpha() for ch in s)


@dataclass(frozen=True, slots=True)
class ColumnMap:
    """Detected column indices for one header (``None`` when absent)."""

    date: int
    amount: int
    merchant: int | None = None
    transaction_date: int | None = None
    account: int | None = None
    card_number: int | None = None

    def width(self) -> int:
        used = [
            c
            for c in (
                self.date,
                self.amount,
                self.merchant,
                self.transaction_date,
                self.account,
                self.card_number,
            )
            if c is not None
        ]
        return max(used) + 1


def detect_columns(rows: Rows, *, header_row: int = 0, by_content: bool = True) -> ColumnMap:
    """Locate the statement columns for the header at ``header_row``.

    Header keywords are tried first; when the date or amount column is still
    missing and ``by_content`` is set, the data rows below the header are
    scored by content. Raises :class:`ColumnDetectionFailure` when the date or
    amount column cannot be found.
    """

    taken: set[int] = set()

    def _take(idx: int | None) -> int | None:
        if idx is not None:
            taken.add(idx)
        return idx

    transaction_date = _take(
        detect_column(rows, TRANSACTION_DATE_KEYWORDS, header_row=header_row)
    )
    date_col = detect_column(rows, POSTING_DATE_KEYWORDS, header_row=header_row, exclude=taken)
    if date_col is None:
        date_col = detect_column(rows, DATE_KEYWORDS, header_row=header_row, exclude=taken)
    _take(date_col)
    if date_col is None and transaction_date is not None:
        date_col = transaction_date
    amount = _take(detect_column(rows, AMOUNT_KEYWORDS, header_row=header_row, exclude=taken))
    card_number = _take(
        detect_column(rows, CARD_NUMBER_KEYWORDS, header_row=header_row, exclude=taken)
    )
    account = _take(detect_column(rows, ACCOUNT_KEYWORDS, header_row=header_row, exclude=taken))
    merchant = _take(detect_column(rows, MERCHANT_KEYWORDS, header_row=header_row, exclude=taken))

    data_start = header_row + 1
    if by_content and date_col is None:
        date_col = _take(
            detect_column_by_content(rows, is_date_string, start_row=data_start, exclude=taken)
        )
    if by_content and amount is None:
        amount = _take(
            detect_column_by_content(rows, is_amount_like, start_row=data_start, exclude=taken)
        )
    if by_content and merchant is None:
        merchant = _take(
            detect_column_by_content(rows, _is_text_cell, start_row=data_start, exclude=taken)
        )

    missing = tuple(
        name for name, idx in (("date", date_col), ("amount", amount)) if idx is None
    )
    if missing:
        raise ColumnDetectionFailure(
            f"could not locate column(s): {', '.join(missing)}", missing=missing
        )
    assert date_col is not None and amount is not None
    return ColumnMap(
        date=date_col,
        amount=amount,
        merchant=merchant,
        transaction_date=transaction_date if transaction_date != date_col else None,
        account=account,
        card_number=card_number,
    )


__all__ = [
    "ACCOUNT_KEYWORDS",
    "AMOUNT_KEYWORDS",
    "CARD_NUMBER_KEYWORDS",
    "ColumnMap",
    "DATE_KEYWORDS",
    "MERCHANT_KEYWORDS",
    "SECTION_MARKER_KEYWORDS",
    "TRANSACTION_DATE_KEYWORDS",
    "cell_text",
    "detect_column",
    "detect_column_by_content",
    "detect_columns",
    "is_section_marker",
    "row_text",
]
