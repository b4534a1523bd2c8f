"""Cell-level value helpers: amount parsing and amount/date predicates.

Amounts are parsed to :class:`~decimal.Decimal`. Parenthesized values and a
leading or trailing minus mark negatives; currency symbols and thousands
separators are stripped. Unparsable input raises ``ValueError``; callers drop
the record rather than defaulting to zero.
"""

from __future__ import annotations

import re
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

_CURRENCY_SYMBOLS = "$€£¥"
_CURRENCY_CODES = ("USD", "EUR", "ARS", "MXN", "GBP")

_AMOUNT_LEADING = re.compile(r"^[\$€£¥]?\s*[-+]?[0-9,.]+$")
_AMOUNT_TRAILING = re.compile(r"^[-+]?[0-9,.]+\s*[\$€£¥]?$")
_AMOUNT_PARENS = re.compile(r"^\(?[\$€£¥]?\s*[0-9,.]+\)?$")

_MONTHS = (
    "jan|feb|mar|apr|may|jun|jul|aug|sep|oct|nov|dec|"
    "ene|abr|ago|dic|"
    "january|february|march|april|june|july|august|september|october|november|december|"
    "enero|febrero|marzo|abril|mayo|junio|julio|agosto|septiembre|octubre|noviembre|diciembre"
)
_DATE_PATTERNS = (
    re.compile(r"\d{1,4}[/\-.]\d{1,2}[/\-.]\d{1,4}"),
    re.compile(r"^\d{1,2}[/\-]\d{1,2}$"),
    re.compile(rf"\b(?:{_MONTHS})\b\.?\s*\d{{1,2}}", re.IGNORECASE),
    re.compile(rf"\d{{1,2}}\s*(?:de\s+)?\b(?:{_MONTHS})\b", re.IGNORECASE),
)

_TWO_PLACES = Decimal("0.01")


def parse_amount(raw: Any) -> Decimal:
    """Parse a statement amount into a ``Decimal``.

    Accepts numbers (from spreadsheet cells) and strings such as
    ``"$(123.45)"``, ``"-$1,234.56"``, ``"1,234.56"``, ``"12.00-"`` or
    ``"45.10 €"``. Raises ``ValueError`` for empty, non-numeric or non-finite
    values.
    """

    if raw is None or isinstance(raw, bool):
        raise ValueError("amount is required")
    if isinstance(raw, (int, float, Decimal)):
        try:
            d = Decimal(str(raw))
        except InvalidOperation as exc:
            raise ValueError(f"invalid amount: {raw!r}") from exc
        if not d.is_finite():
            raise ValueError(f"non-finite amount: {raw!r}")
        return d

    s = str(raw).strip()
    if not s:
        raise ValueError("amount is empty")
    for code in _CURRENCY_CODES:
        if s.upper().startswith(code):
            s = s[len(code) :].strip()
        elif s.upper().endswith(code):
            s = s[: -len(code)].strip()

    negative = False
    # Strip sign, currency symbol and parentheses in any order until stable so
    # "-($1,234.56)" and "$(123.45)" both work.
    while True:
        changed = False
        if s.startswith("+"):
            s = s[1:].lstrip()
            changed = True
        elif s.startswith("-"):
            negative = True
            s = s[1:].lstrip()
            changed = True
        if s.endswith("-"):
            negative = True
            s = s[:-1].rstrip()
            changed = True
        if s and s[0] in _CURRENCY_SYMBOLS:
            s = s[1:].lstrip()
            changed = True
        if s and s[-1] in _CURRENCY_SYMBOLS:
            s = s[:-1].rstrip()
            changed = True
        if s.startswith("(") and s.endswith(")") and len(s) >= 2:
            negative = True
            s = s[1:-1].strip()
            changed = True
        if not changed:
            break

    s = s.replace(",", "").replace(" ", "")
    try:
        d = Decimal(s)
    except InvalidOperation as exc:
        raise ValueError(f"invalid amount: {raw!r}") from exc
    if not d.is_finite():
        raise ValueError(f"non-finite amount: {raw!r}")
    return -abs(d) if negative else d


def quantize_amount(d: Decimal) -> Decimal:
    return d.quantize(_TWO_PLACES, rounding=ROUND_HALF_UP)


def fmt_amount(d: Decimal) -> str:
    # Two decimals, ASCII dot, leading minus for negatives.
    return f"{quantize_amount(d):.2f}"


def is_amount_like(value: Any) -> bool:
    """Return True when a cell looks like a monetary amount."""

    if isinstance(value, bool) or value is None:
        return False
    if isinstance(value, (int, float, Decimal)):
        return True
    s = str(value).strip()
    if not s or not any(ch.isdigit() for ch in s):
        return False
    return bool(
        _AMOUNT_LEADING.match(s) or _AMOUNT_TRAILING.match(s) or _AMOUNT_PARENS.match(s)
    )


def is_date_string(value: Any) -> bool:
    """Return True when a cell holds a date (native or textual).

    Textual forms: ``MM/DD/YYYY`` style triples with ``/``, ``-`` or ``.``,
    day/month pairs such as ``04/15``, and English or Spanish month names
    next to a day number (``Apr 15``, ``15 de abril``).
    """

    if isinstance(value, (date, datetime)):
        return True
    if value is None or isinstance(value, (bool, int, float, Decimal)):
        return False
    s = str(value).strip()
    if not s:
        return False
    return any(p.search(s) for p in _DATE_PATTERNS)


def date_token(value: Any) -> str:
    """Render a cell as a date token without reinterpreting its order.

    Native spreadsheet dates render as ``MM/DD/YYYY`` (the statement family's
    layout). Text is returned verbatim, trimmed.
    """

    if isinstance(value, datetime):
        value = value.date()
    if isinstance(value, date):
        return value.strftime("%m/%d/%Y")
    if value is None:
        return ""
    return str(value).strip()


__all__ = [
    "date_token",
    "fmt_amount",
    "is_amount_like",
    "is_date_string",
    "parse_amount",
    "quantize_amount",
]
