from __future__ import annotations

from datetime import datetime
from decimal import Decimal

import pytest

from statement_extraction.values import (
    date_token,
    fmt_amount,
    is_amount_like,
    is_date_string,
    parse_amount,
)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("$(123.45)", Decimal("-123.45")),
        ("1,234.56", Decimal("1234.56")),
        ("-$1,234.56", Decimal("-1234.56")),
        ("12.00-", Decimal("-12.00")),
        ("USD 748.22", Decimal("748.22")),
        ("45.10 €", Decimal("45.10")),
        (500, Decimal("500")),
        (248.22, Decimal("248.22")),
    ],
)
def test_parse_amount_statement_forms(raw, expected):
    assert parse_amount(raw) == expected


@pytest.mark.parametrize("raw", [None, "", "   ", "n/a", "abc", float("nan"), True, "Infinity"])
def test_parse_amount_rejects_non_numbers(raw):
    with pytest.raises(ValueError):
        parse_amount(raw)


def test_fmt_amount_rounds_half_up():
    assert fmt_amount(Decimal("2.005")) == "2.01"
    assert fmt_amount(Decimal("-45")) == "-45.00"


def test_amount_and_date_predicates():
    assert is_amount_like("$1,234.56")
    assert is_amount_like("(12.00)")
    assert not is_amount_like("DELTA AIR")
    assert not is_amount_like(None)

    assert is_date_string("04/15/2025")
    assert is_date_string("2025-04-15")
    assert is_date_string("04/15")
    assert is_date_string("Apr 15")
    assert is_date_string("15 de abril")
    assert is_date_string(datetime(2025, 4, 15))
    assert not is_date_string("4.50")
    assert not is_date_string(45756)
    assert not is_date_string("MARRIOTT")


def test_date_token_keeps_text_and_formats_native_dates():
    assert date_token(datetime(2025, 4, 3, 10, 30)) == "04/03/2025"
    assert date_token(" 15/04/2025 ") == "15/04/2025"
    assert date_token(None) == ""
