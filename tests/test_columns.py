from __future__ import annotations

import pytest

from statement_extraction.columns import (
    AMOUNT_KEYWORDS,
    DATE_KEYWORDS,
    detect_column,
    detect_column_by_content,
    detect_columns,
    is_section_marker,
)
from statement_extraction.errors import ColumnDetectionFailure
from statement_extraction.values import is_amount_like, is_date_string


def test_detect_column_by_header_keyword():
    rows = [["Fecha", "Concepto", "Importe"]]
    assert detect_column(rows, DATE_KEYWORDS) == 0
    assert detect_column(rows, AMOUNT_KEYWORDS) == 2
    assert detect_column(rows, ("missing",)) is None
    assert detect_column(rows, DATE_KEYWORDS, header_row=5) is None


def test_detect_column_by_content_scores_and_breaks_ties_leftmost():
    rows = [
        ["04/01/2025", "x", "04/03/2025"],
        ["04/02/2025", "y", "z"],
    ]
    assert detect_column_by_content(rows, is_date_string) == 0

    tie = [["04/01/2025", "04/02/2025"]]
    assert detect_column_by_content(tie, is_date_string) == 0
    assert detect_column_by_content(tie, is_date_string, exclude={0}) == 1
    assert detect_column_by_content([["a", "b"]], is_amount_like) is None


def test_statement_header_maps_every_column():
    rows = [["Posting Date", "Tran Date", "Account", "Supplier", "Amount"]]
    cols = detect_columns(rows)
    assert (cols.date, cols.transaction_date, cols.account, cols.merchant, cols.amount) == (
        0,
        1,
        2,
        3,
        4,
    )
    assert cols.width() == 5


def test_header_without_names_falls_back_to_content():
    rows = [
        ["a", "b", "c"],
        ["COFFEE", "04/01/2025", "$4.50"],
        ["BOOKS", "04/02/2025", "$12.00"],
    ]
    cols = detect_columns(rows)
    assert (cols.date, cols.amount, cols.merchant) == (1, 2, 0)


def test_missing_columns_raise_with_names():
    with pytest.raises(ColumnDetectionFailure) as exc:
        detect_columns([["Supplier"], ["DELTA"]])
    assert exc.value.missing == ("date", "amount")

    with pytest.raises(ColumnDetectionFailure):
        detect_columns([["x", "y"], ["04/01/2025", "DELTA"]], by_content=False)


def test_section_marker_needs_all_three_labels():
    assert is_section_marker(["Posting Date", "Tran Date", "Account", "Supplier", "Amount"])
    assert not is_section_marker(["Posting Date", "Amount"])
    assert not is_section_marker(["Posting date supplier amount"])
