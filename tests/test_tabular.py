from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from pathlib import Path

import pytest

from statement_extraction.errors import ColumnDetectionFailure
from statement_extraction.ingest.spreadsheet import SheetTable, load_tables
from statement_extraction.tabular import DirectTabularExtractor

from tests.helpers.statements import (
    ALLIA_CARD,
    HEADER,
    LANDON_CARD,
    two_section_rows,
    write_rows,
)


@pytest.fixture()
def two_section_tables(tmp_path: Path) -> list[SheetTable]:
    path = write_rows(tmp_path / "PNC CC 042025.xlsx", two_section_rows())
    return load_tables(path)


def test_two_sections_yield_two_blocks_partitioned_by_representative(two_section_tables):
    out = DirectTabularExtractor().extract(two_section_tables)

    table = two_section_tables[0]
    assert [table.row_ids[b.header_index] for b in out.blocks] == [3, 40]
    assert [b.card_hint for b in out.blocks] == ["5456", "0082"]

    by_rep: dict[str, list[str]] = {}
    for r in out.records:
        by_rep.setdefault(r.group_name, []).append(r.supplier)
    assert by_rep == {
        "Allia Klipp": ["DELTA AIR LINES", "HILTON HOTELS", "UBER TRIP"],
        "Landon Hamel": ["OFFICE DEPOT", "REFUND MARRIOTT"],
    }


def test_count_matches_dated_rows_with_amount_minus_exclusions(two_section_tables):
    out = DirectTabularExtractor().extract(two_section_tables)

    # 6 dated data rows, one of them the system auto-payment.
    assert len(out.records) == 5
    assert out.excluded == 1
    assert all(r.posting_date and r.transaction_date for r in out.records)


def test_rows_keep_source_sign_order_and_row_ids(two_section_tables):
    out = DirectTabularExtractor().extract(two_section_tables)

    assert [r.source_row for r in out.records] == [4, 5, 6, 41, 42]
    assert [r.amount for r in out.records] == [
        Decimal("500.0"),
        Decimal("248.22"),
        Decimal("31.5"),
        Decimal("1234.56"),
        Decimal("-45.00"),
    ]
    first = out.records[0]
    assert (first.posting_date, first.transaction_date) == ("04/15/2025", "04/14/2025")
    assert first.account == "5456"


def test_missing_account_cell_uses_section_card(two_section_tables):
    out = DirectTabularExtractor().extract(two_section_tables)

    uber = next(r for r in out.records if r.supplier == "UBER TRIP")
    assert uber.account == "5456"
    assert uber.group_name == "Allia Klipp"


def test_system_auto_payment_is_excluded():
    table = SheetTable(
        name="s",
        rows=[
            list(HEADER),
            ["04/22/2025", "04/22/2025", "...1785", "Payment - Auto Payment Deduction", "$500.00"],
            ["04/22/2025", "04/22/2025", LANDON_CARD, "STAPLES", "$12.00"],
        ],
        row_ids=[1, 2, 3],
    )

    out = DirectTabularExtractor().extract([table])

    assert [r.supplier for r in out.records] == ["STAPLES"]
    assert out.excluded == 1


def test_system_account_other_merchants_are_kept():
    table = SheetTable(
        name="s",
        rows=[
            list(HEADER),
            ["04/22/2025", "04/22/2025", "...1785", "ANNUAL CARD FEE", "$75.00"],
        ],
        row_ids=[1, 2],
    )

    out = DirectTabularExtractor().extract([table])

    assert len(out.records) == 1
    assert out.records[0].group_name == "Hemisphere Trading O"


def test_single_header_mode_detects_columns_by_content():
    table = SheetTable(
        name="export",
        rows=[
            ["Col A", "Col B", "Col C"],
            ["04/01/2025", "COFFEE BAR", "4.50"],
            ["04/02/2025", "BOOK STORE", "(12.00)"],
            ["04/03/2025", "ZERO LINE", "0.00"],
            ["", "Total", "0.00"],
        ],
        row_ids=[1, 2, 3, 4, 5],
    )

    out = DirectTabularExtractor().extract([table])

    assert [(r.supplier, r.amount) for r in out.records] == [
        ("COFFEE BAR", Decimal("4.50")),
        ("BOOK STORE", Decimal("-12.00")),
        ("ZERO LINE", Decimal("0.00")),
    ]
    # No card column: unassigned sentinel.
    assert {r.group_name for r in out.records} == {"Sin asignar"}


def test_no_recognisable_columns_raises_column_detection_failure():
    table = SheetTable(name="notes", rows=[["hello"], ["world"]], row_ids=[1, 2])

    with pytest.raises(ColumnDetectionFailure) as exc:
        DirectTabularExtractor().extract([table])
    assert set(exc.value.missing) == {"date", "amount"}


def test_undated_rows_are_not_transactions(tmp_path: Path):
    rows = {
        1: HEADER,
        2: (datetime(2025, 4, 15), datetime(2025, 4, 14), ALLIA_CARD, "DELTA AIR LINES", 500.0),
        3: (None, None, ALLIA_CARD, "FOREIGN TRANSACTION FEE", 12.5),
        4: ("Total USD", None, None, None, 512.5),
    }
    tables = load_tables(write_rows(tmp_path / "fees.xlsx", rows))

    out = DirectTabularExtractor().extract(tables)

    assert [(r.supplier, r.posting_date, r.amount) for r in out.records] == [
        ("DELTA AIR LINES", "04/15/2025", Decimal("500.0"))
    ]
    assert out.skipped == 2
    # Only the fee row is reported as an undated charge; the total is furniture.
    assert out.undated == 1


def test_merchant_words_do_not_make_a_row_furniture():
    table = SheetTable(
        name="s",
        rows=[
            list(HEADER),
            ["", "", LANDON_CARD, "BANK OF STATEMENTS PRINTING", "$20.00"],
            ["", "", LANDON_CARD, "Page 2 of 3"],
        ],
        row_ids=[1, 2, 3],
    )

    out = DirectTabularExtractor().extract([table])

    assert out.records == []
    assert (out.skipped, out.undated) == (2, 1)
