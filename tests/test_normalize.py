from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest

from statement_extraction.ingest.spreadsheet import OriginalDates
from statement_extraction.models import ExtractionResult, RawRecord, RepresentativeGroup
from statement_extraction.normalize import TransactionNormalizer, format_comments


def _rec(**kw) -> RawRecord:
    base = dict(
        supplier="DELTA AIR LINES",
        amount="500.00",
        posting_date="04/15/2025",
        transaction_date="04/14/2025",
        account="5456",
        group_name="Allia Klipp",
    )
    base.update(kw)
    return RawRecord(**base)


@pytest.fixture()
def normalizer() -> TransactionNormalizer:
    return TransactionNormalizer()


def test_llm_amounts_become_expenses_tabular_keep_sign(normalizer):
    llm = normalizer.normalize([_rec(amount="500.00"), _rec(amount="-12.5")], "llm")
    tab = normalizer.normalize([_rec(amount="500.00"), _rec(amount="$(45.00)")], "tabular")

    assert [t.amount for t in llm.transactions] == [Decimal("-500.00"), Decimal("-12.50")]
    assert [t.amount for t in tab.transactions] == [Decimal("500.00"), Decimal("-45.00")]
    assert {t.source_kind for t in llm.transactions} == {"llm"}


def test_fields_and_comments(normalizer):
    [tx] = normalizer.normalize([_rec(account="XXXX-XXXX-XXXX-5456", source_row=4)], "tabular").transactions

    assert tx.date == "04/14/2025"
    assert tx.account == "5456"
    assert tx.card_number == "XXXX-XXXX-XXXX-5456"
    assert tx.assigned_to == tx.commercial == "Allia Klipp"
    assert tx.currency == "USD"
    assert tx.status == "pending"
    assert tx.source_row == 4
    assert tx.comments == format_comments("Allia Klipp", "04/15/2025", "04/14/2025")
    assert format_comments("X", "", "") == "Comercial: X | Fecha original: - | Fecha transacción: -"


def test_unparsable_amount_is_dropped_with_diagnostic(normalizer):
    out = normalizer.normalize([_rec(amount="n/a", source_row=7), _rec(amount=None)], "tabular")

    assert out.transactions == []
    assert out.dropped == 2
    assert out.diagnostics[0].startswith("Dropped row 7 (DELTA AIR LINES)")


def test_missing_date_stays_blank_never_today(normalizer):
    out = normalizer.normalize([_rec(posting_date="", transaction_date="")], "llm")

    [tx] = out.transactions
    assert tx.date == ""
    assert date.today().strftime("%m/%d/%Y") not in tx.comments
    assert any(d.startswith("No date found for record (DELTA AIR LINES)") for d in out.diagnostics)


def test_posting_date_used_when_transaction_date_missing(normalizer):
    [tx] = normalizer.normalize([_rec(transaction_date="")], "llm").transactions
    assert tx.date == "04/15/2025"


def test_original_dates_replace_model_dates_by_row(normalizer):
    records = [
        _rec(source_row=4, posting_date="05/01/2025", transaction_date="05/01/2025"),
        _rec(source_row=5, posting_date="05/01/2025", transaction_date=""),
        _rec(source_row=None),
    ]
    originals = {
        4: OriginalDates(posting="04/15/2025", transaction="04/14/2025"),
        5: OriginalDates(posting="04/16/2025"),
    }

    out = normalizer.normalize(records, "llm", original_dates=originals)

    assert [t.date for t in out.transactions] == ["04/14/2025", "04/16/2025", "04/14/2025"]


def test_system_payment_excluded_via_group_card(normalizer):
    records = [
        _rec(
            supplier="Payment - Auto Payment Deduction",
            account="",
            group_name="Hemisphere Trading O",
        ),
        _rec(supplier="ANNUAL FEE", account="", group_name="Hemisphere Trading O"),
        _rec(ignored=True),
    ]

    out = normalizer.normalize(records, "llm")

    assert [t.merchant for t in out.transactions] == ["ANNUAL FEE"]
    assert out.excluded == 2


def test_single_shared_date_is_flagged_for_review(normalizer):
    records = [_rec(supplier=f"ITEM {n}", transaction_date="04/01/2025") for n in range(6)]

    out = normalizer.normalize(records, "llm")

    assert all("Revisar fecha" in t.comments for t in out.transactions)
    assert any("share the single date 04/01/2025" in d for d in out.diagnostics)

    few = normalizer.normalize(records[:5], "llm")
    assert not any("Revisar fecha" in t.comments for t in few.transactions)

    tabular = normalizer.normalize(records, "tabular")
    assert not any("Revisar fecha" in t.comments for t in tabular.transactions)


def test_extraction_result_groups_and_diagnostics_flow_through(normalizer):
    result = ExtractionResult(
        groups=[RepresentativeGroup(name="Landon Hamel", records=[_rec(group_name=None, account="")])],
        diagnostics=["upstream note"],
    )

    out = normalizer.normalize(result, "llm")

    [tx] = out.transactions
    assert tx.commercial == "Landon Hamel"
    assert tx.account == ""
    assert out.diagnostics[0] == "upstream note"


def test_unassigned_default_and_custom_currency():
    out = TransactionNormalizer(default_currency="eur").normalize([_rec(group_name=None)], "tabular")

    [tx] = out.transactions
    assert tx.commercial == "Sin asignar"
    assert tx.currency == "EUR"
