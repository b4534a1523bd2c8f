from __future__ import annotations

import json
from decimal import Decimal

import pytest

from statement_extraction.repair import ResponseRepairer, balance, strip_fence
from statement_extraction.shapes import to_grouped_document

TRUNCATED_TOTALS = """```json
{"nombre_archivo": "PNC CC 042025.pdf",
 "comerciales": {
  "Allia Klipp": {
   "total_extracto": "748.22",
   "total_calculado": "748.22",
   "transacciones": [
    {"descripcion": "DELTA AIR LINES", "monto": "500.00", "fecha": "04/15/2025",
     "fecha_transaccion": "04/14/2025", "tarjeta": "XXXX-XXXX-XXXX-5456", "fila": 1},
    {"descripcion": "HILTON HOTELS", "monto": "248.22", "fecha": "04/16/2025",
     "fecha_transaccion": "04/15/2025", "tarjeta": "XXXX-XXXX-XXXX-5456", "fila": 2}
   ]
  }
 }
```"""


@pytest.fixture()
def repairer() -> ResponseRepairer:
    return ResponseRepairer()


def test_strip_fence_and_balance_helpers():
    assert strip_fence('```json\n{"a": 1}\n```') == '{"a": 1}'
    assert strip_fence('```json\n{"a": 1') == '{"a": 1'
    assert strip_fence('  {"a": 1}  ') == '{"a": 1}'
    assert balance('{"a": [1, {"b": "}"') == '{"a": [1, {"b": "}"}]}'


def test_fenced_totals_missing_final_brace_is_recovered(repairer):
    result = repairer.parse(TRUNCATED_TOTALS)

    assert result is not None
    assert [g.name for g in result.groups] == ["Allia Klipp"]
    group = result.groups[0]
    assert [r.supplier for r in group.records] == ["DELTA AIR LINES", "HILTON HOTELS"]
    assert [r.amount for r in group.records] == [Decimal("500.00"), Decimal("248.22")]
    assert [r.source_row for r in group.records] == [1, 2]
    assert group.declared_total == Decimal("748.22")
    assert result.flags == []


def test_parse_of_canonical_serialization_is_idempotent(repairer):
    first = repairer.parse(TRUNCATED_TOTALS)
    assert first is not None

    again = repairer.parse(json.dumps(to_grouped_document(first)))

    assert again == first


def test_character_repair_handles_single_quotes_bare_keys_and_trailing_commas(repairer):
    raw = (
        "{'transactions': [{supplier: 'DELTA AIR LINES', amount: '12.00', "
        "posting_date: '04/15/2025', account: '5456',},]}"
    )

    result = repairer.parse(raw)

    assert result is not None
    [record] = list(result.records())
    assert record.supplier == "DELTA AIR LINES"
    assert record.amount == Decimal("12.00")
    assert record.group_name == "Allia Klipp"


def test_truncated_response_keeps_complete_records(repairer):
    raw = (
        '{"transactions": [{"supplier": "DELTA", "amount": "500.00", '
        '"posting_date": "04/15/2025", "account": "5456"}, {"supplier": "HILT'
    )

    result = repairer.parse(raw)

    assert result is not None
    assert [(r.supplier, r.amount) for r in result.records()] == [("DELTA", Decimal("500.00"))]


def test_unterminated_string_is_closed(repairer):
    raw = '{"transactions": [{"supplier": "DELTA", "amount": 12, "posting_date": "04/1'

    result = repairer.parse(raw)

    assert result is not None
    [record] = list(result.records())
    assert (record.supplier, record.amount, record.posting_date) == ("DELTA", Decimal("12"), "04/1")


def test_salvage_rebuilds_records_without_inventing_dates(repairer):
    raw = (
        '{"transactions": [{"supplier": "DELTA" "amount": "500.00"} '
        '{"supplier": "HILTON", "amount": 248.22, "posting_date": "04/16/2025"}]}'
    )

    result = repairer.parse(raw)

    assert result is not None
    records = list(result.records())
    assert [(r.supplier, r.amount) for r in records] == [
        ("DELTA", Decimal("500.00")),
        ("HILTON", Decimal("248.22")),
    ]
    assert [r.posting_date for r in records] == ["", "04/16/2025"]
    assert any("pattern salvage" in d for d in result.diagnostics)


@pytest.mark.parametrize("raw", [None, "", "   ", "garbage", "{", "[1, 2"])
def test_unusable_text_returns_none_without_raising(repairer, raw):
    assert repairer.parse(raw) is None
