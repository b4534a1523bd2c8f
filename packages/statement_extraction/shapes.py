"""LLM response shapes and total reconciliation.

The model has answered in three historical layouts over time. Each is a
variant of :data:`RawExtraction` with its own conversion into an
:class:`~statement_extraction.models.ExtractionResult`:

- :class:`FlatExtraction`: ``{"transactions": [{posting_date, transaction_date,
  account, supplier, amount}]}``. Records are grouped by the representative
  resolved from the card's last 4 digits.
- :class:`GroupedByCard`: ``{"transactions": [{"name", "transactions": [...],
  "transaction_count"}]}``. This is also the canonical serialization.
- :class:`GroupedWithTotals`: ``{"nombre_archivo", "comerciales": {Name:
  {"total_extracto", "total_calculado", "transacciones": [{"descripcion",
  "monto", ...}]}}}``.

An optional ``analisis_preliminar.total_general`` carries the statement's
grand total in any layout.
"""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from .cards import (
    DEFAULT_DIRECTORY,
    UNASSIGNED,
    CardDirectory,
    account_key,
    extract_last4,
    unknown_label,
)
from .logging_setup import get_logger
from .models import ExtractionResult, RawRecord, ReconciliationFlag, RepresentativeGroup
from .values import parse_amount

_logger = get_logger("statement_extraction.shapes")

RECONCILE_TOLERANCE = Decimal("0.01")
GRAND_TOTAL_NAME = "TOTAL"

_SUPPLIER_KEYS = ("supplier", "descripcion", "description", "merchant", "comercio")
_AMOUNT_KEYS = ("amount", "monto", "importe")
_POSTING_KEYS = ("posting_date", "fecha", "fecha_contabilizacion", "date")
_TRANSACTION_KEYS = ("transaction_date", "fecha_transaccion", "tran_date")
_ACCOUNT_KEYS = ("account", "tarjeta", "card_number", "card", "cuenta")
_ROW_KEYS = ("fila", "row", "source_row")
_IGNORED_KEYS = ("ignored", "ignore", "ignorar")
_GROUP_HINT_KEYS = ("representative", "comercial", "name")

# Amount-looking tokens inside labelled totals such as "Total USD 748.22".
_AMOUNT_TOKEN = re.compile(r"[-(]?[\$€£]?\s*\(?\d[\d,]*(?:\.\d+)?\)?-?")


@dataclass(frozen=True, slots=True)
class FlatExtraction:
    records: tuple[Mapping[str, Any], ...]
    declared_grand_total: Any = None


@dataclass(frozen=True, slots=True)
class GroupedByCard:
    groups: tuple[Mapping[str, Any], ...]
    declared_grand_total: Any = None


@dataclass(frozen=True, slots=True)
class GroupedWithTotals:
    representatives: Mapping[str, Mapping[str, Any]]
    file_name: str | None = None
    declared_grand_total: Any = None


type RawExtraction = FlatExtraction | GroupedByCard | GroupedWithTotals


# ---------------------------------------------------------------------------
# Field coercion
# ---------------------------------------------------------------------------


def _first(item: Mapping[str, Any], keys: Sequence[str]) -> Any:
    for k in keys:
        if k in item and item[k] not in (None, ""):
            return item[k]
    return None


def _text(v: Any) -> str:
    return "" if v is None else str(v).strip()


def _amount(v: Any) -> Any:
    """Decimal when parseable; otherwise the raw value for later rejection."""

    if v is None:
        return None
    try:
        return parse_amount(v)
    except ValueError:
        return _text(v) or None


def _optional_decimal(v: Any) -> Decimal | None:
    """Declared totals: plain amounts, or the last amount in a labelled string."""

    if v is None or v == "":
        return None
    try:
        return parse_amount(v)
    except ValueError:
        if not isinstance(v, str):
            return None
    tokens = _AMOUNT_TOKEN.findall(v)
    if not tokens:
        return None
    try:
        return parse_amount(tokens[-1].strip())
    except ValueError:
        return None


def _row(v: Any) -> int | None:
    if v is None or isinstance(v, bool):
        return None
    try:
        return int(str(v).strip())
    except ValueError:
        return None


def _ignored(item: Mapping[str, Any]) -> bool:
    v = _first(item, _IGNORED_KEYS)
    if isinstance(v, str):
        return v.strip().lower() in {"true", "1", "yes", "si", "sí"}
    return bool(v)


def _record(item: Mapping[str, Any], *, group_name: str, default_account: str = "") -> RawRecord:
    account = _text(_first(item, _ACCOUNT_KEYS))
    return RawRecord(
        supplier=_text(_first(item, _SUPPLIER_KEYS)),
        amount=_amount(_first(item, _AMOUNT_KEYS)),
        posting_date=_text(_first(item, _POSTING_KEYS)),
        transaction_date=_text(_first(item, _TRANSACTION_KEYS)),
        account=account_key(account) if account else default_account,
        group_name=group_name,
        source_row=_row(_first(item, _ROW_KEYS)),
        ignored=_ignored(item),
    )


def _grand_total(decoded: Mapping[str, Any]) -> Any:
    prelim = decoded.get("analisis_preliminar")
    if isinstance(prelim, Mapping):
        return prelim.get("total_general")
    return decoded.get("total_general")


# ---------------------------------------------------------------------------
# Classification and per-variant conversion
# ---------------------------------------------------------------------------


def classify(decoded: Any) -> RawExtraction | None:
    """Return the variant ``decoded`` matches, or ``None`` when none does."""

    if isinstance(decoded, list):
        items = tuple(x for x in decoded if isinstance(x, Mapping))
        return FlatExtraction(records=items) if items or not decoded else None
    if not isinstance(decoded, Mapping):
        return None

    grand = _grand_total(decoded)
    reps = decoded.get("comerciales")
    if isinstance(reps, Mapping):
        clean = {str(k): v for k, v in reps.items() if isinstance(v, Mapping)}
        return GroupedWithTotals(
            representatives=clean,
            file_name=_text(decoded.get("nombre_archivo")) or None,
            declared_grand_total=grand,
        )

    txs = decoded.get("transactions")
    if not isinstance(txs, list):
        return None
    items = tuple(x for x in txs if isinstance(x, Mapping))
    if items and all(isinstance(x.get("transactions"), list) for x in items):
        return GroupedByCard(groups=items, declared_grand_total=grand)
    if not items and txs:
        return None
    if not items:
        return GroupedByCard(groups=(), declared_grand_total=grand)
    return FlatExtraction(records=items, declared_grand_total=grand)


def _from_flat(raw: FlatExtraction, directory: CardDirectory) -> list[RepresentativeGroup]:
    groups: dict[str, RepresentativeGroup] = {}
    for item in raw.records:
        hint = _text(_first(item, _GROUP_HINT_KEYS))
        last4 = extract_last4(_first(item, _ACCOUNT_KEYS))
        name = hint or directory.resolve(last4) or unknown_label(last4)
        default_account = (directory.card_for(name) or "") if hint else ""
        rec = _record(item, group_name=name, default_account=default_account)
        groups.setdefault(name, RepresentativeGroup(name=name)).records.append(rec)
    return list(groups.values())


def _from_grouped(raw: GroupedByCard, directory: CardDirectory) -> list[RepresentativeGroup]:
    out: list[RepresentativeGroup] = []
    for g in raw.groups:
        name = _text(g.get("name")) or UNASSIGNED
        default_account = directory.card_for(name) or ""
        records = [
            _record(item, group_name=name, default_account=default_account)
            for item in g["transactions"]
            if isinstance(item, Mapping)
        ]
        out.append(
            RepresentativeGroup(
                name=name,
                records=records,
                declared_total=_optional_decimal(g.get("total_extracto")),
            )
        )
    return out


def _from_totals(raw: GroupedWithTotals, directory: CardDirectory) -> list[RepresentativeGroup]:
    out: list[RepresentativeGroup] = []
    for name, body in raw.representatives.items():
        items = body.get("transacciones") or body.get("transactions") or []
        default_account = directory.card_for(name) or ""
        records = [
            _record(item, group_name=name, default_account=default_account)
            for item in items
            if isinstance(item, Mapping)
        ]
        out.append(
            RepresentativeGroup(
                name=name,
                records=records,
                declared_total=_optional_decimal(body.get("total_extracto")),
            )
        )
    return out


def to_result(raw: RawExtraction, directory: CardDirectory = DEFAULT_DIRECTORY) -> ExtractionResult:
    """Convert any variant to an :class:`ExtractionResult` and reconcile it."""

    match raw:
        case FlatExtraction():
            groups = _from_flat(raw, directory)
        case GroupedByCard():
            groups = _from_grouped(raw, directory)
        case GroupedWithTotals():
            groups = _from_totals(raw, directory)
    result = ExtractionResult(
        groups=groups, declared_grand_total=_optional_decimal(raw.declared_grand_total)
    )
    reconcile(result)
    return result


# ---------------------------------------------------------------------------
# Reconciliation
# ---------------------------------------------------------------------------


def _sum_amounts(records: Sequence[RawRecord]) -> Decimal:
    total = Decimal("0")
    for r in records:
        if isinstance(r.amount, Decimal) and not r.ignored:
            total += r.amount
    return total


def _mismatch(declared: Decimal, computed: Decimal, tolerance: Decimal) -> bool:
    # Statements print charges with either sign; compare magnitudes.
    return abs(abs(computed) - abs(declared)) > tolerance


def reconcile(result: ExtractionResult, *, tolerance: Decimal = RECONCILE_TOLERANCE) -> list[ReconciliationFlag]:
    """Recompute per-group totals and flag differences from declared totals.

    Advisory only: flags are stored on ``result.flags`` and logged; records
    are never dropped because of a mismatch.
    """

    flags: list[ReconciliationFlag] = []
    grand = Decimal("0")
    for g in result.groups:
        g.computed_total = _sum_amounts(g.records)
        grand += g.computed_total
        if g.declared_total is not None and _mismatch(g.declared_total, g.computed_total, tolerance):
            flags.append(
                ReconciliationFlag(name=g.name, declared=g.declared_total, computed=g.computed_total)
            )
    if result.declared_grand_total is not None and _mismatch(
        result.declared_grand_total, grand, tolerance
    ):
        flags.append(
            ReconciliationFlag(
                name=GRAND_TOTAL_NAME, declared=result.declared_grand_total, computed=grand
            )
        )

    for f in flags:
        _logger.warning(
            "shapes:reconcile_mismatch name=%s declared=%.2f computed=%.2f",
            f.name,
            f.declared,
            f.computed,
        )
        result.diagnostics.append(f.describe())
    result.flags = flags
    return flags


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------


def _amount_json(v: Any) -> Any:
    return str(v) if isinstance(v, Decimal) else v


def _record_json(r: RawRecord) -> dict[str, Any]:
    out: dict[str, Any] = {
        "posting_date": r.posting_date,
        "transaction_date": r.transaction_date,
        "account": r.account,
        "supplier": r.supplier,
        "amount": _amount_json(r.amount),
    }
    if r.source_row is not None:
        out["row"] = r.source_row
    if r.ignored:
        out["ignored"] = True
    return out


def to_grouped_document(result: ExtractionResult) -> dict[str, Any]:
    """Canonical ``{"transactions": [{name, transactions, transaction_count}]}`` form."""

    groups: list[dict[str, Any]] = []
    for g in result.groups:
        doc: dict[str, Any] = {
            "name": g.name,
            "transactions": [_record_json(r) for r in g.records],
            "transaction_count": g.transaction_count,
        }
        if g.declared_total is not None:
            doc["total_extracto"] = str(g.declared_total)
        if g.computed_total is not None:
            doc["total_calculado"] = str(g.computed_total)
        groups.append(doc)
    out: dict[str, Any] = {"transactions": groups}
    if result.declared_grand_total is not None:
        out["analisis_preliminar"] = {"total_general": str(result.declared_grand_total)}
    return out


def to_totals_document(result: ExtractionResult, *, file_name: str | None = None) -> dict[str, Any]:
    """Representative-keyed form with declared and computed totals."""

    merged = result.merged_by_name()
    reps: dict[str, Any] = {}
    for g in merged.groups:
        computed = _sum_amounts(g.records)
        reps[g.name] = {
            "total_extracto": str(g.declared_total) if g.declared_total is not None else None,
            "total_calculado": str(computed),
            "transacciones": [
                {
                    "descripcion": r.supplier,
                    "monto": _amount_json(r.amount),
                    "fecha": r.posting_date,
                    "fecha_transaccion": r.transaction_date,
                    "tarjeta": r.account,
                    **({"fila": r.source_row} if r.source_row is not None else {}),
                }
                for r in g.records
            ],
        }
    out: dict[str, Any] = {"nombre_archivo": file_name, "comerciales": reps}
    if result.declared_grand_total is not None:
        out["analisis_preliminar"] = {"total_general": str(result.declared_grand_total)}
    return out


__all__ = [
    "FlatExtraction",
    "GroupedByCard",
    "GroupedWithTotals",
    "RECONCILE_TOLERANCE",
    "RawExtraction",
    "classify",
    "reconcile",
    "to_grouped_document",
    "to_result",
    "to_totals_document",
]
