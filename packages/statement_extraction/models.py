"""Data models for statement extraction.

- :class:`Transaction` is the canonical output unit (validated pydantic
  model) handed to persistence.
- :class:`RawRecord`, :class:`RepresentativeGroup` and
  :class:`ExtractionResult` are extraction-internal intermediates.
- :class:`StatementMeta` describes an uploaded statement for persistence.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field, replace
from decimal import Decimal
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

type TransactionStatus = Literal["pending", "classified", "approved"]
type StatementStatus = Literal["processing", "processed", "error"]
type SourceKind = Literal["tabular", "llm"]


def new_transaction_id() -> str:
    return uuid.uuid4().hex


# ---------------------------------------------------------------------------
# Canonical output
# ---------------------------------------------------------------------------


class Transaction(BaseModel):
    """A normalized statement transaction.

    ``date`` keeps the statement's own token (e.g. ``04/15/2025``) and is
    empty when the source carried none. ``account`` is the last 4 digits of
    the card when resolvable. ``assigned_to`` and ``commercial`` both carry
    the representative name or an unassigned sentinel.
    """

    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True, validate_assignment=True)

    id: str = Field(default_factory=new_transaction_id)
    date: str = ""
    account: str = ""
    merchant: str = ""
    amount: Decimal
    currency: str = "USD"
    status: TransactionStatus = "pending"
    assigned_to: str
    commercial: str
    card_number: str | None = None
    category: str | None = None
    subcategory: str | None = None
    project: str | None = None
    comments: str | None = None
    source_row: int | None = None
    source_kind: SourceKind = "tabular"

    @field_validator("amount")
    @classmethod
    def _finite_amount(cls, v: Decimal) -> Decimal:
        if not v.is_finite():
            raise ValueError("amount must be a finite number")
        return v

    @field_validator("currency")
    @classmethod
    def _currency_code(cls, v: str) -> str:
        code = v.upper()
        if len(code) != 3 or not code.isalpha():
            raise ValueError("currency must be a 3-letter code")
        return code

    def as_record(self) -> dict[str, Any]:
        """JSON-friendly mapping (amount as a 2dp string)."""

        data = self.model_dump()
        data["amount"] = f"{self.amount:.2f}"
        return data


# ---------------------------------------------------------------------------
# Extraction intermediates
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class RawRecord:
    """One transaction as produced by an extractor, before normalization.

    ``source_row`` is the stable row identifier assigned when the record was
    first read (spreadsheet row number, or a running index on the LLM path).
    ``amount`` stays raw (text or number) until normalization parses it.
    """

    supplier: str = ""
    amount: Any = None
    posting_date: str = ""
    transaction_date: str = ""
    account: str = ""
    group_name: str | None = None
    source_row: int | None = None
    ignored: bool = False

    def with_group(self, name: str) -> RawRecord:
        return replace(self, group_name=name)


@dataclass(frozen=True, slots=True)
class ReconciliationFlag:
    """Advisory mismatch between a declared and a computed total."""

    name: str
    declared: Decimal
    computed: Decimal

    @property
    def difference(self) -> Decimal:
        return self.computed - self.declared

    def describe(self) -> str:
        return (
            f"Total mismatch for {self.name}: declared {self.declared:.2f}, "
            f"computed {self.computed:.2f} (diff {self.difference:.2f})"
        )


@dataclass(slots=True)
class RepresentativeGroup:
    name: str
    records: list[RawRecord] = field(default_factory=list)
    declared_total: Decimal | None = None
    computed_total: Decimal | None = None

    @property
    def transaction_count(self) -> int:
        return len(self.records)


@dataclass(slots=True)
class ExtractionResult:
    """Representative name to records, as returned by one or more LLM calls.

    Groups are concatenated in call order. The same representative can appear
    in several groups when a statement was split; use
    :meth:`merged_by_name` to combine them.
    """

    groups: list[RepresentativeGroup] = field(default_factory=list)
    flags: list[ReconciliationFlag] = field(default_factory=list)
    diagnostics: list[str] = field(default_factory=list, compare=False)
    declared_grand_total: Decimal | None = None

    @classmethod
    def empty(cls, reason: str | None = None) -> ExtractionResult:
        result = cls()
        if reason:
            result.diagnostics.append(reason)
        return result

    @property
    def is_empty(self) -> bool:
        return not any(g.records for g in self.groups)

    @property
    def transaction_count(self) -> int:
        return sum(len(g.records) for g in self.groups)

    def records(self) -> Iterator[RawRecord]:
        for g in self.groups:
            for r in g.records:
                yield r if r.group_name == g.name else r.with_group(g.name)

    def extend(self, other: ExtractionResult) -> None:
        self.groups.extend(other.groups)
        self.flags.extend(other.flags)
        self.diagnostics.extend(other.diagnostics)

    def merged_by_name(self) -> ExtractionResult:
        """Combine groups sharing a representative name, keeping first-seen order."""

        merged: dict[str, RepresentativeGroup] = {}
        for g in self.groups:
            tgt = merged.get(g.name)
            if tgt is None:
                merged[g.name] = RepresentativeGroup(
                    name=g.name,
                    records=list(g.records),
                    declared_total=g.declared_total,
                    computed_total=g.computed_total,
                )
                continue
            tgt.records.extend(g.records)
            tgt.declared_total = _sum_optional(tgt.declared_total, g.declared_total)
            tgt.computed_total = _sum_optional(tgt.computed_total, g.computed_total)
        return ExtractionResult(
            groups=list(merged.values()),
            flags=list(self.flags),
            diagnostics=list(self.diagnostics),
            declared_grand_total=self.declared_grand_total,
        )


def _sum_optional(a: Decimal | None, b: Decimal | None) -> Decimal | None:
    if a is None:
        return b
    if b is None:
        return a
    return a + b


# ---------------------------------------------------------------------------
# Statement metadata (persistence boundary)
# ---------------------------------------------------------------------------


class StatementMeta(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    file_name: str
    period: str | None = None
    status: StatementStatus = "processing"
    transaction_count: int = 0
    accounts: list[str] = Field(default_factory=list)

    @classmethod
    def for_transactions(
        cls, file_name: str, transactions: Iterable[Transaction], *, period: str | None = None
    ) -> StatementMeta:
        txs = list(transactions)
        accounts = sorted({t.account for t in txs if t.account})
        return cls(
            file_name=file_name,
            period=period,
            status="processed",
            transaction_count=len(txs),
            accounts=accounts,
        )


__all__ = [
    "ExtractionResult",
    "RawRecord",
    "ReconciliationFlag",
    "RepresentativeGroup",
    "SourceKind",
    "StatementMeta",
    "StatementStatus",
    "Transaction",
    "TransactionStatus",
    "new_transaction_id",
]
