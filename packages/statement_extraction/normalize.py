"""Map raw extractor records onto canonical :class:`~.models.Transaction` objects.

Rules applied to every record, whichever extractor produced it:

- The representative comes from the record's group name. The LLM path has
  already grouped by representative, so the group wins over any lookup on
  the embedded account.
- Exclusion (system account AND auto-payment description) is checked again.
- Date: ``transaction_date``, else ``posting_date``, else blank with a
  diagnostic. The current date is never substituted.
- Original spreadsheet dates, keyed by stable row id, replace the dates the
  model returned for the same row.
- Amounts that do not parse are dropped with a diagnostic. LLM amounts are
  expenses and become negative; tabular amounts keep the source sign.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

from .cards import DEFAULT_DIRECTORY, UNASSIGNED, CardDirectory, extract_last4
from .ingest.spreadsheet import OriginalDates
from .logging_setup import get_logger
from .models import ExtractionResult, RawRecord, SourceKind, Transaction
from .values import parse_amount, quantize_amount

_logger = get_logger("statement_extraction.normalize")

# More than this many records on one single distinct date looks like the
# model copied one date onto every row.
COLLAPSED_DATE_THRESHOLD = 5


@dataclass(slots=True)
class NormalizedBatch:
    transactions: list[Transaction] = field(default_factory=list)
    diagnostics: list[str] = field(default_factory=list)
    excluded: int = 0
    dropped: int = 0


def _describe(record: RawRecord) -> str:
    where = f"row {record.source_row}" if record.source_row is not None else "record"
    return f"{where} ({record.supplier or 'no supplier'})"


def format_comments(group: str, posting: str, transaction: str) -> str:
    return (
        f"Comercial: {group} | Fecha original: {posting or '-'} | "
        f"Fecha transacción: {transaction or '-'}"
    )


class TransactionNormalizer:
    def __init__(
        self, directory: CardDirectory = DEFAULT_DIRECTORY, *, default_currency: str = "USD"
    ) -> None:
        self._directory = directory
        self._currency = default_currency

    def normalize(
        self,
        records: ExtractionResult | Iterable[RawRecord],
        source_kind: SourceKind,
        *,
        original_dates: Mapping[int, OriginalDates] | None = None,
    ) -> NormalizedBatch:
        """Normalize ``records`` produced by the ``source_kind`` extractor.

        An :class:`ExtractionResult` is flattened group by group; its
        diagnostics are carried into the batch.
        """

        out = NormalizedBatch()
        if isinstance(records, ExtractionResult):
            out.diagnostics.extend(records.diagnostics)
            items: Iterable[RawRecord] = records.records()
        else:
            items = records

        originals = original_dates or {}
        for record in items:
            tx = self._one(record, source_kind, originals, out)
            if tx is not None:
                out.transactions.append(tx)

        if source_kind == "llm":
            self._flag_collapsed_dates(out)

        _logger.info(
            "normalize:done kind=%s transactions=%d excluded=%d dropped=%d",
            source_kind,
            len(out.transactions),
            out.excluded,
            out.dropped,
        )
        return out

    def _one(
        self,
        record: RawRecord,
        source_kind: SourceKind,
        originals: Mapping[int, OriginalDates],
        out: NormalizedBatch,
    ) -> Transaction | None:
        group = (record.group_name or "").strip() or UNASSIGNED
        merchant = (record.supplier or "").strip()
        account_text = (record.account or "").strip()
        last4 = extract_last4(account_text)

        # A record without a card number is checked against its group's card.
        check_account = last4 or self._directory.card_for(group)
        if record.ignored or self._directory.is_excluded_account(check_account, merchant):
            out.excluded += 1
            _logger.debug("normalize:excluded %s account=%s", _describe(record), last4)
            return None

        try:
            amount = parse_amount(record.amount)
        except ValueError:
            out.dropped += 1
            out.diagnostics.append(
                f"Dropped {_describe(record)}: amount {record.amount!r} is not a number"
            )
            _logger.warning(
                "normalize:amount_unparsable source_row=%s amount=%r",
                record.source_row,
                record.amount,
            )
            return None
        if source_kind == "llm":
            amount = -abs(amount)

        posting = record.posting_date.strip()
        transaction = record.transaction_date.strip()
        original = originals.get(record.source_row) if record.source_row is not None else None
        if original is not None:
            posting = original.posting or posting
            transaction = original.transaction or transaction

        date = transaction or posting
        if not date:
            out.diagnostics.append(f"No date found for {_describe(record)}; left blank")
            _logger.warning("normalize:date_missing source_row=%s", record.source_row)

        return Transaction(
            date=date,
            account=last4 or account_text,
            merchant=merchant,
            amount=quantize_amount(amount),
            currency=self._currency,
            assigned_to=group,
            commercial=group,
            card_number=account_text or None,
            comments=format_comments(group, posting, transaction),
            source_row=record.source_row,
            source_kind=source_kind,
        )

    def _flag_collapsed_dates(self, out: NormalizedBatch) -> None:
        dated = [t for t in out.transactions if t.date]
        counts = Counter(t.date for t in dated)
        if len(counts) != 1 or len(dated) <= COLLAPSED_DATE_THRESHOLD:
            return
        (only,) = counts
        note = f"Revisar fecha: posible fecha incorrecta ({only})"
        for t in dated:
            t.comments = f"{t.comments} | {note}" if t.comments else note
        out.diagnostics.append(
            f"{len(dated)} transactions share the single date {only}; dates may be wrong"
        )
        _logger.warning("normalize:dates_collapsed date=%s records=%d", only, len(dated))


__all__ = [
    "COLLAPSED_DATE_THRESHOLD",
    "NormalizedBatch",
    "TransactionNormalizer",
    "format_comments",
]
