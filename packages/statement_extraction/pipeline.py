"""End-to-end extraction for one uploaded statement.

Routing:

- Spreadsheets go through :class:`~.tabular.DirectTabularExtractor`. When
  no statement table can be located (:class:`~.errors.ColumnDetectionFailure`)
  or the tables hold no recognisable row at all, the rendered rows are sent
  down the LLM path instead, with the original date tokens kept for patch-back.
- PDFs go through :class:`~.llm_extract.LLMExtractionOrchestrator`.

Either way the records end in :class:`~.normalize.TransactionNormalizer`.
Only :class:`~.errors.ExtractionError` (unreadable file) escapes; every other
failure degrades to fewer transactions plus diagnostics.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from os import PathLike

from .cards import DEFAULT_DIRECTORY, CardDirectory
from .config import ExtractionConfig
from .errors import ColumnDetectionFailure
from .ingest.utils import ExtractedDocument, extract_file
from .llm_extract import LLMExtractionOrchestrator
from .logging_setup import get_logger
from .models import ReconciliationFlag, SourceKind, StatementMeta, Transaction
from .normalize import NormalizedBatch, TransactionNormalizer
from .periods import period_from_filename
from .tabular import DirectTabularExtractor

_logger = get_logger("statement_extraction.pipeline")


@dataclass(slots=True)
class StatementOutcome:
    file_name: str
    source_kind: SourceKind
    transactions: list[Transaction] = field(default_factory=list)
    diagnostics: list[str] = field(default_factory=list)
    flags: list[ReconciliationFlag] = field(default_factory=list)
    period: str | None = None

    @property
    def is_empty(self) -> bool:
        return not self.transactions

    def meta(self) -> StatementMeta:
        return StatementMeta.for_transactions(
            self.file_name, self.transactions, period=self.period
        )


class StatementPipeline:
    def __init__(
        self,
        config: ExtractionConfig,
        directory: CardDirectory = DEFAULT_DIRECTORY,
        *,
        orchestrator: LLMExtractionOrchestrator | None = None,
    ) -> None:
        self._config = config
        self._directory = directory
        self._tabular = DirectTabularExtractor(directory)
        self._llm = orchestrator or LLMExtractionOrchestrator(config, directory)
        self._normalizer = TransactionNormalizer(
            directory, default_currency=config.default_currency
        )

    def run(self, path: str | PathLike[str]) -> StatementOutcome:
        doc = extract_file(path)
        _logger.info(
            "pipeline:start file=%s kind=%s chars=%d", doc.file_name, doc.kind, len(doc.text)
        )
        if doc.kind == "spreadsheet":
            outcome = self._from_spreadsheet(doc)
        else:
            outcome = self._from_llm(doc)
        outcome.period = period_from_filename(doc.file_name)
        _logger.info(
            "pipeline:done file=%s kind=%s transactions=%d diagnostics=%d flags=%d",
            doc.file_name,
            outcome.source_kind,
            len(outcome.transactions),
            len(outcome.diagnostics),
            len(outcome.flags),
        )
        return outcome

    def _from_spreadsheet(self, doc: ExtractedDocument) -> StatementOutcome:
        try:
            extraction = self._tabular.extract(doc.tables)
        except ColumnDetectionFailure as e:
            _logger.info("pipeline:tabular_unusable file=%s reason=%s", doc.file_name, e)
            outcome = self._from_llm(doc)
            outcome.diagnostics.insert(0, f"Tabular extraction not possible ({e}); used LLM path")
            return outcome

        if not extraction.records and not extraction.excluded:
            _logger.info("pipeline:tabular_empty file=%s", doc.file_name)
            outcome = self._from_llm(doc)
            outcome.diagnostics.insert(0, "Tabular extraction found no rows; used LLM path")
            return outcome

        batch = self._normalizer.normalize(extraction.records, "tabular")
        return self._outcome(doc, "tabular", batch)

    def _from_llm(self, doc: ExtractedDocument) -> StatementOutcome:
        result = self._llm.extract_all(doc.text)
        batch = self._normalizer.normalize(result, "llm", original_dates=doc.original_dates)
        outcome = self._outcome(doc, "llm", batch)
        outcome.flags.extend(result.flags)
        return outcome

    @staticmethod
    def _outcome(doc: ExtractedDocument, kind: SourceKind, batch: NormalizedBatch) -> StatementOutcome:
        return StatementOutcome(
            file_name=doc.file_name,
            source_kind=kind,
            transactions=batch.transactions,
            diagnostics=batch.diagnostics,
        )


def extract_statement(
    path: str | PathLike[str],
    config: ExtractionConfig | None = None,
    *,
    directory: CardDirectory = DEFAULT_DIRECTORY,
) -> StatementOutcome:
    """Extract canonical transactions from the statement at ``path``.

    ``config`` defaults to :meth:`ExtractionConfig.from_env`.
    """

    return StatementPipeline(config or ExtractionConfig.from_env(), directory).run(path)


__all__ = ["StatementOutcome", "StatementPipeline", "extract_statement"]
