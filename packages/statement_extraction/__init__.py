"""Public interface for the ``statement_extraction`` package.

This module exposes the pipeline entrypoints, the extractor components and
the public models/types as the stable import surface. There is no runtime
logic here, only symbol re-exports.
"""

from .cards import DEFAULT_DIRECTORY, CardDirectory
from .columns import ColumnMap, detect_column, detect_column_by_content, detect_columns
from .config import ExtractionConfig
from .errors import ColumnDetectionFailure, ConfigError, ExtractionError, LLMTransientFailure
from .ingest.utils import ExtractedDocument, extract_file
from .llm_extract import LLMExtractionOrchestrator
from .models import (
    ExtractionResult,
    RawRecord,
    ReconciliationFlag,
    RepresentativeGroup,
    StatementMeta,
    Transaction,
)
from .normalize import NormalizedBatch, TransactionNormalizer
from .pipeline import StatementOutcome, StatementPipeline, extract_statement
from .repair import ResponseRepairer
from .tabular import DirectTabularExtractor, StatementBlock

__all__ = [
    # Pipeline
    "extract_statement",
    "StatementPipeline",
    "StatementOutcome",
    # Components
    "CardDirectory",
    "DEFAULT_DIRECTORY",
    "extract_file",
    "ExtractedDocument",
    "ColumnMap",
    "detect_column",
    "detect_column_by_content",
    "detect_columns",
    "DirectTabularExtractor",
    "StatementBlock",
    "LLMExtractionOrchestrator",
    "ResponseRepairer",
    "TransactionNormalizer",
    "NormalizedBatch",
    # Models / config / errors
    "ExtractionConfig",
    "ExtractionResult",
    "RawRecord",
    "ReconciliationFlag",
    "RepresentativeGroup",
    "StatementMeta",
    "Transaction",
    "ColumnDetectionFailure",
    "ConfigError",
    "ExtractionError",
    "LLMTransientFailure",
]
