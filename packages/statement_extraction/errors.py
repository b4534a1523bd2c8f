"""Exception taxonomy for statement extraction.

Only :class:`ExtractionError` and :class:`ConfigError` are meant to reach the
user-facing layer. :class:`ColumnDetectionFailure` is caught by the pipeline
(fallback to the LLM path) and :class:`LLMTransientFailure` never leaves the
orchestrator.
"""

from __future__ import annotations


class ExtractionError(RuntimeError):
    """The input file cannot be opened or holds no usable rows/text."""

    def __init__(self, message: str, *, path: str | None = None) -> None:
        super().__init__(message)
        self.path = path


class ColumnDetectionFailure(ValueError):
    """No date or amount column could be located by header or by content."""

    def __init__(self, message: str, *, missing: tuple[str, ...] = ()) -> None:
        super().__init__(message)
        self.missing = missing


class LLMTransientFailure(RuntimeError):
    """A single completion attempt failed (HTTP error, timeout or bad payload)."""


class ConfigError(ValueError):
    """Invalid or incomplete extraction configuration."""


__all__ = [
    "ColumnDetectionFailure",
    "ConfigError",
    "ExtractionError",
    "LLMTransientFailure",
]
