"""Logging for the ``statement_extraction`` package.

Entrypoints (the CLI, a host web app) call :func:`configure_logging` once;
it attaches one ``StreamHandler`` to the ``"statement_extraction"`` logger and
turns the HTTP client loggers used by the OpenAI SDK (``openai``, ``httpx``)
down to WARNING so request chatter does not drown extraction events.

Library modules never attach handlers. They call
``get_logger("statement_extraction.<module>")`` and emit grep-able messages
such as ``"llm_extract:attempt_retry where='part 1 of 2' attempt=2
error=APIConnectionError"``. Until configuration runs, the package logger
carries a ``NullHandler`` so library use stays silent.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import IO

_PKG_LOGGER_NAME = "statement_extraction"
_LEVEL_ENV = "STATEMENT_EXTRACTION_LOG_LEVEL"
_DEFAULT_FMT = "%(asctime)s %(name)s %(levelname)s %(message)s"
_NOISY_LOGGERS = ("openai", "httpx", "httpcore")
_CONFIGURED = False


def _level_from_name(value: str) -> int | None:
    value = value.strip().upper()
    if value.isdigit():
        return int(value)
    numeric = logging.getLevelName(value)
    return numeric if isinstance(numeric, int) else None


def resolve_level(level: int | str | None) -> int:
    """Explicit level, else ``STATEMENT_EXTRACTION_LOG_LEVEL``, else INFO."""

    if isinstance(level, int):
        return level
    for candidate in (level, os.getenv(_LEVEL_ENV)):
        if candidate:
            parsed = _level_from_name(candidate)
            if parsed is not None:
                return parsed
    return logging.INFO


def configure_logging(
    level: int | str | None = None,
    *,
    fmt: str | None = None,
    stream: IO[str] = sys.stderr,
) -> None:
    """Attach the package handler; later calls are no-ops."""

    global _CONFIGURED
    if _CONFIGURED:
        return

    pkg_logger = logging.getLogger(_PKG_LOGGER_NAME)
    for h in list(pkg_logger.handlers):
        if isinstance(h, logging.NullHandler):
            pkg_logger.removeHandler(h)

    resolved = resolve_level(level)
    handler = logging.StreamHandler(stream)
    handler.setLevel(resolved)
    handler.setFormatter(logging.Formatter(fmt or _DEFAULT_FMT))
    pkg_logger.setLevel(resolved)
    pkg_logger.addHandler(handler)
    pkg_logger.propagate = False

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(resolved, logging.WARNING))

    _CONFIGURED = True


def get_logger(name: str) -> logging.Logger:
    pkg_logger = logging.getLogger(_PKG_LOGGER_NAME)
    if not _CONFIGURED and not pkg_logger.handlers:
        pkg_logger.addHandler(logging.NullHandler())
    return logging.getLogger(name)


__all__ = ["configure_logging", "get_logger", "resolve_level"]
