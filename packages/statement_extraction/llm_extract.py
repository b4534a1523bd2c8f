"""LLM-assisted extraction over statement text.

One structured prompt (see :mod:`.prompting`) is sent per call through the
OpenAI Python SDK's chat completions API, which also serves any
OpenAI-compatible endpoint via ``ExtractionConfig.base_url``.

Call plan for :meth:`LLMExtractionOrchestrator.extract_all`:

- Text longer than ``split_threshold_chars`` is cut at ``split_anchor`` (a
  representative name near the statement's midpoint) and each half is sent
  separately. Group lists are concatenated, not merged by key.
- When that pass yields no transactions, the text is re-sent in
  ``chunk_size_chars`` slices.
- Each call retries up to ``max_attempts`` on HTTP errors, timeouts and
  unparsable answers with delay ``backoff_base_sec * 2**(attempt-1)``.
  After the last attempt the call degrades to an empty result.

Calls are issued sequentially.
"""

from __future__ import annotations

import time
from typing import Any

from openai import APIConnectionError, OpenAI

from . import prompting
from .cards import DEFAULT_DIRECTORY, CardDirectory
from .config import ExtractionConfig
from .errors import LLMTransientFailure
from .logging_setup import get_logger
from .models import ExtractionResult
from .repair import ResponseRepairer

_logger = get_logger("statement_extraction.llm_extract")


def _create_client(config: ExtractionConfig) -> OpenAI:
    return OpenAI(
        api_key=config.api_key,
        base_url=config.base_url,
        timeout=config.request_timeout_sec,
    )


def _is_retryable(exc: BaseException) -> bool:
    """Return True for transport errors, HTTP 429/5xx and unusable answers.

    Other HTTP statuses (auth, bad request) fail the same way on every
    attempt and are terminal.
    """

    if isinstance(exc, (LLMTransientFailure, APIConnectionError)):
        return True
    sc = getattr(exc, "status_code", None)
    if isinstance(sc, int):
        return sc == 429 or 500 <= sc < 600
    return False


def _sleep_backoff(attempt_no: int, base_sec: float) -> None:
    time.sleep(max(0.0, base_sec * 2 ** (attempt_no - 1)))


def _response_text(resp: Any) -> str:
    try:
        choice = resp.choices[0]
        content = choice.message.content
    except (AttributeError, IndexError, TypeError) as e:
        raise LLMTransientFailure("response carried no message content") from e
    if getattr(choice, "finish_reason", None) == "length":
        _logger.warning("llm_extract:truncated_response chars=%d", len(content or ""))
    if not isinstance(content, str) or not content.strip():
        raise LLMTransientFailure("empty message content")
    return content


def split_at_anchor(text: str, anchor: str) -> list[str]:
    """Cut ``text`` right before the first ``anchor`` occurrence.

    Returns ``[text]`` when the anchor is absent or sits at the very start.
    """

    pos = text.find(anchor) if anchor else -1
    if pos <= 0:
        return [text]
    return [text[:pos], text[pos:]]


def chunk_text(text: str, size: int) -> list[str]:
    return [text[i : i + size] for i in range(0, len(text), size)]


class LLMExtractionOrchestrator:
    """Dispatches extraction calls and assembles their results."""

    def __init__(
        self,
        config: ExtractionConfig,
        directory: CardDirectory = DEFAULT_DIRECTORY,
        repairer: ResponseRepairer | None = None,
    ) -> None:
        self._config = config
        self._directory = directory
        self._repairer = repairer or ResponseRepairer(directory)

    @property
    def config(self) -> ExtractionConfig:
        return self._config

    def extract_all(self, text: str) -> ExtractionResult:
        """Extract every representative group from ``text``.

        Never raises for endpoint or parsing failures: an empty result with
        diagnostics means "no transactions found".
        """

        cfg = self._config
        if not text or not text.strip():
            return ExtractionResult.empty("no statement text to extract from")
        if cfg.use_mock:
            _logger.warning("llm_extract:mock_mode chars=%d", len(text))
            return ExtractionResult.empty(
                "LLM extraction is disabled (use_mock); no transactions were extracted"
            )

        client = _create_client(cfg)

        parts = [text]
        if len(text) > cfg.split_threshold_chars:
            parts = split_at_anchor(text, cfg.split_anchor)
            if len(parts) == 1:
                _logger.info(
                    "llm_extract:anchor_missing anchor=%r chars=%d", cfg.split_anchor, len(text)
                )
            else:
                _logger.info(
                    "llm_extract:split parts=2 part1_chars=%d part2_chars=%d",
                    len(parts[0]),
                    len(parts[1]),
                )

        result = self._run_calls(client, parts, kind="part", max_tokens=cfg.max_tokens)
        if not result.is_empty:
            return result

        chunks = chunk_text(text, cfg.chunk_size_chars)
        _logger.info("llm_extract:chunk_fallback chunks=%d chars=%d", len(chunks), len(text))
        fallback = self._run_calls(client, chunks, kind="chunk", max_tokens=cfg.chunk_max_tokens)
        fallback.diagnostics[:0] = result.diagnostics
        if fallback.is_empty:
            fallback.diagnostics.append("no transactions found in the statement text")
        return fallback

    def _run_calls(
        self, client: OpenAI, pieces: list[str], *, kind: str, max_tokens: int
    ) -> ExtractionResult:
        out = ExtractionResult()
        for n, piece in enumerate(pieces, start=1):
            label = f"{kind} {n} of {len(pieces)}" if len(pieces) > 1 else None
            res = self._call_with_retry(client, piece, label=label, max_tokens=max_tokens)
            out.extend(res)
            if len(pieces) == 1:
                out.declared_grand_total = res.declared_grand_total
        return out

    def _call_with_retry(
        self, client: OpenAI, text: str, *, label: str | None, max_tokens: int
    ) -> ExtractionResult:
        cfg = self._config
        where = label or "document"
        messages = [
            {"role": "system", "content": prompting.build_system_message()},
            {
                "role": "user",
                "content": prompting.build_user_content(
                    text, directory=self._directory, part_label=label
                ),
            },
        ]

        attempt = 1
        while True:
            t0 = time.perf_counter()
            try:
                resp = client.chat.completions.create(
                    model=cfg.model,
                    messages=messages,
                    temperature=cfg.temperature,
                    max_tokens=max_tokens,
                )
                parsed = self._repairer.parse(_response_text(resp))
                if parsed is None:
                    raise LLMTransientFailure("model response could not be parsed")
                dt_ms = (time.perf_counter() - t0) * 1000.0
                _logger.info(
                    "llm_extract:call_done where=%r groups=%d records=%d latency_ms=%.2f",
                    where,
                    len(parsed.groups),
                    parsed.transaction_count,
                    dt_ms,
                )
                return parsed
            except Exception as e:  # noqa: BLE001
                dt_ms = (time.perf_counter() - t0) * 1000.0
                if attempt >= cfg.max_attempts or not _is_retryable(e):
                    _logger.error(
                        "llm_extract:call_failed where=%r attempts=%d latency_ms=%.2f error=%s",
                        where,
                        attempt,
                        dt_ms,
                        e.__class__.__name__,
                    )
                    return ExtractionResult.empty(
                        f"LLM extraction failed for {where} after {attempt} attempt(s): "
                        f"{e.__class__.__name__}: {e}"
                    )
                _logger.warning(
                    "llm_extract:attempt_retry where=%r attempt=%d latency_ms=%.2f error=%s",
                    where,
                    attempt,
                    dt_ms,
                    e.__class__.__name__,
                )
                _sleep_backoff(attempt, cfg.backoff_base_sec)
                attempt += 1


__all__ = ["LLMExtractionOrchestrator", "chunk_text", "split_at_anchor"]
