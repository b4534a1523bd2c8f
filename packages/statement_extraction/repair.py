"""Parse and repair the model's JSON answer.

The response is run through an ordered chain of strategies, stopping at the
first candidate that decodes to a recognised shape (see :mod:`.shapes`):

1. ``DirectParse``: strip a markdown fence, ``json.loads``.
2. ``BraceRepair``: take the outermost ``{...}`` span; append missing ``}``/``]``.
3. ``CharacterRepair``: single to double quotes, trailing commas, bare keys,
   raw control characters and unterminated strings, then re-balance.
4. ``RegexSalvage``: pull supplier/amount/date/card tokens out of whatever
   text is left and rebuild a flat record list. Dates that cannot be
   recovered stay blank; amounts that cannot be recovered stay missing and
   are dropped during normalization.

:meth:`ResponseRepairer.parse` never raises. It returns ``None`` when no
strategy yields usable data.
"""

from __future__ import annotations

import json
import re
from collections.abc import Callable, Iterator, Sequence
from typing import Any, Protocol

from .cards import DEFAULT_DIRECTORY, CardDirectory, extract_last4
from .logging_setup import get_logger
from .models import ExtractionResult
from .shapes import classify, to_result

_logger = get_logger("statement_extraction.repair")

_FENCE = re.compile(r"```[A-Za-z]*[ \t]*\r?\n?(.*?)```", re.DOTALL)
_OPEN_FENCE = re.compile(r"^```[A-Za-z]*[ \t]*\r?\n?")

_TRAILING_COMMA = re.compile(r",\s*([}\]])")
_BARE_KEY = re.compile(r"([{,]\s*)([A-Za-z_][A-Za-z0-9_]*)(\s*:)")
_SINGLE_QUOTED = re.compile(r"([{\[,:]\s*)'((?:[^'\\]|\\.)*)'")
_DANGLING_PAIR = re.compile(
    r',?\s*"(?:[^"\\]|\\.)*"\s*:\s*(?:t|tr|tru|f|fa|fal|fals|n|nu|nul)?\s*$'
)
_DANGLING_KEY = re.compile(r',\s*"(?:[^"\\]|\\.)*"\s*$')
_DANGLING_DOT = re.compile(r"(\d)\.\s*$")


def strip_fence(text: str) -> str:
    """Return the body of a ```json fence, or the trimmed text when unfenced."""

    t = text.strip()
    m = _FENCE.search(t)
    if m:
        return m.group(1).strip()
    # Opening fence with the closing one cut off by truncation.
    return _OPEN_FENCE.sub("", t, count=1).strip()


# ---------------------------------------------------------------------------
# String-aware scanning helpers
# ---------------------------------------------------------------------------


def _scan(text: str) -> tuple[list[str], bool]:
    """Open brackets outside strings (in order) and whether the text ends in a string."""

    stack: list[str] = []
    in_str = False
    escaped = False
    for ch in text:
        if in_str:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_str = False
            continue
        if ch == '"':
            in_str = True
        elif ch in "{[":
            stack.append(ch)
        elif ch in "}]":
            if stack and (stack[-1], ch) in (("{", "}"), ("[", "]")):
                stack.pop()
    return stack, in_str


def _matching_close(text: str, start: int) -> int | None:
    """Index of the bracket closing the one at ``start``, ignoring string content."""

    depth = 0
    in_str = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_str:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_str = False
            continue
        if ch == '"':
            in_str = True
        elif ch in "{[":
            depth += 1
        elif ch in "}]":
            depth -= 1
            if depth == 0:
                return i
    return None


def balance(text: str) -> str:
    """Append the closers for every bracket left open outside strings."""

    stack, _ = _scan(text)
    return text + "".join("}" if c == "{" else "]" for c in reversed(stack))


def _segments(text: str) -> Iterator[tuple[bool, str]]:
    """Split into ``(is_string_literal, chunk)`` pieces on double quotes."""

    buf: list[str] = []
    in_str = False
    escaped = False
    for ch in text:
        if in_str:
            buf.append(ch)
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                yield True, "".join(buf)
                buf = []
                in_str = False
            continue
        if ch == '"':
            if buf:
                yield False, "".join(buf)
            buf = [ch]
            in_str = True
        else:
            buf.append(ch)
    if buf:
        yield in_str, "".join(buf)


def _outside_strings(text: str, fn: Callable[[str], str]) -> str:
    return "".join(chunk if is_str else fn(chunk) for is_str, chunk in _segments(text))


def _escape_controls(text: str) -> str:
    def _fix(chunk: str) -> str:
        return chunk.replace("\r", "\\r").replace("\n", "\\n").replace("\t", "\\t")

    return "".join(_fix(chunk) if is_str else chunk for is_str, chunk in _segments(text))


def _loads(text: str) -> Any | None:
    try:
        return json.loads(text)
    except (json.JSONDecodeError, RecursionError):
        return None


def _json_start(text: str) -> int:
    starts = [i for i in (text.find("{"), text.find("[")) if i != -1]
    return min(starts) if starts else -1


# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------


class ParseStrategy(Protocol):
    name: str

    def candidates(self, text: str) -> Iterator[Any]:
        """Yield decoded JSON candidates, most faithful first."""
        ...


class DirectParse:
    name = "direct"

    def candidates(self, text: str) -> Iterator[Any]:
        decoded = _loads(strip_fence(text))
        if decoded is not None:
            yield decoded


class BraceRepair:
    name = "brace"

    def candidates(self, text: str) -> Iterator[Any]:
        t = strip_fence(text)
        start = t.find("{")
        if start == -1:
            return
        end = _matching_close(t, start)
        if end is not None:
            decoded = _loads(t[start : end + 1])
            if decoded is not None:
                yield decoded
        last = t.rfind("}")
        if last > start:
            outer = t[start : last + 1]
            for cand in (outer, balance(outer)):
                decoded = _loads(cand)
                if decoded is not None:
                    yield decoded
        decoded = _loads(balance(t[start:].rstrip()))
        if decoded is not None:
            yield decoded


def _finalize(text: str) -> list[str]:
    """Close an open string, drop a dangling key/value, then balance brackets."""

    t = text.rstrip()
    _, in_str = _scan(t)
    if in_str:
        t += '"'
    variants: list[str] = []
    trimmed = _DANGLING_DOT.sub(r"\1", t)
    trimmed = _DANGLING_PAIR.sub("", trimmed).rstrip().rstrip(",")
    variants.append(balance(trimmed))
    no_key = _DANGLING_KEY.sub("", trimmed).rstrip().rstrip(",")
    if no_key != trimmed:
        variants.append(balance(no_key))
    return variants


class CharacterRepair:
    name = "character"

    def candidates(self, text: str) -> Iterator[Any]:
        t = strip_fence(text)
        start = _json_start(t)
        if start == -1:
            return
        t = t[start:]

        steps: Sequence[Callable[[str], str]] = (
            _escape_controls,
            lambda s: _outside_strings(s, lambda c: _SINGLE_QUOTED.sub(r'\1"\2"', c)),
            lambda s: _outside_strings(s, lambda c: _TRAILING_COMMA.sub(r"\1", c)),
            lambda s: _outside_strings(s, lambda c: _BARE_KEY.sub(r'\1"\2"\3', c)),
        )
        for step in steps:
            t = step(t)
            for cand in _finalize(t):
                # Closing brackets may re-expose trailing commas.
                cand = _outside_strings(cand, lambda c: _TRAILING_COMMA.sub(r"\1", c))
                decoded = _loads(cand)
                if decoded is not None:
                    yield decoded


_SUPPLIER_FIELD = re.compile(
    r'"(?:supplier|descripcion|description|merchant)"\s*:\s*"((?:[^"\\]|\\.)*)"'
)
_AMOUNT_FIELD = re.compile(
    r'"(?:amount|monto|importe)"\s*:\s*"?(\(?-?\$?\s*\(?[\d,]+(?:\.\d+)?\)?)"?'
)
_ACCOUNT_FIELD = re.compile(r'"(?:account|tarjeta|card_number|card)"\s*:\s*"([^"]*)"')
_ROW_FIELD = re.compile(r'"(?:fila|row|source_row)"\s*:\s*"?(\d+)"?')
_IGNORED_FIELD = re.compile(r'"(?:ignored|ignore|ignorar)"\s*:\s*true')
_DATE_TOKEN = re.compile(r"\b(?:0[1-9]|1[0-2])/(?:[0-2][0-9]|3[0-1])/20\d{2}\b")
_MASKED_CARD = re.compile(r"X{4}-X{4}-X{4}-(\d{4})", re.IGNORECASE)
_REP_WITH_TOTALS = re.compile(r'"((?:[^"\\]|\\.)+)"\s*:\s*\{\s*"total_extracto"')
_REP_NAME = re.compile(r'"name"\s*:\s*"((?:[^"\\]|\\.)+)"')


class RegexSalvage:
    """Rebuild records from field patterns when the JSON structure is beyond repair."""

    name = "salvage"

    def __init__(self, directory: CardDirectory = DEFAULT_DIRECTORY) -> None:
        self._directory = directory

    def candidates(self, text: str) -> Iterator[Any]:
        suppliers = list(_SUPPLIER_FIELD.finditer(text))
        if not suppliers:
            return

        reps = sorted(
            [(m.start(), m.group(1)) for m in _REP_WITH_TOTALS.finditer(text)]
            + [(m.start(), m.group(1)) for m in _REP_NAME.finditer(text)]
        )

        items: list[dict[str, Any]] = []
        prev_end = 0
        for n, m in enumerate(suppliers):
            brace = text.rfind("{", prev_end, m.start())
            w_start = brace if brace != -1 else prev_end
            nxt = suppliers[n + 1].start() if n + 1 < len(suppliers) else len(text)
            next_brace = text.rfind("{", m.end(), nxt)
            w_end = next_brace if next_brace != -1 else nxt
            window = text[w_start:w_end]
            prev_end = m.end()

            rep = None
            for pos, name in reps:
                if pos < w_start:
                    rep = name
                else:
                    break

            amount = _AMOUNT_FIELD.search(window)
            dates = _DATE_TOKEN.findall(window)
            account = None
            acct_field = _ACCOUNT_FIELD.search(window)
            if acct_field:
                account = extract_last4(acct_field.group(1))
            if account is None:
                card = _MASKED_CARD.search(window)
                account = card.group(1) if card else None
            if account is None and rep:
                account = self._directory.card_for(rep)
            row = _ROW_FIELD.search(window)

            item: dict[str, Any] = {
                "supplier": m.group(1),
                "amount": amount.group(1) if amount else None,
                "posting_date": dates[0] if dates else "",
                "transaction_date": dates[1] if len(dates) > 1 else "",
                "account": account or "",
            }
            if rep:
                item["representative"] = rep
            if row:
                item["row"] = int(row.group(1))
            if _IGNORED_FIELD.search(window):
                item["ignored"] = True
            items.append(item)

        yield {"transactions": items}


# ---------------------------------------------------------------------------
# Repairer
# ---------------------------------------------------------------------------


class ResponseRepairer:
    """Turn raw model text into an :class:`ExtractionResult`, or ``None``."""

    def __init__(
        self,
        directory: CardDirectory = DEFAULT_DIRECTORY,
        strategies: Sequence[ParseStrategy] | None = None,
    ) -> None:
        self._directory = directory
        self._strategies: tuple[ParseStrategy, ...] = tuple(
            strategies
            if strategies is not None
            else (DirectParse(), BraceRepair(), CharacterRepair(), RegexSalvage(directory))
        )

    def parse(self, raw_text: str | None) -> ExtractionResult | None:
        if not isinstance(raw_text, str) or not raw_text.strip():
            return None
        for strategy in self._strategies:
            try:
                result = self._first_usable(strategy, raw_text)
            except Exception as e:  # noqa: BLE001 - parse() must not raise
                _logger.warning(
                    "repair:strategy_error strategy=%s error=%s", strategy.name, e.__class__.__name__
                )
                continue
            if result is None:
                continue
            _logger.info(
                "repair:parsed strategy=%s groups=%d records=%d",
                strategy.name,
                len(result.groups),
                result.transaction_count,
            )
            if strategy.name == RegexSalvage.name:
                msg = (
                    f"{result.transaction_count} records recovered by pattern salvage from a "
                    "malformed response; verify dates and amounts"
                )
                _logger.warning("repair:salvaged records=%d", result.transaction_count)
                result.diagnostics.append(msg)
            return result
        _logger.warning("repair:unusable chars=%d", len(raw_text))
        return None

    def _first_usable(self, strategy: ParseStrategy, text: str) -> ExtractionResult | None:
        for decoded in strategy.candidates(text):
            shape = classify(decoded)
            if shape is not None:
                return to_result(shape, self._directory)
        return None


__all__ = [
    "BraceRepair",
    "CharacterRepair",
    "DirectParse",
    "ParseStrategy",
    "RegexSalvage",
    "ResponseRepairer",
    "balance",
    "strip_fence",
]
