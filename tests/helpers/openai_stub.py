"""Test helpers to stub the OpenAI chat-completions client used by llm_extract.py.

``make_openai_stub`` returns a class to monkeypatch over
``statement_extraction.llm_extract.OpenAI``. Each ``chat.completions.create``
call consumes the next scripted reply:

- a ``str`` is returned as ``choices[0].message.content``;
- an exception instance is raised;
- a callable receives the statement text embedded in the user message and
  returns the content string.

When the script runs out, the last reply is repeated.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from types import SimpleNamespace
from typing import Any

from statement_extraction.prompting import extract_statement_text

type Reply = str | BaseException | Callable[[str], str]


class StatusError(Exception):
    """Stand-in for an SDK ``APIStatusError`` carrying ``status_code``."""

    def __init__(self, status_code: int) -> None:
        super().__init__(f"HTTP {status_code}")
        self.status_code = status_code


def completion(content: str | None, finish_reason: str = "stop") -> SimpleNamespace:
    message = SimpleNamespace(role="assistant", content=content)
    return SimpleNamespace(choices=[SimpleNamespace(message=message, finish_reason=finish_reason)])


def make_openai_stub(
    replies: Sequence[Reply],
    calls_out: list[dict[str, Any]],
    init_out: list[dict[str, Any]] | None = None,
):
    script = list(replies)

    class _Completions:
        def create(self, **kwargs: Any) -> SimpleNamespace:
            calls_out.append(kwargs)
            reply = script.pop(0) if len(script) > 1 else script[0]
            if isinstance(reply, BaseException):
                raise reply
            if callable(reply):
                user = kwargs["messages"][-1]["content"]
                reply = reply(extract_statement_text(user))
            return completion(reply)

    class _Client:
        def __init__(self, *a: Any, **kw: Any) -> None:
            if init_out is not None:
                init_out.append(kw)
            self.chat = SimpleNamespace(completions=_Completions())

    return _Client


def statement_texts(calls: Sequence[dict[str, Any]]) -> list[str]:
    """Statement text sent in each recorded call."""

    return [extract_statement_text(c["messages"][-1]["content"]) for c in calls]
