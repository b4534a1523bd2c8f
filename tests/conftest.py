"""Pytest configuration for test isolation.

Puts the workspace packages on ``sys.path`` and keeps every test hermetic:

- LLM and database environment variables from the developer's shell (or a
  ``.env``) are removed so configuration is always explicit.
- The process-wide SQLAlchemy engine from ``db.client`` is disposed after
  each test so the next test can bind its own SQLite file.
"""

from __future__ import annotations

import sys
from collections.abc import Iterator
from pathlib import Path

import pytest

_ROOT = Path(__file__).resolve().parents[1]
sys.path[:0] = [
    p
    for p in (str(_ROOT / "packages"), str(_ROOT / "libs" / "db" / "src"), str(_ROOT))
    if p not in sys.path
]

from db.client import dispose_engine  # noqa: E402

_ENV_VARS = (
    "STATEMENT_LLM_API_KEY",
    "OPENAI_API_KEY",
    "STATEMENT_LLM_BASE_URL",
    "STATEMENT_LLM_MODEL",
    "STATEMENT_LLM_USE_MOCK",
    "STATEMENT_DEFAULT_CURRENCY",
    "STATEMENT_EXTRACTION_LOG_LEVEL",
    "DATABASE_URL",
)


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    yield
    dispose_engine()
