"""Explicit configuration for the extraction pipeline.

The orchestrator never reads credentials or feature flags from module-level
globals. Callers construct an :class:`ExtractionConfig` (directly or through
:meth:`ExtractionConfig.from_env`) and pass it in.
"""

from __future__ import annotations

import os
from collections.abc import Mapping

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, ValidationError, field_validator, model_validator

from .errors import ConfigError

_TRUTHY = {"1", "true", "yes", "on"}


class ExtractionConfig(BaseModel):
    """Settings for one extraction run.

    ``base_url`` selects any OpenAI-compatible endpoint (``None`` keeps the
    SDK default). ``use_mock`` disables all endpoint traffic: the LLM path
    then yields an empty result and logs why.
    """

    model_config = ConfigDict(frozen=True, extra="forbid", str_strip_whitespace=True)

    api_key: str | None = None
    base_url: str | None = None
    model: str = "gpt-4o"
    use_mock: bool = False

    temperature: float = 0.3
    max_tokens: int = 8000
    chunk_max_tokens: int = 4000
    request_timeout_sec: float = 120.0

    split_threshold_chars: int = 20_000
    chunk_size_chars: int = 5_000
    split_anchor: str = "Landon Hamel"

    max_attempts: int = 3
    backoff_base_sec: float = 1.0

    default_currency: str = "USD"

    @field_validator("default_currency")
    @classmethod
    def _currency_code(cls, v: str) -> str:
        code = v.strip().upper()
        if len(code) != 3 or not code.isalpha():
            raise ValueError("default_currency must be a 3-letter code")
        return code

    @field_validator("max_attempts", "max_tokens", "chunk_max_tokens", "chunk_size_chars")
    @classmethod
    def _positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("must be a positive integer")
        return v

    @field_validator("api_key", "base_url")
    @classmethod
    def _blank_to_none(cls, v: str | None) -> str | None:
        return v or None

    @model_validator(mode="after")
    def _key_required_unless_mock(self) -> ExtractionConfig:
        if not self.use_mock and not self.api_key:
            raise ValueError("api_key is required unless use_mock is enabled")
        return self

    @classmethod
    def from_env(
        cls,
        env: Mapping[str, str] | None = None,
        *,
        load_dotenv_file: bool = True,
        **overrides: object,
    ) -> ExtractionConfig:
        """Build a config from environment variables.

        Reads ``STATEMENT_LLM_API_KEY`` (falling back to ``OPENAI_API_KEY``),
        ``STATEMENT_LLM_BASE_URL``, ``STATEMENT_LLM_MODEL``,
        ``STATEMENT_LLM_USE_MOCK`` and ``STATEMENT_DEFAULT_CURRENCY``. Keyword
        ``overrides`` win over the environment. Raises :class:`ConfigError`
        on missing credentials or invalid values.
        """

        if env is None:
            if load_dotenv_file:
                load_dotenv()
            env = os.environ

        values: dict[str, object] = {}
        api_key = env.get("STATEMENT_LLM_API_KEY") or env.get("OPENAI_API_KEY")
        if api_key:
            values["api_key"] = api_key
        if env.get("STATEMENT_LLM_BASE_URL"):
            values["base_url"] = env["STATEMENT_LLM_BASE_URL"]
        if env.get("STATEMENT_LLM_MODEL"):
            values["model"] = env["STATEMENT_LLM_MODEL"]
        if env.get("STATEMENT_LLM_USE_MOCK"):
            values["use_mock"] = env["STATEMENT_LLM_USE_MOCK"].strip().lower() in _TRUTHY
        if env.get("STATEMENT_DEFAULT_CURRENCY"):
            values["default_currency"] = env["STATEMENT_DEFAULT_CURRENCY"]
        values.update(overrides)

        try:
            return cls(**values)
        except ValidationError as e:
            raise ConfigError(f"invalid extraction configuration: {e}") from e


__all__ = ["ExtractionConfig"]
