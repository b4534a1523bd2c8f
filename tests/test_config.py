from __future__ import annotations

import logging

import pytest
from pydantic import ValidationError

from statement_extraction.config import ExtractionConfig
from statement_extraction.errors import ConfigError
from statement_extraction.logging_setup import resolve_level
from statement_extraction.periods import period_from_filename


def test_from_env_mapping():
    cfg = ExtractionConfig.from_env(
        {
            "STATEMENT_LLM_API_KEY": "sk-one",
            "STATEMENT_LLM_BASE_URL": "http://localhost:8080/v1",
            "STATEMENT_LLM_MODEL": "local-model",
            "STATEMENT_DEFAULT_CURRENCY": "eur",
        }
    )

    assert (cfg.api_key, cfg.base_url, cfg.model) == (
        "sk-one",
        "http://localhost:8080/v1",
        "local-model",
    )
    assert cfg.default_currency == "EUR"
    assert cfg.use_mock is False
    assert (cfg.max_attempts, cfg.split_anchor) == (3, "Landon Hamel")


def test_openai_key_fallback_and_overrides():
    cfg = ExtractionConfig.from_env({"OPENAI_API_KEY": "sk-two"}, max_attempts=5)

    assert cfg.api_key == "sk-two"
    assert cfg.max_attempts == 5


def test_process_environment_is_read(monkeypatch):
    monkeypatch.setenv("STATEMENT_LLM_API_KEY", "sk-env")

    assert ExtractionConfig.from_env(load_dotenv_file=False).api_key == "sk-env"


def test_missing_key_is_a_config_error_unless_mocked():
    with pytest.raises(ConfigError, match="api_key is required"):
        ExtractionConfig.from_env({})

    cfg = ExtractionConfig.from_env({"STATEMENT_LLM_USE_MOCK": "true"})
    assert cfg.use_mock is True
    assert cfg.api_key is None


@pytest.mark.parametrize(
    "overrides",
    [{"default_currency": "dollars"}, {"max_attempts": 0}, {"chunk_size_chars": -1}],
)
def test_invalid_values_are_rejected(overrides):
    with pytest.raises(ConfigError):
        ExtractionConfig.from_env({"STATEMENT_LLM_API_KEY": "sk"}, **overrides)


def test_config_is_frozen():
    cfg = ExtractionConfig(api_key="sk")
    with pytest.raises(ValidationError):
        cfg.model = "other"


@pytest.mark.parametrize(
    ("name", "expected"),
    [
        ("PNC CC 042025.pdf", "Abril 2025"),
        ("statement_122024.xlsx", "Diciembre 2024"),
        ("/uploads/PNC 012026 final.xls", "Enero 2026"),
        ("PNC CC 132025.pdf", None),
        ("PNC CC 20250415.pdf", None),
        ("statement.pdf", None),
    ],
)
def test_period_from_filename(name, expected):
    assert period_from_filename(name) == expected


def test_log_level_resolution(monkeypatch):
    assert resolve_level("debug") == logging.DEBUG
    assert resolve_level(15) == 15
    assert resolve_level(None) == logging.INFO

    monkeypatch.setenv("STATEMENT_EXTRACTION_LOG_LEVEL", "WARNING")
    assert resolve_level(None) == logging.WARNING
    assert resolve_level("bogus") == logging.WARNING
