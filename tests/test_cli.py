# ruff: noqa
from __future__ import annotations

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from statement_extraction.cli import app

from tests.helpers.db import bootstrap_sqlite_db
from tests.helpers.statements import two_section_rows, write_rows

runner = CliRunner()


@pytest.fixture()
def statement_file(tmp_path: Path, monkeypatch) -> Path:
    # Keep the callback's .env lookup inside the temp dir.
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("STATEMENT_LLM_USE_MOCK", "1")
    return write_rows(tmp_path / "PNC CC 042025.xlsx", two_section_rows())


def test_extract_prints_table(statement_file):
    result = runner.invoke(app, ["extract", str(statement_file)])

    assert result.exit_code == 0, result.output
    assert "PNC CC 042025.xlsx: 5 transactions via tabular (Abril 2025)" in result.output
    assert "04/14/2025\t5456\tDELTA AIR LINES\t500.00\tAllia Klipp" in result.output


def test_extract_json(statement_file):
    result = runner.invoke(app, ["extract", str(statement_file), "--json"])

    assert result.exit_code == 0, result.output
    doc = json.loads(result.stdout)
    assert (doc["file_name"], doc["period"], doc["source_kind"]) == (
        "PNC CC 042025.xlsx",
        "Abril 2025",
        "tabular",
    )
    assert doc["transaction_count"] == 5
    first = doc["transactions"][0]
    assert (first["merchant"], first["amount"], first["date"]) == ("DELTA AIR LINES", "500.00", "04/14/2025")
    assert "statement_id" not in doc


def test_missing_file_reports_error(statement_file):
    result = runner.invoke(app, ["extract", str(statement_file.with_name("absent.pdf"))])

    assert result.exit_code == 1
    assert "could not process this statement: file not found" in result.output


def test_missing_credentials_report_error(statement_file, monkeypatch):
    monkeypatch.delenv("STATEMENT_LLM_USE_MOCK")

    result = runner.invoke(app, ["extract", str(statement_file)])

    assert result.exit_code == 1
    assert "could not process this statement: invalid extraction configuration" in result.output


def test_persist_show_and_delete(statement_file, tmp_path: Path, monkeypatch):
    url = bootstrap_sqlite_db(tmp_path / "cli.sqlite")
    monkeypatch.setenv("DATABASE_URL", url)

    saved = runner.invoke(app, ["extract", str(statement_file), "--persist", "--json"])
    assert saved.exit_code == 0, saved.output
    sid = json.loads(saved.stdout)["statement_id"]

    shown = runner.invoke(app, ["show-statement", str(sid)])
    assert shown.exit_code == 0, shown.output
    lines = shown.stdout.strip().splitlines()
    assert lines[0] == f"{sid}\tPNC CC 042025.xlsx\tAbril 2025\tprocessed\t5 transactions"
    assert len(lines) == 6
    assert "\tDELTA AIR LINES\t500.00\tAllia Klipp\tpending" in lines[1]

    deleted = runner.invoke(app, ["delete-statement", str(sid)])
    assert deleted.exit_code == 0, deleted.output
    assert f"deleted statement {sid}" in deleted.output

    gone = runner.invoke(app, ["show-statement", str(sid)])
    assert gone.exit_code == 1
    assert f"statement {sid} not found" in gone.output
