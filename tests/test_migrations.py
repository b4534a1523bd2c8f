from __future__ import annotations

from pathlib import Path

import pytest
from alembic import command
from alembic.config import Config
from sqlalchemy import create_engine, inspect

_ALEMBIC_DIR = Path(__file__).resolve().parents[1] / "libs" / "db" / "alembic"


def test_upgrade_and_downgrade_statement_tables(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.chdir(tmp_path)
    url = f"sqlite+pysqlite:///{tmp_path / 'migrated.sqlite'}"
    monkeypatch.setenv("DATABASE_URL", url)
    cfg = Config()
    cfg.set_main_option("script_location", str(_ALEMBIC_DIR))

    command.upgrade(cfg, "head")

    engine = create_engine(url)
    try:
        insp = inspect(engine)
        assert {
            "bank_statements",
            "statement_transactions",
            "commercial_access_tokens",
            "commercial_notifications",
        } <= set(insp.get_table_names())
        indexes = {ix["name"] for ix in insp.get_indexes("statement_transactions")}
        assert {"ix_statement_tx_statement_id", "ix_statement_tx_commercial"} <= indexes

        command.downgrade(cfg, "base")

        assert set(inspect(engine).get_table_names()) <= {"alembic_version"}
    finally:
        engine.dispose()
