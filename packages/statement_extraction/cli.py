# ruff: noqa: I001
"""CLI for the ``statement_extraction`` package.

Typer-based console interface over :func:`statement_extraction.extract_statement`
and the persistence helpers. Environment variables (LLM credentials,
``DATABASE_URL``) are loaded from a local ``.env`` using ``python-dotenv``
before any command runs.

Failures the user can act on (unreadable file, bad configuration, database
errors) are reported as ``could not process this statement: ...`` with exit
code 1 instead of a traceback.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Annotated, Any

import typer
from dotenv import load_dotenv
from sqlalchemy.exc import SQLAlchemyError

from .config import ExtractionConfig
from .errors import ConfigError, ExtractionError
from .logging_setup import configure_logging
from .pipeline import StatementOutcome, extract_statement


def _fail(exc: BaseException) -> typer.Exit:
    typer.echo(f"could not process this statement: {exc}", err=True)
    return typer.Exit(1)


def _outcome_document(outcome: StatementOutcome) -> dict[str, Any]:
    return {
        "file_name": outcome.file_name,
        "period": outcome.period,
        "source_kind": outcome.source_kind,
        "transaction_count": len(outcome.transactions),
        "transactions": [t.as_record() for t in outcome.transactions],
        "diagnostics": list(outcome.diagnostics),
        "flags": [f.describe() for f in outcome.flags],
    }


def _print_table(outcome: StatementOutcome) -> None:
    header = f"{outcome.file_name}: {len(outcome.transactions)} transactions via {outcome.source_kind}"
    if outcome.period:
        header += f" ({outcome.period})"
    typer.echo(header)
    for t in outcome.transactions:
        typer.echo(f"{t.date}\t{t.account}\t{t.merchant}\t{t.amount:.2f}\t{t.assigned_to}")
    for f in outcome.flags:
        typer.echo(f"warning: {f.describe()}", err=True)
    for d in outcome.diagnostics:
        typer.echo(f"note: {d}", err=True)


app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help=(
        "Extract card-statement transactions from PDF or Excel files. "
        "Loads LLM credentials and DATABASE_URL from a local .env before running."
    ),
)

DATABASE_URL_OPTION = typer.Option(None, help="Override DATABASE_URL (falls back to env var).")
LOG_LEVEL_OPTION = typer.Option(
    None, help="Log level (DEBUG, INFO, ...); defaults to STATEMENT_EXTRACTION_LOG_LEVEL or INFO."
)


@app.callback()
def main() -> None:
    """Load ``.env`` from the working directory without overriding the environment."""

    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)


@app.command("extract")
def extract_cmd(
    file: Annotated[Path, typer.Argument(help="Statement file (.pdf, .xlsx, .xls, .csv).")],
    *,
    as_json: bool = typer.Option(False, "--json", help="Print the result as JSON."),
    persist: bool = typer.Option(False, help="Store the statement and its transactions."),
    database_url: str | None = DATABASE_URL_OPTION,
    log_level: str | None = LOG_LEVEL_OPTION,
) -> None:
    """Extract transactions from one statement file."""

    configure_logging(log_level)

    try:
        config = ExtractionConfig.from_env(load_dotenv_file=False)
        outcome = extract_statement(file, config)
    except (ExtractionError, ConfigError) as e:
        raise _fail(e) from e

    statement_id: int | None = None
    if persist:
        try:
            from db.client import session_scope
            from .persistence import save_statement

            with session_scope(database_url=database_url) as session:
                statement_id = save_statement(session, outcome.meta(), outcome.transactions)
        except (SQLAlchemyError, RuntimeError) as e:
            raise _fail(e) from e

    if as_json:
        doc = _outcome_document(outcome)
        if statement_id is not None:
            doc["statement_id"] = statement_id
        typer.echo(json.dumps(doc, ensure_ascii=False, indent=2))
        return

    _print_table(outcome)
    if statement_id is not None:
        typer.echo(f"statement_id={statement_id}")


@app.command("show-statement")
def show_statement_cmd(
    statement_id: Annotated[int, typer.Argument(help="Stored statement id.")],
    *,
    database_url: str | None = DATABASE_URL_OPTION,
) -> None:
    """Print a stored statement and its transactions."""

    from db.client import session_scope
    from .persistence import get_statement

    try:
        with session_scope(database_url=database_url) as session:
            stored = get_statement(session, statement_id)
            if stored is None:
                raise LookupError(f"statement {statement_id} not found")
            st = stored.statement
            typer.echo(
                f"{st.id}\t{st.file_name}\t{st.period or '-'}\t{st.status}\t"
                f"{st.transaction_count} transactions"
            )
            for t in stored.transactions:
                typer.echo(
                    f"{t.id}\t{t.date}\t{t.account}\t{t.merchant}\t{t.amount:.2f}\t"
                    f"{t.assigned_to}\t{t.status}"
                )
    except (SQLAlchemyError, RuntimeError, LookupError) as e:
        raise _fail(e) from e


@app.command("delete-statement")
def delete_statement_cmd(
    statement_id: Annotated[int, typer.Argument(help="Stored statement id.")],
    *,
    database_url: str | None = DATABASE_URL_OPTION,
) -> None:
    """Delete a statement with its transactions, access tokens and notifications."""

    from db.client import session_scope
    from .persistence import delete_statement

    try:
        with session_scope(database_url=database_url) as session:
            if not delete_statement(session, statement_id):
                raise LookupError(f"statement {statement_id} not found")
    except (SQLAlchemyError, RuntimeError, LookupError) as e:
        raise _fail(e) from e
    typer.echo(f"deleted statement {statement_id}")


if __name__ == "__main__":  # pragma: no cover
    app()
