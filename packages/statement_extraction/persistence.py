# ruff: noqa: I001
"""Persistence integration for statement_extraction.

Functions here write statements and their transactions to the shared
database owned by ``libs/db``. They rely on SQLAlchemy ORM models defined in
``db.models.statements`` and a session provided by ``db.client``; the caller
owns the transaction boundary (``session_scope``).

Scope:
- Insert a statement header and its transactions (batched).
- Read a statement with its transactions.
- Delete a statement with everything hanging off it.
- Apply classification patches to single transactions.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from sqlalchemy import delete, func, select, update
from sqlalchemy.orm import Session

from db.models.statements import (
    BankStatement,
    CommercialAccessToken,
    CommercialNotification,
    StatementTransaction,
)
from .logging_setup import get_logger
from .models import StatementMeta, StatementStatus, Transaction

_logger = get_logger("statement_extraction.persistence")

INSERT_BATCH_SIZE = 50

# Fields the classification flow may change after extraction.
UPDATABLE_FIELDS: frozenset[str] = frozenset(
    {"category", "subcategory", "project", "comments", "status", "assigned_to"}
)
_TRANSACTION_STATUSES = ("pending", "classified", "approved")


@dataclass(frozen=True, slots=True)
class StoredStatement:
    statement: BankStatement
    transactions: list[StatementTransaction]


def _row_values(statement_id: int, tx: Transaction) -> dict[str, Any]:
    return {
        "id": tx.id,
        "statement_id": statement_id,
        "date": tx.date,
        "account": tx.account,
        "merchant": tx.merchant,
        "amount": tx.amount,
        "currency_code": tx.currency,
        "status": tx.status,
        "assigned_to": tx.assigned_to,
        "commercial": tx.commercial,
        "card_number": tx.card_number,
        "category": tx.category,
        "subcategory": tx.subcategory,
        "project": tx.project,
        "comments": tx.comments,
        "source_row": tx.source_row,
        "source_kind": tx.source_kind,
    }


def insert_statement(session: Session, meta: StatementMeta) -> int:
    """Insert a ``bank_statements`` row and return its id."""

    row = BankStatement(
        file_name=meta.file_name,
        period=meta.period,
        status=meta.status,
        transaction_count=meta.transaction_count,
        accounts=list(meta.accounts),
    )
    session.add(row)
    session.flush()
    _logger.info("persistence:statement_inserted id=%d file=%s", row.id, meta.file_name)
    return row.id


def insert_transactions(
    session: Session,
    statement_id: int,
    transactions: Iterable[Transaction],
    *,
    batch_size: int = INSERT_BATCH_SIZE,
) -> int:
    """Insert ``transactions`` under ``statement_id`` in batches; return the count."""

    total = 0
    batch: list[dict[str, Any]] = []
    for tx in transactions:
        batch.append(_row_values(statement_id, tx))
        if len(batch) >= batch_size:
            total += _flush_batch(session, batch)
            batch = []
    if batch:
        total += _flush_batch(session, batch)
    return total


def _flush_batch(session: Session, batch: Sequence[dict[str, Any]]) -> int:
    session.execute(StatementTransaction.__table__.insert(), list(batch))
    _logger.debug("persistence:batch_inserted rows=%d", len(batch))
    return len(batch)


def save_statement(
    session: Session, meta: StatementMeta, transactions: Sequence[Transaction]
) -> int:
    """Insert the statement header plus its transactions; return the statement id."""

    statement_id = insert_statement(session, meta)
    insert_transactions(session, statement_id, transactions)
    return statement_id


def get_statement(session: Session, statement_id: int) -> StoredStatement | None:
    statement = session.get(BankStatement, statement_id)
    if statement is None:
        return None
    txs = session.scalars(
        select(StatementTransaction)
        .where(StatementTransaction.statement_id == statement_id)
        .order_by(StatementTransaction.source_row, StatementTransaction.id)
    ).all()
    return StoredStatement(statement=statement, transactions=list(txs))


def delete_statement(session: Session, statement_id: int) -> bool:
    """Delete a statement and its tokens, notifications and transactions.

    Children are removed explicitly so the cascade does not depend on the
    database enforcing ``ON DELETE CASCADE``. Returns False when no such
    statement exists.
    """

    if session.get(BankStatement, statement_id) is None:
        return False
    for model in (CommercialAccessToken, CommercialNotification, StatementTransaction):
        session.execute(delete(model).where(model.statement_id == statement_id))
    session.execute(delete(BankStatement).where(BankStatement.id == statement_id))
    _logger.info("persistence:statement_deleted id=%d", statement_id)
    return True


def update_transaction(session: Session, transaction_id: str, patch: Mapping[str, Any]) -> None:
    """Apply a classification patch to one transaction.

    Only :data:`UPDATABLE_FIELDS` may be patched. Raises ``ValueError`` for
    other keys or an unknown status, ``LookupError`` when the id is unknown.
    """

    unknown = set(patch) - UPDATABLE_FIELDS
    if unknown:
        raise ValueError(f"fields not updatable: {', '.join(sorted(unknown))}")
    if "status" in patch and patch["status"] not in _TRANSACTION_STATUSES:
        raise ValueError(f"invalid transaction status: {patch['status']!r}")
    if not patch:
        return

    res = session.execute(
        update(StatementTransaction)
        .where(StatementTransaction.id == transaction_id)
        .values(**dict(patch), updated_at=func.now())
        .execution_options(synchronize_session=False)
    )
    if res.rowcount == 0:
        raise LookupError(f"transaction not found: {transaction_id}")


def set_statement_status(session: Session, statement_id: int, status: StatementStatus) -> None:
    res = session.execute(
        update(BankStatement)
        .where(BankStatement.id == statement_id)
        .values(status=status, updated_at=func.now())
        .execution_options(synchronize_session=False)
    )
    if res.rowcount == 0:
        raise LookupError(f"statement not found: {statement_id}")


__all__ = [
    "INSERT_BATCH_SIZE",
    "StoredStatement",
    "UPDATABLE_FIELDS",
    "delete_statement",
    "get_statement",
    "insert_statement",
    "insert_transactions",
    "save_statement",
    "set_statement_status",
    "update_transaction",
]
