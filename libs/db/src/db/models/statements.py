from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import (
    CHAR,
    JSON,
    BigInteger,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# BIGINT identity on Postgres; plain INTEGER on SQLite so rowid autoincrement works.
_PK = BigInteger().with_variant(Integer, "sqlite")


class Base(DeclarativeBase):
    pass


# ---------------------------
# Core: bank_statements
# ---------------------------


class BankStatement(Base):
    __tablename__ = "bank_statements"

    id: Mapped[int] = mapped_column(_PK, primary_key=True, autoincrement=True)
    file_name: Mapped[str] = mapped_column(Text, nullable=False)
    # Spanish month label derived from the file name, e.g. "Abril 2025".
    period: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(
        String, nullable=False, server_default=text("'processing'")
    )
    transaction_count: Mapped[int] = mapped_column(
        Integer, nullable=False, server_default=text("0")
    )
    accounts: Mapped[list[Any]] = mapped_column(JSON, nullable=False, default=list)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=text("now()")
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=text("now()")
    )

    __table_args__ = (
        CheckConstraint(
            "status in ('processing','processed','error')",
            name="ck_bank_statements_status",
        ),
    )


# ---------------------------
# Core: statement_transactions
# ---------------------------


class StatementTransaction(Base):
    __tablename__ = "statement_transactions"

    # Extraction-time id (uuid4 hex) so callers can address rows before insert.
    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    statement_id: Mapped[int] = mapped_column(
        _PK, ForeignKey("bank_statements.id", ondelete="CASCADE"), nullable=False
    )
    # Statement's own date token; not parsed, may be empty.
    date: Mapped[str] = mapped_column(Text, nullable=False, server_default=text("''"))
    account: Mapped[str] = mapped_column(Text, nullable=False, server_default=text("''"))
    merchant: Mapped[str] = mapped_column(Text, nullable=False, server_default=text("''"))
    amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    currency_code: Mapped[str] = mapped_column(
        CHAR(3), nullable=False, server_default=text("'USD'")
    )
    status: Mapped[str] = mapped_column(String, nullable=False, server_default=text("'pending'"))
    assigned_to: Mapped[str] = mapped_column(Text, nullable=False)
    commercial: Mapped[str] = mapped_column(Text, nullable=False)
    card_number: Mapped[str | None] = mapped_column(Text, nullable=True)
    category: Mapped[str | None] = mapped_column(Text, nullable=True)
    subcategory: Mapped[str | None] = mapped_column(Text, nullable=True)
    project: Mapped[str | None] = mapped_column(Text, nullable=True)
    comments: Mapped[str | None] = mapped_column(Text, nullable=True)
    source_row: Mapped[int | None] = mapped_column(Integer, nullable=True)
    source_kind: Mapped[str] = mapped_column(
        String, nullable=False, server_default=text("'tabular'")
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=text("now()")
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=text("now()")
    )

    __table_args__ = (
        CheckConstraint(
            "status in ('pending','classified','approved')",
            name="ck_statement_tx_status",
        ),
        CheckConstraint(
            "source_kind in ('tabular','llm')",
            name="ck_statement_tx_source_kind",
        ),
        Index("ix_statement_tx_statement_id", "statement_id"),
        Index("ix_statement_tx_commercial", "commercial"),
    )


# ---------------------------
# Rep access: tokens and notifications
# ---------------------------


class CommercialAccessToken(Base):
    """Temporary link a representative uses to classify their own transactions."""

    __tablename__ = "commercial_access_tokens"

    id: Mapped[int] = mapped_column(_PK, primary_key=True, autoincrement=True)
    statement_id: Mapped[int] = mapped_column(
        _PK, ForeignKey("bank_statements.id", ondelete="CASCADE"), nullable=False
    )
    commercial: Mapped[str] = mapped_column(Text, nullable=False)
    token: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    used_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=text("now()")
    )


class CommercialNotification(Base):
    __tablename__ = "commercial_notifications"

    id: Mapped[int] = mapped_column(_PK, primary_key=True, autoincrement=True)
    statement_id: Mapped[int] = mapped_column(
        _PK, ForeignKey("bank_statements.id", ondelete="CASCADE"), nullable=False
    )
    commercial: Mapped[str] = mapped_column(Text, nullable=False)
    email: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String, nullable=False, server_default=text("'pending'"))
    sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=text("now()")
    )

    __table_args__ = (
        CheckConstraint(
            "status in ('pending','sent','failed')",
            name="ck_commercial_notifications_status",
        ),
    )


__all__ = [
    "Base",
    "BankStatement",
    "CommercialAccessToken",
    "CommercialNotification",
    "StatementTransaction",
]
