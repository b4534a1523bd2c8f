# ruff: noqa: I001
"""Statement extraction core tables.

Revision ID: 0001_statements_core
Revises: None
Create Date: 2025-05-12
"""

from __future__ import annotations  # ruff: noqa: I001

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op


# revision identifiers, used by Alembic.
revision: str = "0001_statements_core"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
    ]


def _statement_fk() -> sa.Column:
    return sa.Column(
        "statement_id",
        sa.BigInteger(),
        sa.ForeignKey("bank_statements.id", ondelete="CASCADE"),
        nullable=False,
    )


def upgrade() -> None:
    # bank_statements
    op.create_table(
        "bank_statements",
        sa.Column("id", sa.BigInteger(), sa.Identity(always=False), primary_key=True),
        sa.Column("file_name", sa.Text(), nullable=False),
        sa.Column("period", sa.Text(), nullable=True),
        sa.Column("status", sa.String(), nullable=False, server_default=sa.text("'processing'")),
        sa.Column("transaction_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("accounts", sa.JSON(), nullable=False, server_default=sa.text("'[]'")),
        *_timestamps(),
        sa.CheckConstraint(
            "status in ('processing','processed','error')", name="ck_bank_statements_status"
        ),
    )

    # statement_transactions
    op.create_table(
        "statement_transactions",
        sa.Column("id", sa.String(length=32), primary_key=True),
        _statement_fk(),
        sa.Column("date", sa.Text(), nullable=False, server_default=sa.text("''")),
        sa.Column("account", sa.Text(), nullable=False, server_default=sa.text("''")),
        sa.Column("merchant", sa.Text(), nullable=False, server_default=sa.text("''")),
        sa.Column("amount", sa.Numeric(18, 2), nullable=False),
        sa.Column("currency_code", sa.CHAR(3), nullable=False, server_default=sa.text("'USD'")),
        sa.Column("status", sa.String(), nullable=False, server_default=sa.text("'pending'")),
        sa.Column("assigned_to", sa.Text(), nullable=False),
        sa.Column("commercial", sa.Text(), nullable=False),
        sa.Column("card_number", sa.Text(), nullable=True),
        sa.Column("category", sa.Text(), nullable=True),
        sa.Column("subcategory", sa.Text(), nullable=True),
        sa.Column("project", sa.Text(), nullable=True),
        sa.Column("comments", sa.Text(), nullable=True),
        sa.Column("source_row", sa.Integer(), nullable=True),
        sa.Column("source_kind", sa.String(), nullable=False, server_default=sa.text("'tabular'")),
        *_timestamps(),
        sa.CheckConstraint(
            "status in ('pending','classified','approved')", name="ck_statement_tx_status"
        ),
        sa.CheckConstraint(
            "source_kind in ('tabular','llm')", name="ck_statement_tx_source_kind"
        ),
    )
    op.create_index("ix_statement_tx_statement_id", "statement_transactions", ["statement_id"])
    op.create_index("ix_statement_tx_commercial", "statement_transactions", ["commercial"])

    # commercial_access_tokens
    op.create_table(
        "commercial_access_tokens",
        sa.Column("id", sa.BigInteger(), sa.Identity(always=False), primary_key=True),
        _statement_fk(),
        sa.Column("commercial", sa.Text(), nullable=False),
        sa.Column("token", sa.String(length=64), nullable=False, unique=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("used_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
    )

    # commercial_notifications
    op.create_table(
        "commercial_notifications",
        sa.Column("id", sa.BigInteger(), sa.Identity(always=False), primary_key=True),
        _statement_fk(),
        sa.Column("commercial", sa.Text(), nullable=False),
        sa.Column("email", sa.Text(), nullable=True),
        sa.Column("status", sa.String(), nullable=False, server_default=sa.text("'pending'")),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.CheckConstraint(
            "status in ('pending','sent','failed')", name="ck_commercial_notifications_status"
        ),
    )


def downgrade() -> None:
    op.drop_table("commercial_notifications")
    op.drop_table("commercial_access_tokens")
    op.drop_index("ix_statement_tx_commercial", table_name="statement_transactions")
    op.drop_index("ix_statement_tx_statement_id", table_name="statement_transactions")
    op.drop_table("statement_transactions")
    op.drop_table("bank_statements")
