"""Shared SQLAlchemy models registry for the workspace database.

Currently includes the statement domain models used by ``statement_extraction``.
"""

from .statements import (
    BankStatement,
    Base,
    CommercialAccessToken,
    CommercialNotification,
    StatementTransaction,
)

__all__ = [
    "Base",
    "BankStatement",
    "CommercialAccessToken",
    "CommercialNotification",
    "StatementTransaction",
]
