"""Shared SQLAlchemy models registry for the ledger database.

Currently includes the ledger domain models used by ``ledger``.
"""

from .ledger import REPORT_ROW_ID, Base, DecimalText, LedgerReport, LedgerTransaction

__all__ = [
    "REPORT_ROW_ID",
    "Base",
    "DecimalText",
    "LedgerReport",
    "LedgerTransaction",
]
