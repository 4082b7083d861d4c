from __future__ import annotations

import datetime as dt
from decimal import Decimal, InvalidOperation
from typing import Any

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    Integer,
    String,
    Text,
    text,
)
from sqlalchemy.engine import Dialect
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator

# Fixed primary key of the singleton aggregate row.
REPORT_ROW_ID = 0


class Base(DeclarativeBase):
    pass


class DecimalText(TypeDecorator[Decimal]):
    """Exact decimal stored as plain-notation text.

    ``Numeric`` goes through binary floats on SQLite and rounds to a fixed
    scale on PostgreSQL; neither is acceptable for amounts whose precision
    must survive ingestion unchanged. Values are written with ``format(v, "f")``
    so small magnitudes never turn into ``1E-7`` style text, and read back with
    ``Decimal(text)``.
    """

    impl = Text
    cache_ok = True

    def process_bind_param(self, value: Any, dialect: Dialect) -> str | None:
        if value is None:
            return None
        if not isinstance(value, Decimal):
            raise TypeError(f"DecimalText expects Decimal, got {type(value).__name__}")
        if not value.is_finite():
            raise ValueError(f"DecimalText cannot store non-finite value {value!r}")
        return format(value, "f")

    def process_result_value(self, value: Any, dialect: Dialect) -> Decimal | None:
        if value is None:
            return None
        try:
            result = Decimal(str(value))
        except InvalidOperation:
            raise ValueError(f"stored amount is not a decimal: {value!r}") from None
        if not result.is_finite():
            raise ValueError(f"stored amount is not finite: {value!r}")
        return result


# ---------------------------
# Core: ledger_transactions
# ---------------------------


class LedgerTransaction(Base):
    __tablename__ = "ledger_transactions"

    # UUID text; generated by the parser, never by the database.
    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    batch_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    direction: Mapped[str] = mapped_column(String(7), nullable=False)
    amount: Mapped[Decimal] = mapped_column(DecimalText, nullable=False)
    memo: Mapped[str] = mapped_column(String(100), nullable=False, server_default=text("''"))
    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=text("CURRENT_TIMESTAMP")
    )

    __table_args__ = (
        CheckConstraint(
            "direction in ('income','expense')",
            name="ck_ledger_tx_direction",
        ),
    )


# ---------------------------
# Singleton: ledger_report
# ---------------------------


class LedgerReport(Base):
    __tablename__ = "ledger_report"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    gross_revenue: Mapped[Decimal] = mapped_column(DecimalText, nullable=False)
    expenses: Mapped[Decimal] = mapped_column(DecimalText, nullable=False)
    net_revenue: Mapped[Decimal] = mapped_column(DecimalText, nullable=False)
    updated_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=text("CURRENT_TIMESTAMP")
    )

    __table_args__ = (
        CheckConstraint(f"id = {REPORT_ROW_ID}", name="ck_ledger_report_singleton"),
    )


__all__ = [
    "REPORT_ROW_ID",
    "Base",
    "DecimalText",
    "LedgerReport",
    "LedgerTransaction",
]
