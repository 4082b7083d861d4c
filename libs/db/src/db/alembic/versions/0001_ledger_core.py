# ruff: noqa: I001
"""Ledger core tables and the zeroed singleton report row.

Revision ID: 0001_ledger_core
Revises: None
Create Date: 2026-10-19
"""

from __future__ import annotations  # ruff: noqa: I001

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op


# revision identifiers, used by Alembic.
revision: str = "0001_ledger_core"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # ledger_transactions (append-only)
    op.create_table(
        "ledger_transactions",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("batch_id", sa.String(36), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("direction", sa.String(7), nullable=False),
        # Exact decimal as plain text; see db.models.ledger.DecimalText.
        sa.Column("amount", sa.Text(), nullable=False),
        sa.Column("memo", sa.String(100), nullable=False, server_default=sa.text("''")),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.CheckConstraint(
            "direction in ('income','expense')",
            name="ck_ledger_tx_direction",
        ),
    )
    op.create_index(
        "ix_ledger_transactions_batch_id", "ledger_transactions", ["batch_id"], unique=False
    )

    # ledger_report (singleton)
    op.create_table(
        "ledger_report",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=False),
        sa.Column("gross_revenue", sa.Text(), nullable=False),
        sa.Column("expenses", sa.Text(), nullable=False),
        sa.Column("net_revenue", sa.Text(), nullable=False),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.CheckConstraint("id = 0", name="ck_ledger_report_singleton"),
    )

    # The report row exists from initialization onward; commits only update it.
    op.bulk_insert(
        sa.table(
            "ledger_report",
            sa.column("id", sa.Integer()),
            sa.column("gross_revenue", sa.Text()),
            sa.column("expenses", sa.Text()),
            sa.column("net_revenue", sa.Text()),
        ),
        [{"id": 0, "gross_revenue": "0", "expenses": "0", "net_revenue": "0"}],
    )


def downgrade() -> None:
    op.drop_table("ledger_report")
    op.drop_index("ix_ledger_transactions_batch_id", table_name="ledger_transactions")
    op.drop_table("ledger_transactions")
