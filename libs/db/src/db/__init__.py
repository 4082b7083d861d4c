"""db: shared database library (SQLAlchemy/Alembic).

Public exports
--------------
- ``Base`` and ``metadata`` for Alembic autogenerate/targeting
- ORM models in ``db.models.ledger`` (re-exported for convenience)
- Engine helpers in ``db.client``
- Programmatic migrations in ``db.migrate``
"""

from __future__ import annotations

from .models.ledger import REPORT_ROW_ID, Base, LedgerReport, LedgerTransaction

# Re-export SQLAlchemy metadata for Alembic's env.py
metadata = Base.metadata

__all__ = [
    "REPORT_ROW_ID",
    "Base",
    "metadata",
    "LedgerReport",
    "LedgerTransaction",
]
