"""Public interface for the ``ledger`` package.

Symbol re-exports only; see :mod:`ledger.api` for the entry points and
:mod:`ledger.models` for the value and outcome types.
"""

from .api import current_report, ingest_csv
from .commit import commit_batch, rebuild_report
from .models import (
    CommitResult,
    Committed,
    Congested,
    Direction,
    IngestOutcome,
    ParsedRow,
    PersistenceFailed,
    RejectionReason,
    Report,
    ReportOutcome,
    RowRejection,
    TooLarge,
    TransactionCandidate,
    Unavailable,
)
from .report import read_report
from .store import LedgerStore

__all__ = [
    # API
    "current_report",
    "ingest_csv",
    "commit_batch",
    "rebuild_report",
    "read_report",
    "LedgerStore",
    # Models
    "CommitResult",
    "Committed",
    "Congested",
    "Direction",
    "IngestOutcome",
    "ParsedRow",
    "PersistenceFailed",
    "RejectionReason",
    "Report",
    "ReportOutcome",
    "RowRejection",
    "TooLarge",
    "TransactionCandidate",
    "Unavailable",
]
