"""Data models and outcome types for ``ledger``.

Three groups live here:

- parsed input: :class:`TransactionCandidate` / :class:`RowRejection`, the
  two variants of :data:`ParsedRow` produced per CSV record;
- the aggregate :class:`Report` and the pure arithmetic that folds a batch
  into it;
- request outcomes (:data:`IngestOutcome`, :data:`ReportOutcome`) returned by
  :mod:`ledger.api`. Congestion is one of these values rather than an
  exception, so callers can tell "your data was wrong" from "try again" from
  "the system is broken".
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import StrEnum

from . import money

# ---------------------------------------------------------------------------
# Parsed input
# ---------------------------------------------------------------------------


class Direction(StrEnum):
    INCOME = "income"
    EXPENSE = "expense"


@dataclass(frozen=True, slots=True)
class TransactionCandidate:
    """A validated CSV row, ready to be persisted.

    ``id`` is assigned when the row is parsed and never changes afterwards.
    ``amount`` is always non-negative; ``direction`` carries the sign.
    """

    id: uuid.UUID
    date: date
    direction: Direction
    amount: Decimal
    memo: str

    @classmethod
    def new(
        cls, *, date: date, direction: Direction, amount: Decimal, memo: str
    ) -> TransactionCandidate:
        return cls(id=uuid.uuid4(), date=date, direction=direction, amount=amount, memo=memo)


class RejectionReason(StrEnum):
    MISSING_FIELD = "missing_field"
    BAD_DATE = "bad_date"
    BAD_DIRECTION = "bad_direction"
    INVALID_AMOUNT = "invalid_amount"
    MEMO_TOO_LONG = "memo_too_long"
    MALFORMED_ROW = "malformed_row"


@dataclass(frozen=True, slots=True)
class RowRejection:
    """A CSV record excluded from the batch.

    Attributes
    ----------
    row:
        1-based index among data records (header, blank and comment lines are
        not counted).
    line:
        Physical line number where the record ended in the input.
    reason:
        Machine-readable :class:`RejectionReason`.
    detail:
        Human-readable explanation.
    """

    row: int
    line: int
    reason: RejectionReason
    detail: str


type ParsedRow = TransactionCandidate | RowRejection


# ---------------------------------------------------------------------------
# Aggregate report
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Report:
    """Snapshot of the singleton aggregate.

    Build new values through :meth:`from_totals` (or :meth:`apply`), which
    derive ``net_revenue`` so that ``net_revenue == gross_revenue - expenses``
    holds for every report this package writes.
    """

    gross_revenue: Decimal
    expenses: Decimal
    net_revenue: Decimal

    @classmethod
    def zero(cls) -> Report:
        return cls.from_totals(gross_revenue=money.ZERO, expenses=money.ZERO)

    @classmethod
    def from_totals(cls, *, gross_revenue: Decimal, expenses: Decimal) -> Report:
        return cls(
            gross_revenue=gross_revenue,
            expenses=expenses,
            net_revenue=money.subtract(gross_revenue, expenses),
        )

    def apply(self, transactions: Iterable[TransactionCandidate]) -> Report:
        """Return this report with ``transactions`` folded in."""

        income: list[Decimal] = []
        expense: list[Decimal] = []
        for tx in transactions:
            (income if tx.direction is Direction.INCOME else expense).append(tx.amount)
        return Report.from_totals(
            gross_revenue=money.add(self.gross_revenue, *income),
            expenses=money.add(self.expenses, *expense),
        )

    def as_text(self) -> dict[str, str]:
        return {
            "gross_revenue": money.to_text(self.gross_revenue),
            "expenses": money.to_text(self.expenses),
            "net_revenue": money.to_text(self.net_revenue),
        }


@dataclass(frozen=True, slots=True)
class CommitResult:
    """What one committed batch did. ``report`` is ``None`` for an empty batch."""

    batch_id: uuid.UUID | None
    committed: int
    report: Report | None


# ---------------------------------------------------------------------------
# Request outcomes
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Committed:
    """The valid subset of a batch was committed (possibly zero rows).

    ``rejected`` is non-empty when validation failed for some or all rows.
    """

    committed: int
    batch_id: uuid.UUID | None = None
    rejected: tuple[RowRejection, ...] = ()
    report: Report | None = None

    @property
    def validation_failed(self) -> bool:
        return bool(self.rejected)


@dataclass(frozen=True, slots=True)
class Congested:
    """No connection or lock became available in time; safe to retry."""

    reason: str


@dataclass(frozen=True, slots=True)
class PersistenceFailed:
    """The atomic unit failed and was rolled back; nothing was written."""

    reason: str
    rejected: tuple[RowRejection, ...] = field(default=())


@dataclass(frozen=True, slots=True)
class Unavailable:
    """The backing store cannot be reached."""

    reason: str


@dataclass(frozen=True, slots=True)
class TooLarge:
    """The upload exceeded the configured byte limit; nothing was written."""

    limit: int


type IngestOutcome = Committed | Congested | PersistenceFailed | Unavailable | TooLarge
type ReportOutcome = Report | Congested | Unavailable


__all__ = [
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
