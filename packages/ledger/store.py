"""Ledger store: the transaction table and the singleton report behind a
bounded connection pool.

Work happens in *units*: one pooled connection, one database transaction.

- :meth:`LedgerStore.write_unit` takes the database write lock when the
  transaction begins (SQLite ``BEGIN IMMEDIATE``; on PostgreSQL the report row
  is locked with ``SELECT ... FOR UPDATE`` by :meth:`LedgerUnit.lock_report`
  and lock waits are capped with ``lock_timeout``).
- :meth:`LedgerStore.read_unit` uses a plain deferred transaction, so readers
  are never queued behind writers.

Database errors are classified once, here, into the exceptions of
:mod:`ledger.errors`:

- pool checkout timeout or lock wait exhausted -> :class:`CongestedError`;
- a connection that cannot be opened (or was invalidated) ->
  :class:`UnavailableError`;
- anything else raised inside a unit -> :class:`PersistenceError`.

The unit is rolled back before the exception leaves the ``with`` block.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from itertools import batched

from db.client import DEFAULT_LOCK_TIMEOUT, WRITE_LOCK_OPTION, build_engine
from db.models.ledger import REPORT_ROW_ID, LedgerReport, LedgerTransaction
from sqlalchemy import func, insert, select, text, update
from sqlalchemy import exc as sa_exc
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from .config import LedgerSettings
from .errors import CongestedError, PersistenceError, UnavailableError
from .logging_setup import get_logger
from .models import Direction, Report, TransactionCandidate

logger = get_logger("ledger.store")

# Smallest bound-parameter limit among supported backends (SQLite before
# 3.32). Multi-row INSERTs are chunked to stay under it.
MAX_BOUND_PARAMETERS = 999

INSERT_COLUMNS: tuple[str, ...] = ("id", "batch_id", "date", "direction", "amount", "memo")

_SQLITE_LOCK_MESSAGES = ("database is locked", "database table is locked")
# lock_not_available (raised when lock_timeout expires)
_PG_LOCK_SQLSTATES = frozenset({"55P03"})


def _sqlstate(exc: sa_exc.SQLAlchemyError) -> str | None:
    orig = getattr(exc, "orig", None)
    return getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)


def _is_lock_contention(exc: sa_exc.SQLAlchemyError) -> bool:
    if isinstance(exc, sa_exc.TimeoutError):
        return True
    if isinstance(exc, sa_exc.OperationalError):
        message = str(exc.orig).lower()
        if any(m in message for m in _SQLITE_LOCK_MESSAGES):
            return True
    return _sqlstate(exc) in _PG_LOCK_SQLSTATES


def _acquire_error(exc: sa_exc.SQLAlchemyError) -> Exception:
    if _is_lock_contention(exc):
        return CongestedError(f"no database connection available: {exc}")
    return UnavailableError(f"cannot reach the ledger database: {exc}")


def _unit_error(exc: sa_exc.SQLAlchemyError) -> Exception:
    if _is_lock_contention(exc):
        return CongestedError(f"database lock not acquired in time: {exc}")
    if isinstance(exc, sa_exc.DBAPIError) and exc.connection_invalidated:
        return UnavailableError(f"lost the ledger database connection: {exc}")
    return PersistenceError(f"atomic unit failed and was rolled back: {exc}")


def _report_from_row(row: LedgerReport) -> Report:
    return Report(
        gross_revenue=row.gross_revenue,
        expenses=row.expenses,
        net_revenue=row.net_revenue,
    )


class LedgerUnit:
    """Operations available inside one atomic unit (one session/transaction)."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def insert_transactions(
        self, batch_id: uuid.UUID, candidates: Sequence[TransactionCandidate]
    ) -> int:
        """Insert ``candidates`` in multi-row statements; returns the row count.

        Every chunk runs in this unit's transaction, so a failure in any chunk
        discards all of them.
        """

        rows_per_statement = max(1, MAX_BOUND_PARAMETERS // len(INSERT_COLUMNS))
        payloads = [
            {
                "id": str(c.id),
                "batch_id": str(batch_id),
                "date": c.date,
                "direction": c.direction.value,
                "amount": c.amount,
                "memo": c.memo,
            }
            for c in candidates
        ]
        for chunk in batched(payloads, rows_per_statement):
            self.session.execute(insert(LedgerTransaction).values(list(chunk)))
        return len(payloads)

    def _report_row(self, *, for_update: bool) -> LedgerReport:
        stmt = select(LedgerReport).where(LedgerReport.id == REPORT_ROW_ID)
        if for_update:
            stmt = stmt.with_for_update()
        row = self.session.execute(stmt).scalar_one_or_none()
        if row is None:
            raise PersistenceError("report row is missing; run `ledger init-db` first")
        return row

    def lock_report(self) -> Report:
        """Read the report for a read-modify-write in this unit."""

        return _report_from_row(self._report_row(for_update=True))

    def read_report(self) -> Report:
        return _report_from_row(self._report_row(for_update=False))

    def write_report(self, report: Report) -> None:
        result = self.session.execute(
            update(LedgerReport)
            .where(LedgerReport.id == REPORT_ROW_ID)
            .values(
                gross_revenue=report.gross_revenue,
                expenses=report.expenses,
                net_revenue=report.net_revenue,
                updated_at=func.current_timestamp(),
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise PersistenceError("report row is missing; run `ledger init-db` first")

    def iter_transactions(self, *, chunk_size: int = 1000) -> Iterator[TransactionCandidate]:
        """Stream every persisted transaction, oldest first."""

        stmt = (
            select(LedgerTransaction)
            .order_by(LedgerTransaction.created_at, LedgerTransaction.id)
            .execution_options(yield_per=chunk_size)
        )
        for row in self.session.execute(stmt).scalars():
            yield TransactionCandidate(
                id=uuid.UUID(row.id),
                date=row.date,
                direction=Direction(row.direction),
                amount=row.amount,
                memo=row.memo,
            )

    def count_transactions(self, *, batch_id: uuid.UUID | None = None) -> int:
        stmt = select(func.count()).select_from(LedgerTransaction)
        if batch_id is not None:
            stmt = stmt.where(LedgerTransaction.batch_id == str(batch_id))
        return int(self.session.execute(stmt).scalar_one())


class LedgerStore:
    """Owns the engine (and therefore the pool) for one ledger database."""

    def __init__(self, engine: Engine, *, lock_timeout: float = DEFAULT_LOCK_TIMEOUT) -> None:
        self.engine = engine
        self._lock_timeout = lock_timeout

    @classmethod
    def from_settings(cls, settings: LedgerSettings) -> LedgerStore:
        engine = build_engine(
            settings.database_url,
            pool_size=settings.pool_size,
            pool_timeout=settings.pool_timeout,
            lock_timeout=settings.lock_timeout,
        )
        return cls(engine, lock_timeout=settings.lock_timeout)

    def dispose(self) -> None:
        self.engine.dispose()

    @contextmanager
    def write_unit(self) -> Iterator[LedgerUnit]:
        """Atomic unit holding the write lock; commits on clean exit."""

        with self._unit(write=True) as unit:
            yield unit

    @contextmanager
    def read_unit(self) -> Iterator[LedgerUnit]:
        """Read-only unit; never blocks on, or blocks, a writer."""

        with self._unit(write=False) as unit:
            yield unit

    @contextmanager
    def _unit(self, *, write: bool) -> Iterator[LedgerUnit]:
        session = Session(bind=self.engine, expire_on_commit=False)
        try:
            # Pool checkout and BEGIN happen here; failures mean the unit never
            # started, so nothing needs to be undone.
            try:
                session.connection(execution_options={WRITE_LOCK_OPTION: True} if write else None)
                if write and self.engine.dialect.name == "postgresql":
                    lock_ms = int(self._lock_timeout * 1000)
                    session.execute(text(f"SET LOCAL lock_timeout = {lock_ms}"))
            except sa_exc.SQLAlchemyError as exc:
                error = _acquire_error(exc)
                logger.warning("Could not start a ledger unit: %s", error)
                raise error from exc

            try:
                yield LedgerUnit(session)
                if write:
                    session.commit()
                else:
                    session.rollback()
            except sa_exc.SQLAlchemyError as exc:
                session.rollback()
                error = _unit_error(exc)
                if isinstance(error, PersistenceError):
                    logger.exception("Ledger unit rolled back")
                else:
                    logger.warning("Ledger unit rolled back: %s", error)
                raise error from exc
            except BaseException:
                session.rollback()
                raise
        finally:
            session.close()


__all__ = [
    "INSERT_COLUMNS",
    "MAX_BOUND_PARAMETERS",
    "LedgerStore",
    "LedgerUnit",
]
