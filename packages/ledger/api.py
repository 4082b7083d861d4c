"""Public entry points for ``ledger``.

Both functions return outcome values (see :mod:`ledger.models`) rather than
raising for expected failures, so every caller (HTTP, CLI, library users)
maps the same four situations the same way:

- :class:`Committed`: the valid rows were written; ``rejected`` lists the rest;
- :class:`Congested`: the pool or the write lock was busy, retry later;
- :class:`PersistenceFailed`: the unit was rolled back, nothing was written;
- :class:`Unavailable`: the database cannot be reached;
- :class:`TooLarge`: the upload exceeded its byte limit.

Unexpected exceptions (bugs) still propagate.
"""

from __future__ import annotations

from typing import BinaryIO

from db.client import dispose_engine, get_engine

from .commit import commit_batch
from .config import LedgerSettings
from .errors import (
    CongestedError,
    PayloadTooLargeError,
    PersistenceError,
    UnavailableError,
)
from .ingest import DEFAULT_MAX_UPLOAD_BYTES, limit_stream, parse_batch, partition
from .logging_setup import get_logger
from .models import (
    Committed,
    Congested,
    IngestOutcome,
    PersistenceFailed,
    ReportOutcome,
    TooLarge,
    Unavailable,
)
from .report import read_report
from .store import LedgerStore

logger = get_logger("ledger.api")

_STORE: LedgerStore | None = None


def get_store() -> LedgerStore:
    """Return the process-wide store, built from the environment on first use.

    It shares the engine cached by :func:`db.client.get_engine`.
    """

    global _STORE
    if _STORE is None:
        settings = LedgerSettings.from_env()
        engine = get_engine(
            database_url=settings.database_url,
            pool_size=settings.pool_size,
            pool_timeout=settings.pool_timeout,
            lock_timeout=settings.lock_timeout,
        )
        _STORE = LedgerStore(engine, lock_timeout=settings.lock_timeout)
    return _STORE


def reset_store() -> None:
    """Dispose of the cached store so the next call rebuilds it."""

    global _STORE
    _STORE = None
    dispose_engine()


def ingest_csv(
    stream: BinaryIO,
    *,
    max_bytes: int = DEFAULT_MAX_UPLOAD_BYTES,
    store: LedgerStore | None = None,
) -> IngestOutcome:
    """Parse a CSV batch from ``stream`` and commit its valid rows atomically.

    The whole stream is parsed before any database work starts, so an
    oversize upload is refused without touching storage and a connection is
    only held for the commit itself.

    Parameters
    ----------
    stream:
        Binary CSV input; read incrementally and left open.
    max_bytes:
        Upload limit. Exceeding it yields :class:`TooLarge`.
    store:
        Target ledger; defaults to :func:`get_store`.
    """

    try:
        candidates, rejections = partition(parse_batch(limit_stream(stream, max_bytes)))
    except PayloadTooLargeError as exc:
        logger.info("Refused upload: %s", exc)
        return TooLarge(limit=exc.limit)

    rejected = tuple(rejections)
    if rejected:
        logger.info(
            "Batch validation: %d valid row(s), %d rejected", len(candidates), len(rejected)
        )

    try:
        result = commit_batch(store or get_store(), candidates)
    except CongestedError as exc:
        logger.warning("Batch not committed, ledger is congested: %s", exc)
        return Congested(reason=str(exc))
    except UnavailableError as exc:
        logger.error("Batch not committed, ledger is unavailable: %s", exc)
        return Unavailable(reason=str(exc))
    except PersistenceError as exc:
        logger.error("Batch not committed: %s", exc)
        return PersistenceFailed(reason=str(exc), rejected=rejected)

    return Committed(
        committed=result.committed,
        batch_id=result.batch_id,
        rejected=rejected,
        report=result.report,
    )


def current_report(*, store: LedgerStore | None = None) -> ReportOutcome:
    """Return the last committed report, or why it cannot be read right now."""

    try:
        return read_report(store or get_store())
    except CongestedError as exc:
        logger.warning("Report read congested: %s", exc)
        return Congested(reason=str(exc))
    except (UnavailableError, PersistenceError) as exc:
        logger.error("Report unavailable: %s", exc)
        return Unavailable(reason=str(exc))


__all__ = ["current_report", "get_store", "ingest_csv", "reset_store"]
