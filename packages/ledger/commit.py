"""Atomic commit of a validated batch, and report rebuild.

:func:`commit_batch` is the only writer of the report during ingestion. Within
one write unit it

1. locks the report row,
2. inserts every candidate (chunked, same transaction),
3. folds the batch into the locked totals and writes the new report,
4. commits.

Either all rows and the matching report become visible together or nothing
does. Concurrent batches serialize on the write lock, so two writers can
never both read the same prior totals.
"""

from __future__ import annotations

import uuid
from collections.abc import Sequence

from .logging_setup import get_logger
from .models import CommitResult, Report, TransactionCandidate
from .store import LedgerStore

logger = get_logger("ledger.commit")


def commit_batch(store: LedgerStore, candidates: Sequence[TransactionCandidate]) -> CommitResult:
    """Persist ``candidates`` and the updated report as one atomic unit.

    Parameters
    ----------
    store:
        Target ledger.
    candidates:
        Validated rows. An empty sequence is a no-op: no unit is opened and the
        report is left untouched.

    Returns
    -------
    CommitResult
        The batch id, number of rows written and the report as committed.

    Raises
    ------
    CongestedError
        No connection or write lock became available in time.
    UnavailableError
        The database could not be reached.
    PersistenceError
        The unit failed and was rolled back; nothing was written.
    """

    if not candidates:
        logger.debug("Empty batch; nothing to commit")
        return CommitResult(batch_id=None, committed=0, report=None)

    batch_id = uuid.uuid4()
    with store.write_unit() as unit:
        prior = unit.lock_report()
        written = unit.insert_transactions(batch_id, candidates)
        logger.debug("Batch %s: updated transactions (%d rows)", batch_id, written)

        updated = prior.apply(candidates)
        unit.write_report(updated)
        logger.debug("Batch %s: updated report %s", batch_id, updated.as_text())

    logger.debug("Batch %s: committed", batch_id)
    logger.info("Committed batch %s with %d transaction(s)", batch_id, written)
    return CommitResult(batch_id=batch_id, committed=written, report=updated)


def rebuild_report(store: LedgerStore) -> Report:
    """Recompute the report from every persisted transaction and store it.

    Runs under the write lock so no batch can commit between the scan and the
    write. Useful after manual edits to the transaction table.
    """

    with store.write_unit() as unit:
        unit.lock_report()
        rebuilt = Report.zero().apply(unit.iter_transactions())
        unit.write_report(rebuilt)
        scanned = unit.count_transactions()

    logger.info("Rebuilt report from %d transaction(s): %s", scanned, rebuilt.as_text())
    return rebuilt


__all__ = ["commit_batch", "rebuild_report"]
