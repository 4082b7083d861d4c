"""Report reader."""

from __future__ import annotations

from .models import Report
from .store import LedgerStore


def read_report(store: LedgerStore) -> Report:
    """Return the last committed report.

    Reads run in their own short transaction and never take the write lock,
    so the result is always one committed snapshot: the state before or after
    any concurrent batch, never a mix.
    """

    with store.read_unit() as unit:
        return unit.read_report()


__all__ = ["read_report"]
