"""Store-level exceptions.

Raised by :mod:`ledger.store` / :mod:`ledger.commit` and translated into
outcome values by :mod:`ledger.api`. Row-level validation problems are not
exceptions; see :class:`ledger.models.RowRejection`.
"""

from __future__ import annotations


class LedgerError(Exception):
    """Base class for failures of a whole ledger request."""


class CongestedError(LedgerError):
    """No pooled connection (or database write lock) became available in time."""


class PersistenceError(LedgerError):
    """The atomic unit failed and was rolled back."""


class UnavailableError(LedgerError):
    """The backing store could not be reached at all."""


class PayloadTooLargeError(LedgerError):
    """The input stream exceeded its byte limit."""

    def __init__(self, limit: int) -> None:
        super().__init__(f"input exceeds {limit} bytes")
        self.limit = limit


__all__ = [
    "CongestedError",
    "LedgerError",
    "PayloadTooLargeError",
    "PersistenceError",
    "UnavailableError",
]
