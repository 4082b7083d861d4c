"""Process-wide logging for the ledger and the database layer beneath it.

Entry points (the CLI callback, :func:`ledger.web.create_app`) call
:func:`configure_logging` once at startup. It routes three logger trees to a
single stderr handler:

- ``ledger``: ingestion, commits and the HTTP surface;
- ``db``: engine construction and migrations (:mod:`db.migrate`);
- ``alembic``: revision progress while ``ledger init-db`` runs.

The level comes from ``LEDGER_LOG_LEVEL`` (a level name such as ``DEBUG`` or a
number) and defaults to ``INFO``. An unknown name raises ``ValueError`` so a
typo does not silently hide the commit trail.

Modules only ever call ``get_logger("ledger.<module>")``; they never attach
handlers themselves.
"""

from __future__ import annotations

import logging
import os
import sys

LOG_LEVEL_ENV = "LEDGER_LOG_LEVEL"
LOG_FORMAT = "%(asctime)s %(name)s %(levelname)s %(message)s"
ROUTED_LOGGERS: tuple[str, ...] = ("ledger", "db", "alembic")

_handler: logging.Handler | None = None


class _StderrHandler(logging.StreamHandler):
    """Writes to whatever ``sys.stderr`` is when a record is emitted."""

    @property
    def stream(self):  # type: ignore[override]
        return sys.stderr

    @stream.setter
    def stream(self, value) -> None:
        pass


def level_from_env(default: int = logging.INFO) -> int:
    """Resolve ``LEDGER_LOG_LEVEL`` to a numeric level."""

    raw = os.getenv(LOG_LEVEL_ENV)
    if raw is None or not raw.strip():
        return default
    name = raw.strip().upper()
    if name.isdigit():
        return int(name)
    level = logging.getLevelName(name)
    if not isinstance(level, int):
        raise ValueError(
            f"{LOG_LEVEL_ENV} must be a logging level name or number, got {raw!r}"
        )
    return level


def configure_logging(level: int | None = None) -> logging.Handler:
    """Route the ledger, db and alembic loggers to one stderr handler.

    Safe to call more than once: the previous handler is replaced and only the
    level changes. Returns the installed handler.
    """

    global _handler
    if level is None:
        level = level_from_env()

    handler = _StderrHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))

    for name in ROUTED_LOGGERS:
        routed = logging.getLogger(name)
        for h in list(routed.handlers):
            if h is _handler or isinstance(h, logging.NullHandler):
                routed.removeHandler(h)
        routed.addHandler(handler)
        routed.setLevel(level)
        # One handler per tree; the root logger would print the record again.
        routed.propagate = False

    _handler = handler
    return handler


def get_logger(name: str) -> logging.Logger:
    """Return ``name``'s logger; quiet until :func:`configure_logging` runs."""

    pkg_logger = logging.getLogger("ledger")
    if _handler is None and not pkg_logger.handlers:
        pkg_logger.addHandler(logging.NullHandler())
    return logging.getLogger(name)


__all__ = [
    "LOG_LEVEL_ENV",
    "ROUTED_LOGGERS",
    "configure_logging",
    "get_logger",
    "level_from_env",
]
