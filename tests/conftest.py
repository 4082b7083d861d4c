"""Pytest configuration: per-test SQLite ledgers and environment isolation.

Every test that needs storage gets its own file-backed SQLite database created
through the real Alembic migration, so the schema under test is exactly the
one ``ledger init-db`` produces.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from pathlib import Path

import pytest
from ledger import api, logging_setup
from ledger.logging_setup import ROUTED_LOGGERS
from ledger.store import LedgerStore

from tests.helpers.db import bootstrap_sqlite_db, make_store

_LEDGER_ENV = (
    "DATABASE_URL",
    "LEDGER_POOL_SIZE",
    "LEDGER_POOL_TIMEOUT",
    "LEDGER_LOCK_TIMEOUT",
    "LEDGER_MAX_UPLOAD_BYTES",
    "LEDGER_LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Start each test without ledger env vars and without a cached store."""

    for name in _LEDGER_ENV:
        monkeypatch.delenv(name, raising=False)
    api.reset_store()
    yield
    api.reset_store()


@pytest.fixture(autouse=True)
def _restore_loggers() -> Iterator[None]:
    """Undo configure_logging() so routed loggers do not leak between tests."""

    saved = {
        name: (list(lg.handlers), lg.level, lg.propagate)
        for name in ROUTED_LOGGERS
        for lg in [logging.getLogger(name)]
    }
    saved_handler = logging_setup._handler
    yield
    for name, (handlers, level, propagate) in saved.items():
        lg = logging.getLogger(name)
        lg.handlers[:] = handlers
        lg.setLevel(level)
        lg.propagate = propagate
    logging_setup._handler = saved_handler


@pytest.fixture
def db_file(tmp_path: Path) -> Path:
    return tmp_path / "ledger.db"


@pytest.fixture
def ledger_url(db_file: Path) -> str:
    return bootstrap_sqlite_db(db_file)


@pytest.fixture
def store(ledger_url: str) -> Iterator[LedgerStore]:
    s = make_store(ledger_url)
    try:
        yield s
    finally:
        s.dispose()
