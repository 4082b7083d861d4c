"""Centralized SQLAlchemy engine helpers for the ledger database.

Usage
-----
from db.client import build_engine

engine = build_engine("sqlite+pysqlite:///ledger.db", pool_size=8)

Engines are built with a bounded ``QueuePool`` (no overflow) so callers can
tell "every connection is busy" apart from "the database is gone": pool
exhaustion surfaces as ``sqlalchemy.exc.TimeoutError`` after ``pool_timeout``
seconds.

SQLite specifics
----------------
- WAL journaling so readers are never blocked by the single writer.
- pysqlite's implicit transaction handling is disabled and ``BEGIN`` is
  emitted by an engine event instead. Connections carrying the
  ``WRITE_LOCK_OPTION`` execution option begin with ``BEGIN IMMEDIATE``, which
  takes the write lock up front; writers therefore queue on the busy timeout
  instead of failing late on a lock upgrade.
"""

from __future__ import annotations

import os
from typing import Any

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Connection, Engine, make_url
from sqlalchemy.pool import QueuePool

# Execution option consumed by the SQLite ``begin`` hook below.
WRITE_LOCK_OPTION = "ledger_write_lock"

DEFAULT_POOL_SIZE = 50
DEFAULT_POOL_TIMEOUT = 5.0
DEFAULT_LOCK_TIMEOUT = 10.0

_ENGINE: Engine | None = None
_DB_URL: str | None = None


def _database_url(override: str | None = None) -> str:
    url = override or os.getenv("DATABASE_URL")
    if not url:
        raise RuntimeError("DATABASE_URL is not set; cannot initialize database client")
    return url


def _install_sqlite_hooks(engine: Engine, *, lock_timeout: float) -> None:
    busy_ms = int(lock_timeout * 1000)

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_conn: Any, _record: Any) -> None:
        # Let the "begin" hook own transaction boundaries.
        dbapi_conn.isolation_level = None
        cursor = dbapi_conn.cursor()
        try:
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA synchronous=NORMAL")
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.execute(f"PRAGMA busy_timeout={busy_ms}")
        finally:
            cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn: Connection) -> None:
        if conn.get_execution_options().get(WRITE_LOCK_OPTION):
            conn.exec_driver_sql("BEGIN IMMEDIATE")
        else:
            conn.exec_driver_sql("BEGIN")


def build_engine(
    database_url: str,
    *,
    pool_size: int = DEFAULT_POOL_SIZE,
    pool_timeout: float = DEFAULT_POOL_TIMEOUT,
    lock_timeout: float = DEFAULT_LOCK_TIMEOUT,
) -> Engine:
    """Create a new engine with a bounded pool; the caller owns ``dispose()``."""

    if pool_size < 1:
        raise ValueError("pool_size must be a positive integer")

    url = make_url(database_url)
    connect_args: dict[str, Any] = {}
    is_sqlite = url.get_backend_name() == "sqlite"
    if is_sqlite:
        if url.database in (None, "", ":memory:"):
            # Pooled in-memory connections would each see a private database.
            raise ValueError("the ledger requires a file-backed SQLite database")
        connect_args = {"timeout": lock_timeout, "check_same_thread": False}

    engine = create_engine(
        url,
        poolclass=QueuePool,
        pool_size=pool_size,
        max_overflow=0,
        pool_timeout=pool_timeout,
        pool_pre_ping=True,
        connect_args=connect_args,
    )
    if is_sqlite:
        _install_sqlite_hooks(engine, lock_timeout=lock_timeout)
    return engine


def get_engine(
    *,
    database_url: str | None = None,
    pool_size: int = DEFAULT_POOL_SIZE,
    pool_timeout: float = DEFAULT_POOL_TIMEOUT,
    lock_timeout: float = DEFAULT_LOCK_TIMEOUT,
) -> Engine:
    """Return a shared SQLAlchemy engine, creating it on first use."""

    global _ENGINE, _DB_URL
    url = _database_url(database_url)
    if _ENGINE is None:
        engine = build_engine(
            url,
            pool_size=pool_size,
            pool_timeout=pool_timeout,
            lock_timeout=lock_timeout,
        )
        _ENGINE = engine
        _DB_URL = url
        return engine
    # Engine already initialized; guard against cross-environment misuse.
    if _DB_URL is not None and url != _DB_URL:
        raise RuntimeError(
            "get_engine() already initialized with a different DATABASE_URL; "
            "restart the process or avoid passing a different URL"
        )
    return _ENGINE


def dispose_engine() -> None:
    """Dispose the shared engine (if any) so the next call builds a fresh one."""

    global _ENGINE, _DB_URL
    if _ENGINE is not None:
        _ENGINE.dispose()
    _ENGINE = None
    _DB_URL = None


__all__ = [
    "DEFAULT_LOCK_TIMEOUT",
    "DEFAULT_POOL_SIZE",
    "DEFAULT_POOL_TIMEOUT",
    "WRITE_LOCK_OPTION",
    "build_engine",
    "dispose_engine",
    "get_engine",
]
