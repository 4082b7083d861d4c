"""Runtime settings read from the environment.

``DATABASE_URL`` is required (same contract as :mod:`db.client`). The
remaining knobs bound the connection pool and the upload size:

- ``LEDGER_POOL_SIZE``: pooled connections (default 50, no overflow).
- ``LEDGER_POOL_TIMEOUT``: seconds to wait for a pooled connection before a
  request is reported as congested (default 5).
- ``LEDGER_LOCK_TIMEOUT``: seconds a writer waits for the database write lock
  (default 10).
- ``LEDGER_MAX_UPLOAD_BYTES``: largest accepted CSV upload (default 2 MiB).
- ``LEDGER_LOG_LEVEL``: logging level name or number (default ``INFO``).

Entry points load a local ``.env`` with python-dotenv before calling
:meth:`LedgerSettings.from_env`; this module never does so itself.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass

from db.client import DEFAULT_LOCK_TIMEOUT, DEFAULT_POOL_SIZE, DEFAULT_POOL_TIMEOUT

from .ingest.utils import DEFAULT_MAX_UPLOAD_BYTES
from .logging_setup import level_from_env


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None
    if value < 1:
        raise ValueError(f"{name} must be positive, got {value}")
    return value


def _env_seconds(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number of seconds, got {raw!r}") from None
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {value}")
    return value


@dataclass(frozen=True, slots=True)
class LedgerSettings:
    database_url: str
    pool_size: int = DEFAULT_POOL_SIZE
    pool_timeout: float = DEFAULT_POOL_TIMEOUT
    lock_timeout: float = DEFAULT_LOCK_TIMEOUT
    max_upload_bytes: int = DEFAULT_MAX_UPLOAD_BYTES
    log_level: int = logging.INFO

    @classmethod
    def from_env(cls, *, database_url: str | None = None) -> LedgerSettings:
        url = database_url or os.getenv("DATABASE_URL")
        if not url:
            raise RuntimeError("DATABASE_URL is not set; cannot configure the ledger")
        return cls(
            database_url=url,
            pool_size=_env_int("LEDGER_POOL_SIZE", DEFAULT_POOL_SIZE),
            pool_timeout=_env_seconds("LEDGER_POOL_TIMEOUT", DEFAULT_POOL_TIMEOUT),
            lock_timeout=_env_seconds("LEDGER_LOCK_TIMEOUT", DEFAULT_LOCK_TIMEOUT),
            max_upload_bytes=_env_int("LEDGER_MAX_UPLOAD_BYTES", DEFAULT_MAX_UPLOAD_BYTES),
            log_level=level_from_env(),
        )


__all__ = ["LedgerSettings"]
