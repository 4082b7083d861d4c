"""Programmatic Alembic entry point.

The migration scripts ship inside the ``db`` package (``db/alembic``) so the
schema can be applied without an ``alembic.ini`` on disk:

    from db.migrate import upgrade
    upgrade("sqlite+pysqlite:///ledger.db")
"""

from __future__ import annotations

import logging
from pathlib import Path

from alembic import command
from alembic.config import Config
from sqlalchemy.engine import Engine, make_url

SCRIPT_LOCATION = Path(__file__).resolve().parent / "alembic"

logger = logging.getLogger("db.migrate")


def _redacted(database_url: str) -> str:
    return make_url(database_url).render_as_string(hide_password=True)


def alembic_config(database_url: str) -> Config:
    cfg = Config()
    cfg.set_main_option("script_location", str(SCRIPT_LOCATION))
    cfg.set_main_option("sqlalchemy.url", database_url)
    return cfg


def upgrade(database_url: str, *, revision: str = "head", engine: Engine | None = None) -> None:
    """Upgrade the database at ``database_url`` to ``revision``.

    When ``engine`` is given its pool is used, so SQLite pragmas installed by
    :func:`db.client.build_engine` also apply to the migration connection.
    """

    cfg = alembic_config(database_url)
    logger.info("Upgrading %s to %s", _redacted(database_url), revision)
    if engine is None:
        command.upgrade(cfg, revision)
        return
    with engine.begin() as connection:
        cfg.attributes["connection"] = connection
        command.upgrade(cfg, revision)


def current_revision(engine: Engine) -> str | None:
    from alembic.runtime.migration import MigrationContext

    with engine.connect() as connection:
        return MigrationContext.configure(connection).get_current_revision()


__all__ = ["SCRIPT_LOCATION", "alembic_config", "current_revision", "upgrade"]
