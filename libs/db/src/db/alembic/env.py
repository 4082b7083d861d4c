# ruff: noqa: I001
"""
Alembic configuration for the `db` library.

The database URL comes from the Alembic config (set programmatically by
``db.migrate``) and falls back to the `DATABASE_URL` environment variable,
optionally loaded from a workspace `.env`. When ``db.migrate.upgrade`` passes
an open connection through ``config.attributes["connection"]`` that connection
is reused so engine-level hooks (SQLite pragmas) stay in effect.
"""

from __future__ import annotations

import os
import logging
from logging.config import fileConfig

from alembic import context
from sqlalchemy import engine_from_config, pool
from dotenv import load_dotenv, find_dotenv

# Alembic Config object, which provides access to the values within
# the .ini file in use (or the programmatic Config from db.migrate).
config = context.config

# Interpret the config file for Python logging.
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# Load environment from a workspace-level .env if present, without overriding
# variables that are already set.
dotenv_path = find_dotenv(usecwd=True)
if dotenv_path:
    load_dotenv(dotenv_path=dotenv_path, override=False)

# Explicit config wins over the environment: db.migrate always sets it.
db_url_maybe = config.get_main_option("sqlalchemy.url") or os.getenv("DATABASE_URL")
if db_url_maybe is None or db_url_maybe == "":
    raise RuntimeError(
        "DATABASE_URL is not set. Provide it via environment or set "
        "'sqlalchemy.url' in the Alembic config."
    )
db_url: str = db_url_maybe

config.set_main_option("sqlalchemy.url", db_url)

logger = logging.getLogger("alembic.env")

import db as _db_pkg  # noqa: E402

target_metadata = _db_pkg.metadata


def run_migrations_offline() -> None:
    """Run migrations in 'offline' mode."""
    context.configure(
        url=db_url,
        target_metadata=target_metadata,
        literal_binds=True,
        compare_type=True,
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Run migrations in 'online' mode."""
    shared = config.attributes.get("connection")
    if shared is not None:
        logger.info("Running migrations on a caller-provided connection")
        context.configure(connection=shared, target_metadata=target_metadata, compare_type=True)
        with context.begin_transaction():
            context.run_migrations()
        return

    section = config.get_section(config.config_ini_section) or {}
    section["sqlalchemy.url"] = db_url
    connectable = engine_from_config(
        section,
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )

    with connectable.connect() as connection:
        context.configure(connection=connection, target_metadata=target_metadata, compare_type=True)
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
