"""Alembic environment for the stocksync schema.

The database location comes from the application settings (STOCKSYNC_*
environment variables or .env), so migrations always target the same file
the service opens. A sqlalchemy.url set in alembic.ini or passed with
``-x url=...`` takes precedence.
"""

from __future__ import annotations

import asyncio
from logging.config import fileConfig

from sqlalchemy.engine import Connection

from alembic import context
from stocksync.core.config import Settings
from stocksync.db import models  # noqa: F401
from stocksync.db.base import Base
from stocksync.db.session import create_engine_for, get_database_url

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def migration_url() -> str:
    """Resolve the database URL: -x url, then alembic.ini, then Settings."""
    override = context.get_x_argument(as_dictionary=True).get("url")
    if override:
        return override
    configured = config.get_main_option("sqlalchemy.url")
    if configured:
        return configured
    return get_database_url(Settings())


def configure(**kwargs) -> None:
    # SQLite cannot ALTER most constraints in place
    context.configure(target_metadata=target_metadata, render_as_batch=True, **kwargs)


def run_offline() -> None:
    """Emit the migration SQL without connecting."""
    configure(
        url=migration_url(),
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def _migrate(connection: Connection) -> None:
    configure(connection=connection)
    with context.begin_transaction():
        context.run_migrations()


async def run_online() -> None:
    """Apply migrations through the application's engine factory (WAL pragmas included)."""
    engine = create_engine_for(migration_url())
    try:
        async with engine.connect() as connection:
            await connection.run_sync(_migrate)
    finally:
        await engine.dispose()


if context.is_offline_mode():
    run_offline()
else:
    asyncio.run(run_online())
