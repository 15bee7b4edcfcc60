"""Alembic environment for the msgqueue schema.

Learn: The target database is `-x database_url=...` when given on the
alembic command line, otherwise MSGQUEUE_DATABASE_URL via Settings, so
the server, the CLI and migrations all agree on where the queue lives.

Online migrations open their connection through msgqueue's Database, so
they get the same SQLite pragmas the server runs with (foreign keys on,
WAL) and the data directory is created on first use.
"""

import asyncio
from logging.config import fileConfig

from alembic import context
from sqlalchemy.engine import Connection, make_url

from msgqueue.config import Settings
from msgqueue.db.engine import Database
from msgqueue.db.models import Base

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name, disable_existing_loggers=False)

target_metadata = Base.metadata


def _database_url() -> str:
    override = context.get_x_argument(as_dictionary=True).get("database_url")
    return override or Settings().database_url


def _configure(is_sqlite: bool, **kwargs) -> None:
    context.configure(
        target_metadata=target_metadata,
        compare_type=True,
        # SQLite can't ALTER most columns in place; batch mode rebuilds the table.
        render_as_batch=is_sqlite,
        **kwargs,
    )


def run_migrations_offline(url: str) -> None:
    """Emit the migration SQL to stdout without connecting."""
    _configure(
        make_url(url).get_backend_name() == "sqlite",
        url=url,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def _migrate(connection: Connection) -> None:
    _configure(connection.dialect.name == "sqlite", connection=connection)
    with context.begin_transaction():
        context.run_migrations()


async def run_migrations_online(url: str) -> None:
    database = Database(url)
    database.ensure_storage_dir()
    try:
        async with database.engine.connect() as connection:
            await connection.run_sync(_migrate)
    finally:
        await database.dispose()


if context.is_offline_mode():
    run_migrations_offline(_database_url())
else:
    asyncio.run(run_migrations_online(_database_url()))
