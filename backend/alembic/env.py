# alembic/env.py
import asyncio
from logging.config import fileConfig

from sqlalchemy import pool
from sqlalchemy.engine import Connection, make_url
from sqlalchemy.ext.asyncio import async_engine_from_config

from alembic import context

from adaptlearn.core.config import settings
from adaptlearn.models import Base

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# `alembic -x url=sqlite+aiosqlite:///./dev.db upgrade head` мигрирует другую базу
database_url = context.get_x_argument(as_dictionary=True).get("url", settings.db.DATABASE_URL)
config.set_main_option("sqlalchemy.url", database_url.replace("%", "%%"))

# SQLite не умеет ALTER для ограничений, поэтому там изменения идут через batch-режим
configure_options = dict(
    target_metadata=Base.metadata,
    compare_type=True,
    compare_server_default=True,
    render_as_batch=make_url(database_url).get_backend_name() == "sqlite",
)


def run_migrations_offline() -> None:
    context.configure(
        url=database_url,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **configure_options,
    )
    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection: Connection) -> None:
    context.configure(connection=connection, **configure_options)
    with context.begin_transaction():
        context.run_migrations()


async def run_async_migrations() -> None:
    connectable = async_engine_from_config(
        config.get_section(config.config_ini_section),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    async with connectable.connect() as connection:
        await connection.run_sync(do_run_migrations)
    await connectable.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_async_migrations())
