"""
Alembic environment for async migrations.

Used by the Alembic CLI (``alembic upgrade head`` from the backend directory)
and imported by the API server, which calls
``run_migrations_online_programmatic`` on startup.
"""

from logging.config import fileConfig
import asyncio
import logging
from pathlib import Path
from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import async_engine_from_config
from alembic import context, config as alembic_config, command

from backend.database.db import Base, DATABASE_URL
from backend.database import models  # noqa: F401

logger = logging.getLogger(__name__)

# Only set when running under the Alembic CLI
config = None
try:
    config = context.config
    if config.config_file_name is not None:
        fileConfig(config.config_file_name, disable_existing_loggers=False)
except AttributeError:
    pass

target_metadata = Base.metadata


def run_migrations_offline(alembic_cfg=None) -> None:
    """Emit SQL without connecting."""
    config_obj = alembic_cfg if alembic_cfg is not None else config
    if config_obj is None:
        raise ValueError("Alembic config is required for offline migrations")
    context.configure(
        url=config_obj.get_main_option("sqlalchemy.url"),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection: Connection) -> None:
    context.configure(connection=connection, target_metadata=target_metadata)

    with context.begin_transaction():
        context.run_migrations()


async def run_async_migrations(alembic_cfg=None) -> None:
    """Run migrations against DATABASE_URL with the async driver."""
    config_obj = alembic_cfg if alembic_cfg is not None else config
    if config_obj is None:
        raise ValueError("Alembic config is required for async migrations")

    configuration = config_obj.get_section(config_obj.config_ini_section) or {}
    configuration["sqlalchemy.url"] = DATABASE_URL

    connectable = async_engine_from_config(
        configuration,
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )

    async with connectable.connect() as connection:
        await connection.run_sync(do_run_migrations)

    await connectable.dispose()


def run_migrations_online() -> None:
    asyncio.run(run_async_migrations())


async def run_migrations_online_programmatic() -> None:
    """
    Upgrade to head from inside a running event loop.

    ``command.upgrade`` is synchronous and starts its own loop through this
    module, so it runs in a worker thread.
    """
    backend_dir = Path(__file__).parent.parent
    alembic_cfg = alembic_config.Config(str(backend_dir / "alembic.ini"))
    alembic_cfg.set_main_option("script_location", str(backend_dir / "alembic"))
    alembic_cfg.set_main_option("sqlalchemy.url", DATABASE_URL)

    await asyncio.to_thread(command.upgrade, alembic_cfg, "head")
    logger.info("✓ Migrations completed successfully")


if config is not None:
    try:
        if context.is_offline_mode():
            run_migrations_offline()
        else:
            run_migrations_online()
    except AttributeError:
        pass
