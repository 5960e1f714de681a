"""Alembic environment for the acquisition schema."""

from __future__ import annotations

import logging
from logging.config import fileConfig
from pathlib import Path

from alembic import context
from sqlalchemy import create_engine, pool

from fdrsync.adapters.sqlalchemy.mappings import mapper_registry, start_mappers
from fdrsync.config import get_database_config

config = context.config

if config.config_file_name is not None:
    config_path = Path(config.config_file_name)
    if config_path.suffix == ".ini" and config_path.exists():
        fileConfig(config.config_file_name)

log = logging.getLogger("alembic.env")

start_mappers()

target_metadata = mapper_registry.metadata

_CONFIGURE_OPTIONS: dict[str, bool] = {
    "render_as_batch": True,
    "compare_type": True,
    "compare_server_default": True,
}


def _database_url() -> str:
    return config.get_main_option("sqlalchemy.url") or get_database_config().uri


def run_migrations_offline() -> None:
    """Emit SQL for the migrations without a live connection."""

    context.configure(
        url=_database_url(),
        target_metadata=target_metadata,
        literal_binds=True,
        **_CONFIGURE_OPTIONS,
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Run the migrations against a connection, reusing the caller's if provided."""

    existing_connection = config.attributes.get("connection")
    if existing_connection is not None:
        context.configure(
            connection=existing_connection,
            target_metadata=target_metadata,
            **_CONFIGURE_OPTIONS,
        )
        with context.begin_transaction():
            context.run_migrations()
        return

    url = _database_url()
    log.info("Running migrations on a dedicated connection")
    engine = create_engine(url, poolclass=pool.NullPool, future=True)
    try:
        with engine.connect() as connection:
            context.configure(
                connection=connection,
                target_metadata=target_metadata,
                **_CONFIGURE_OPTIONS,
            )
            with context.begin_transaction():
                context.run_migrations()
    finally:
        engine.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
