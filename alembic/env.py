"""
Alembic migration environment for the cinema booking schema.

The database URL comes from DATABASE_URL_SYNC (migrations run over psycopg2,
the app over asyncpg). Override it per run with:

    alembic -x db_url=postgresql://... upgrade head
"""

from logging.config import fileConfig
from sqlalchemy import engine_from_config, pool
from alembic import context

from cinema_booking.db.base import Base
import cinema_booking.models  # noqa: F401 - registers every table on Base.metadata
from cinema_booking.core.config import get_settings

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def _database_url() -> str:
    return context.get_x_argument(as_dictionary=True).get("db_url") or get_settings().DATABASE_URL_SYNC


def _configure_options() -> dict:
    return {"target_metadata": target_metadata, "compare_type": True, "compare_server_default": True}


def run_migrations_offline() -> None:
    """Emit the migration as SQL instead of running it."""
    context.configure(
        url=_database_url(),
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **_configure_options(),
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    section = config.get_section(config.config_ini_section, {})
    section["sqlalchemy.url"] = _database_url()
    connectable = engine_from_config(section, prefix="sqlalchemy.", poolclass=pool.NullPool)

    with connectable.connect() as connection:
        context.configure(connection=connection, **_configure_options())
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
