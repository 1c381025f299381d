"""
Alembic environment for the bus booking schema.

The app talks to PostgreSQL through asyncpg; migrations use the sync
driver URL from DATABASE_URL_SYNC. `alembic upgrade head --sql` renders
the DDL without a connection.
"""

from logging.config import fileConfig

from alembic import context
from sqlalchemy import engine_from_config, pool

from bus_booking import models  # noqa: F401 - registers every table on Base.metadata
from bus_booking.core.config import get_settings
from bus_booking.db.base import Base

config = context.config
config.set_main_option("sqlalchemy.url", get_settings().DATABASE_URL_SYNC)

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

CONTEXT_OPTIONS = {
    "target_metadata": Base.metadata,
    # Catch Numeric precision and DateTime timezone drift in autogenerate
    "compare_type": True,
    "compare_server_default": True,
}


def run_migrations() -> None:
    if context.is_offline_mode():
        context.configure(
            url=config.get_main_option("sqlalchemy.url"),
            literal_binds=True,
            dialect_opts={"paramstyle": "named"},
            **CONTEXT_OPTIONS,
        )
        with context.begin_transaction():
            context.run_migrations()
        return

    engine = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    with engine.connect() as connection:
        context.configure(connection=connection, **CONTEXT_OPTIONS)
        with context.begin_transaction():
            context.run_migrations()


run_migrations()
