"""Alembic environment configuration."""

from logging.config import fileConfig

from alembic import context
from sqlalchemy import create_engine, pool

from studyhub.config import get_settings
from studyhub.db.base import Base
from studyhub.db import models  # noqa: F401 - Import models to register them

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# The declared models double as the table catalogue of the data layer
target_metadata = Base.metadata


def get_url() -> str:
    """
    Sync (psycopg2) URL for migrations.

    `alembic -x url=postgresql://...` targets another database without
    touching the application settings.
    """
    override = context.get_x_argument(as_dictionary=True).get("url")
    if override:
        return override
    return get_settings().database_url_sync


def run_migrations_offline() -> None:
    """Emit the migration SQL to stdout instead of running it."""
    context.configure(
        url=get_url(),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        compare_type=True,
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    connectable = create_engine(get_url(), poolclass=pool.NullPool)

    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            compare_type=True,
        )

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
