import os
from logging.config import fileConfig

from sqlalchemy import create_engine
from sqlalchemy import pool
from sqlalchemy.engine.url import make_url

from alembic import context

config = context.config

# Set up loggers from the ini file when one is in use.
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# Metadata for 'autogenerate' support
from lmsbox.db.models import Base
target_metadata = Base.metadata


def _database_url() -> str:
    return (
        os.getenv("TEST_DATABASE_URL")
        or os.getenv("DATABASE_URL")
        or config.get_main_option("sqlalchemy.url")
    )


def run_migrations_offline() -> None:
    """Emit SQL for the migrations without connecting to a database."""
    context.configure(
        url=_database_url(),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()


def _engine_for(url: str):
    if os.getenv("ALEMBIC_TEST_USE_CREATOR") != "1":
        return create_engine(url, poolclass=pool.NullPool)

    # Connect with the parsed URL parts; container passwords can trip libpq DSN parsing
    import psycopg2

    parts = make_url(url)
    return create_engine(
        "postgresql+psycopg2://",
        poolclass=pool.NullPool,
        creator=lambda: psycopg2.connect(
            host=parts.host,
            port=parts.port or 5432,
            user=parts.username,
            password=parts.password,
            dbname=parts.database,
        ),
    )


def run_migrations_online() -> None:
    with _engine_for(_database_url()).connect() as connection:
        context.configure(connection=connection, target_metadata=target_metadata, compare_type=True)

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
