"""
Database engine and session management.

The URL comes from ``TEST_DATABASE_URL``/``LMSBOX_TEST_DB``, then
``DATABASE_URL``, then the ``POSTGRES_*`` variables. Under pytest, without an
explicit test database, everything runs against one shared in-memory SQLite
connection whose tables are created on first use.
"""
import os
import sys
from sqlalchemy import create_engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

SQLITE_MEMORY_URL = "sqlite+pysqlite:///:memory:"
TEST_URL_VARS = ("LMSBOX_TEST_DB", "TEST_DATABASE_URL")
POSTGRES_VARS = ("POSTGRES_USER", "POSTGRES_PASSWORD", "POSTGRES_HOST", "POSTGRES_PORT", "POSTGRES_DB")


def _is_pytest_runtime() -> bool:
    # PYTEST_CURRENT_TEST is unset during collection, so also look at sys.modules
    return (
        os.getenv("PYTEST_RUNNING") == "1"
        or "PYTEST_CURRENT_TEST" in os.environ
        or "pytest" in sys.modules
    )


def _explicit_test_url():
    for var in TEST_URL_VARS:
        if os.getenv(var):
            return os.getenv(var)
    return None


def _get_database_url() -> str:
    test_url = _explicit_test_url()
    if test_url:
        return test_url
    if _is_pytest_runtime():
        return SQLITE_MEMORY_URL
    if os.getenv("DATABASE_URL"):
        return os.getenv("DATABASE_URL")

    parts = {var: os.getenv(var) for var in POSTGRES_VARS}
    missing = [var for var, value in parts.items() if not value]
    if missing:
        raise ValueError(f"Missing required database environment variables: {', '.join(missing)}")
    return "postgresql://{POSTGRES_USER}:{POSTGRES_PASSWORD}@{POSTGRES_HOST}:{POSTGRES_PORT}/{POSTGRES_DB}".format(**parts)


def engine_kwargs_for(url: str) -> dict:
    """Connection options for a URL; in-memory SQLite shares one connection."""
    if not url.startswith("sqlite"):
        return {}
    kwargs = {"connect_args": {"check_same_thread": False}}
    if ":memory:" in url:
        kwargs["poolclass"] = StaticPool
    return kwargs


def _build_engine(url: str):
    try:
        return create_engine(url, **engine_kwargs_for(url))
    except OperationalError:
        if not _is_pytest_runtime():
            raise
        return create_engine(SQLITE_MEMORY_URL, **engine_kwargs_for(SQLITE_MEMORY_URL))


DATABASE_URL = _get_database_url()
engine = _build_engine(DATABASE_URL)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

_sqlite_tables_ready = False


def _ensure_sqlite_schema():
    """Postgres schemas come from Alembic; SQLite gets `create_all` once."""
    global _sqlite_tables_ready
    if _sqlite_tables_ready:
        return
    if engine.url.get_backend_name() == "sqlite":
        from lmsbox.db import models  # avoids an import cycle at module load
        models.Base.metadata.create_all(bind=engine)
    _sqlite_tables_ready = True


def get_db():
    _ensure_sqlite_schema()
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
