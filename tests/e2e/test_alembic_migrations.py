import os
from pathlib import Path

import pytest
from sqlalchemy import create_engine, inspect

pytestmark = [
    pytest.mark.e2e,
    pytest.mark.skipif(os.getenv("RUN_E2E") != "1", reason="set RUN_E2E=1 to run Postgres migration tests"),
]

ROOT = Path(__file__).resolve().parents[2]

EXPECTED_TABLES = {
    "users",
    "organizations",
    "organization_memberships",
    "personal_access_tokens",
    "login_link_tokens",
    "courses",
    "lessons",
    "quizzes",
    "quiz_questions",
    "quiz_options",
    "quiz_attempts",
    "learning_groups",
    "learner_groups",
    "group_courses",
    "learner_progress",
    "surveys",
    "survey_questions",
    "survey_responses",
    "survey_question_responses",
    "learning_pathways",
    "pathway_courses",
    "learner_pathway_progress",
    "audit_logs",
}


@pytest.fixture(scope="module")
def postgres_url():
    from testcontainers.postgres import PostgresContainer

    with PostgresContainer("postgres:16-alpine") as pg:
        yield pg.get_connection_url().replace("postgresql+psycopg2://", "postgresql://")


def _alembic_config(url: str):
    from alembic.config import Config

    cfg = Config(str(ROOT / "alembic.ini"))
    cfg.set_main_option("script_location", str(ROOT / "migrations"))
    cfg.set_main_option("sqlalchemy.url", url)
    return cfg


def test_upgrade_and_downgrade_roundtrip(postgres_url, monkeypatch):
    from alembic import command

    monkeypatch.setenv("TEST_DATABASE_URL", postgres_url)
    cfg = _alembic_config(postgres_url)

    command.upgrade(cfg, "head")
    engine = create_engine(postgres_url)
    try:
        tables = set(inspect(engine).get_table_names())
        assert EXPECTED_TABLES <= tables

        columns = {c["name"] for c in inspect(engine).get_columns("learner_progress")}
        assert {"lesson_id", "certificate_id", "video_timestamp", "post_survey_completed"} <= columns

        command.downgrade(cfg, "base")
        assert set(inspect(engine).get_table_names()) <= {"alembic_version"}
    finally:
        engine.dispose()


def test_models_match_migrations(postgres_url, monkeypatch):
    from alembic import command
    from alembic.autogenerate import compare_metadata
    from alembic.migration import MigrationContext

    from lmsbox.db.models import Base

    monkeypatch.setenv("TEST_DATABASE_URL", postgres_url)
    command.upgrade(_alembic_config(postgres_url), "head")
    engine = create_engine(postgres_url)
    try:
        with engine.connect() as conn:
            ctx = MigrationContext.configure(conn, opts={"compare_type": False})
            diff = [d for d in compare_metadata(ctx, Base.metadata) if d[0] in ("add_table", "remove_table", "add_column", "remove_column")]
        assert diff == []
    finally:
        engine.dispose()
        command.downgrade(_alembic_config(postgres_url), "base")
