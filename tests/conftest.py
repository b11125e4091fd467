import os

import pytest
from fastapi.testclient import TestClient

# Keep tests hermetic: no dev-mode impersonation and no superadmin promotion
# leaking in from the developer's shell.
for _var in ("DEV_MODE", "ADMIN_EMAILS", "DATABASE_URL"):
    os.environ.pop(_var, None)
os.environ.setdefault("FRONTEND_BASE_URL", "http://localhost:5174")

import lmsbox.db.database as db_module  # noqa: E402
from lmsbox.db import models  # noqa: E402
from lmsbox.api.main import app  # noqa: E402
from lmsbox.services import email_service  # noqa: E402
from lmsbox.utils.feature_flags import refresh_feature_flag_cache  # noqa: E402

# The test session, shared with requests handled in the TestClient threadpool
_active = {"session": None}


@pytest.fixture(autouse=True)
def db_session():
    """Fresh schema per test on the in-memory SQLite engine."""
    engine = db_module.engine
    models.Base.metadata.create_all(bind=engine)
    session = db_module.SessionLocal()
    _active["session"] = session
    try:
        yield session
    finally:
        _active["session"] = None
        session.close()
        models.Base.metadata.drop_all(bind=engine)


def _override_get_db():
    if _active["session"] is not None:
        yield _active["session"]
        return
    session = db_module.SessionLocal()
    try:
        yield session
    finally:
        session.close()


app.dependency_overrides[db_module.get_db] = _override_get_db


@pytest.fixture(autouse=True)
def _reset_runtime_state():
    refresh_feature_flag_cache()
    email_service.reset_email_service_for_tests()
    yield
    refresh_feature_flag_cache()
    email_service.reset_email_service_for_tests()


@pytest.fixture
def db(db_session):
    return db_session


@pytest.fixture
def client():
    return TestClient(app)


def auth(email: str, name: str = None) -> dict:
    """Proxy identity headers as set by oauth2-proxy in front of the service."""
    return {
        "x-auth-request-email": email,
        "x-auth-request-user": name or email.split("@")[0],
    }


@pytest.fixture
def auth_headers():
    return auth
