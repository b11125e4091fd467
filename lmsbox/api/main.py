"""
FastAPI app assembly: logging, CORS, the guest write guard and routers.
"""
import logging
import os

from fastapi import FastAPI, status
from fastapi.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

LOG_LEVEL_NAME = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_LEVEL = getattr(logging, LOG_LEVEL_NAME, logging.INFO)
logging.basicConfig(level=LOG_LEVEL)
logger = logging.getLogger(__name__)
logger.setLevel(LOG_LEVEL)
logger.info("app_startup: log_level=%s", LOG_LEVEL_NAME)

from lmsbox.api import (  # noqa: E402
    audits,
    courses,
    groups,
    learner,
    login,
    orgs,
    pathways,
    quizzes,
    reports,
    support,
    surveys,
    users,
)
from lmsbox.utils.runtime import dev_mode_active  # noqa: E402

# Schema is managed by Alembic migrations, never create_all here.
app = FastAPI(
    title="LMSBox Learning Service",
    description="Multi-tenant learning management API: organizations, courses, quizzes, surveys, pathways and progress.",
    version="1.0.0",
)
app.router.redirect_slashes = False

DEFAULT_CORS_ORIGINS = (
    "http://localhost",
    "http://localhost:3000",
    "http://localhost:5174",
    "http://localhost:8000",
)
extra_origins = [o.strip() for o in os.getenv("CORS_ORIGINS", "").split(",") if o.strip()]

app.add_middleware(
    CORSMiddleware,
    allow_origins=[*DEFAULT_CORS_ORIGINS, *extra_origins],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

WRITE_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})
IDENTITY_HEADERS = ("x-auth-request-user", "x-auth-request-email", "x-forwarded-user", "x-forwarded-email")
CREDENTIAL_HEADERS = ("authorization", "x-api-key")
# Signing in is itself a write made by someone without credentials yet
GUEST_WRITE_EXEMPT_PREFIXES = ("/auth/login-link",)


def _carries_identity(request: Request) -> bool:
    headers = request.headers
    return any(headers.get(name) for name in IDENTITY_HEADERS + CREDENTIAL_HEADERS)


@app.middleware("http")
async def enforce_readonly_for_guests(request: Request, call_next):
    """Reject anonymous writes early; route dependencies still validate whatever credentials are sent."""
    if request.method not in WRITE_METHODS:
        return await call_next(request)
    try:
        dev_mode = dev_mode_active()
    except RuntimeError as exc:
        logger.error("DEV_MODE misconfiguration detected: %s", exc)
        return JSONResponse({"detail": "DEV_MODE misconfigured"}, status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)

    exempt = (request.url.path or "").startswith(GUEST_WRITE_EXEMPT_PREFIXES)
    if not dev_mode and not exempt and not _carries_identity(request):
        return JSONResponse(
            {"detail": "Guest mode is read-only. Sign in to perform changes."},
            status_code=status.HTTP_401_UNAUTHORIZED,
        )
    return await call_next(request)


for api_router in (
    login.router,
    users.router,
    orgs.router,
    courses.router,
    groups.router,
    quizzes.router,
    surveys.router,
    pathways.router,
    reports.router,
    audits.router,
    learner.router,
    quizzes.learner_router,
    surveys.learner_router,
    pathways.learner_router,
    support.router,
):
    app.include_router(api_router)
