"""
Support and build information endpoints.

Build metadata, a database health probe and the runtime feature flags.
"""
from __future__ import annotations

import os
import logging

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.responses import JSONResponse

from lmsbox.db.database import get_db
from lmsbox.utils.feature_flags import get_feature_flags

logger = logging.getLogger(__name__)

SERVICE_NAME = "lmsbox-service"

router = APIRouter(tags=["support"])  # keep paths stable (no prefix)


@router.get("/build-info")
def get_build_info():
    """Return build and deployment information for the running service."""
    build_sha = os.getenv("BUILD_SHA")
    build_timestamp = os.getenv("BUILD_TIMESTAMP")
    image_tag = os.getenv("IMAGE_TAG")
    version = os.getenv("VERSION", "unknown")

    return {
        "build_sha": build_sha if build_sha else None,
        "build_timestamp": build_timestamp if build_timestamp else None,
        "image_tag": image_tag if image_tag else None,
        "service_name": SERVICE_NAME,
        "version": version,
    }


@router.get("/health")
def health_check(db: Session = Depends(get_db)):
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        logger.error("Health check failed: %s", exc)
        return JSONResponse(
            status_code=503,
            content={"status": "unavailable", "service": SERVICE_NAME, "database": "unreachable"},
        )
    return {"status": "ok", "service": SERVICE_NAME, "database": "ok"}


@router.get("/features")
def get_features():
    return dict(get_feature_flags())
