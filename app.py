"""
App assembly entry point.

Re-exports the FastAPI `app` from `lmsbox.api.main` so `uvicorn app:app`
works from the repository root.
"""

from lmsbox.api.main import app  # noqa: F401
