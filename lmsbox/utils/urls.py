"""
URL utilities for building absolute links in emails.

Primary source: FRONTEND_BASE_URL (e.g., https://learn.example.com)
Fallback: APP_BASE_URL, then APP_HOST (scheme added heuristically if missing).
"""
from __future__ import annotations

import os
from urllib.parse import urlencode

DEFAULT_FRONTEND_BASE_URL = "http://localhost:5174"


def _add_scheme_if_missing(host: str) -> str:
    h = host.strip()
    if not h:
        return DEFAULT_FRONTEND_BASE_URL
    if h.startswith("http://") or h.startswith("https://"):
        return h
    # http for local hosts, https elsewhere
    lower = h.lower()
    if lower.startswith("localhost") or lower.startswith("127.0.0.1"):
        return f"http://{h}"
    return f"https://{h}"


def _strip_trailing_slash(url: str) -> str:
    return url.rstrip("/")


def get_frontend_base_url() -> str:
    """Return the normalized base URL of the learner-facing front end."""
    for var in ("FRONTEND_BASE_URL", "APP_BASE_URL"):
        value = os.getenv(var)
        if value and value.strip():
            return _strip_trailing_slash(_add_scheme_if_missing(value))
    host = os.getenv("APP_HOST")
    if host and host.strip():
        return _strip_trailing_slash(_add_scheme_if_missing(host))
    return DEFAULT_FRONTEND_BASE_URL


def build_login_link(encoded_token: str, base_url: str | None = None) -> str:
    """Build the passwordless sign-in URL the front end verifies."""
    base = _strip_trailing_slash(base_url) if base_url else get_frontend_base_url()
    return f"{base}/verify-login?{urlencode({'token': encoded_token})}"
