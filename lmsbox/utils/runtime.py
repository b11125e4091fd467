"""
DEV_MODE guard.

Dev mode impersonates a fixed local user, so it is only honoured while the
learner-facing front end is served from a local host.
"""
import os
from typing import FrozenSet, Optional
from urllib.parse import urlparse

LOCAL_HOSTS: FrozenSet[str] = frozenset({"localhost", "127.0.0.1", "::1"})


def _frontend_host() -> Optional[str]:
    raw = (os.getenv("FRONTEND_BASE_URL") or os.getenv("APP_BASE_URL") or "").strip()
    if not raw:
        return None
    if "://" not in raw:
        raw = "http://" + raw
    return urlparse(raw).hostname


def _permitted_hosts() -> FrozenSet[str]:
    extra = os.getenv("DEV_MODE_ALLOWED_HOSTS", "")
    return LOCAL_HOSTS | {h.strip().lower() for h in extra.split(",") if h.strip()}


def dev_mode_active() -> bool:
    """True when DEV_MODE=true and the deployment is local.

    Raises RuntimeError when DEV_MODE is requested against a non-local front
    end, or when no front-end URL is configured outside tests and
    ALLOW_DEV_MODE is not set.
    """
    if os.getenv("DEV_MODE", "false").lower() != "true":
        return False

    host = _frontend_host()
    if host is None:
        opted_in = os.getenv("ALLOW_DEV_MODE", "false").lower() == "true"
        if not opted_in and not os.getenv("PYTEST_CURRENT_TEST"):
            raise RuntimeError("DEV_MODE=true needs FRONTEND_BASE_URL on a local host (or ALLOW_DEV_MODE=true)")
        return True

    permitted = _permitted_hosts()
    if host.lower() not in permitted:
        raise RuntimeError(f"DEV_MODE=true refused for front end host '{host}'; permitted: {sorted(permitted)}")
    return True
