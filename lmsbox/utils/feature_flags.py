"""
Runtime feature switches.

Each optional area of the service (certificates, surveys, the custom report
builder and login-link sign-in) can be turned off with a ``FEATURE_*``
environment variable. Values are read once and cached; call
``refresh_feature_flag_cache()`` after changing the environment.
"""

from __future__ import annotations

import os
from functools import lru_cache
from typing import Dict, Literal

FeatureFlagKey = Literal[
    "certificates_enabled",
    "surveys_enabled",
    "custom_reports_enabled",
    "login_links_enabled",
]

# flag -> environment variable; every flag defaults to on
FLAG_ENV_VARS: Dict[FeatureFlagKey, str] = {
    "certificates_enabled": "FEATURE_CERTIFICATES_ENABLED",
    "surveys_enabled": "FEATURE_SURVEYS_ENABLED",
    "custom_reports_enabled": "FEATURE_CUSTOM_REPORTS_ENABLED",
    "login_links_enabled": "FEATURE_LOGIN_LINKS_ENABLED",
}

_OFF = frozenset({"", "0", "false", "no", "off"})
_ON = frozenset({"1", "true", "yes", "on"})


def _env_switch(name: str, default: bool = True) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    value = raw.strip().lower()
    if value in _OFF:
        return False
    if value in _ON:
        return True
    # unrecognised values keep the default
    return default


@lru_cache(maxsize=None)
def get_feature_flags() -> Dict[FeatureFlagKey, bool]:
    return {flag: _env_switch(env_var) for flag, env_var in FLAG_ENV_VARS.items()}


def is_feature_enabled(flag: FeatureFlagKey) -> bool:
    return get_feature_flags()[flag]


def certificates_enabled() -> bool:
    return is_feature_enabled("certificates_enabled")


def surveys_enabled() -> bool:
    return is_feature_enabled("surveys_enabled")


def custom_reports_enabled() -> bool:
    return is_feature_enabled("custom_reports_enabled")


def login_links_enabled() -> bool:
    return is_feature_enabled("login_links_enabled")


def refresh_feature_flag_cache() -> None:
    get_feature_flags.cache_clear()
