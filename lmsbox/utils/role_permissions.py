"""
Organization roles and what each one may do.

``can_read``/``can_write`` are the defaults stored on a new membership.
Management (members, settings, groups, pathways, surveys, reports) and
authoring (courses, lessons, quizzes) are checked against the role groups.
"""

from typing import Dict, FrozenSet, Set

ROLE_OWNER = "owner"
ROLE_ADMIN = "admin"
ROLE_INSTRUCTOR = "instructor"
ROLE_LEARNER = "learner"

# role -> default (can_read, can_write)
_DEFAULTS = {
    ROLE_OWNER: (True, True),
    ROLE_ADMIN: (True, True),
    ROLE_INSTRUCTOR: (True, True),
    ROLE_LEARNER: (True, False),
}

WRITE_ROLES: FrozenSet[str] = frozenset({ROLE_OWNER, ROLE_ADMIN, ROLE_INSTRUCTOR})
MANAGE_ROLES: FrozenSet[str] = frozenset({ROLE_OWNER, ROLE_ADMIN})


def get_allowed_roles() -> Set[str]:
    return set(_DEFAULTS)


def get_role_permissions(role: str) -> Dict[str, bool]:
    """Default membership flags for ``role``; ValueError for unknown roles."""
    try:
        can_read, can_write = _DEFAULTS[role]
    except KeyError:
        raise ValueError(f"Unknown role '{role}'. Allowed roles: {sorted(_DEFAULTS)}") from None
    return {"can_read": can_read, "can_write": can_write}


def role_allows_write(role: str) -> bool:
    return role in WRITE_ROLES


def role_allows_manage(role: str) -> bool:
    return role in MANAGE_ROLES
