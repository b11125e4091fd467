"""
Permission checks for organization-scoped resources.

Key helpers:
- get_org_membership(org_id, current_user)
- is_member_of_org(org_id, current_user)
- can_manage_org(org_id, current_user)
- can_author_in_org(org_id, current_user)
"""
from typing import Optional, Dict, Any
from lmsbox.utils.role_permissions import (
    role_allows_write as _role_allows_write,
    role_allows_manage as _role_allows_manage,
)


def get_org_membership(org_id, current_user: Optional[Dict[str, Any]]):
    """Return the membership entry of ``current_user`` for ``org_id`` or None."""
    if not current_user or org_id is None:
        return None
    by_org = current_user.get("memberships_by_org", {}) or {}
    m = by_org.get(str(org_id))
    if m:
        return m
    for item in current_user.get("memberships", []) or []:
        if item and item.get("organization_id") == str(org_id):
            return item
    return None


def is_member_of_org(org_id, current_user: Optional[Dict[str, Any]]) -> bool:
    if not current_user:
        return False
    if current_user.get("is_superadmin"):
        return True
    return get_org_membership(org_id, current_user) is not None


def can_manage_org(org_id, current_user: Optional[Dict[str, Any]]) -> bool:
    """Owners and admins manage members, settings, groups, pathways, surveys and reports."""
    if not current_user:
        return False
    if current_user.get("is_superadmin"):
        return True
    m = get_org_membership(org_id, current_user)
    return bool(m and _role_allows_manage(m.get("role", "")))


def can_author_in_org(org_id, current_user: Optional[Dict[str, Any]]) -> bool:
    """Instructors, admins and owners author courses, lessons and quizzes."""
    if not current_user:
        return False
    if current_user.get("is_superadmin"):
        return True
    m = get_org_membership(org_id, current_user)
    return bool(m and _role_allows_write(m.get("role", "")) and m.get("can_write", True))
