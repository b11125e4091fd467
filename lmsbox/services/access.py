"""
Course access decisions.

Managers and instructors of the course's organization always see it.
Learners see a non-archived course when one of their active group
memberships maps to it.
"""
from __future__ import annotations

from typing import Any, Dict, List

from sqlalchemy.orm import Session

from lmsbox.db import models
from lmsbox.db.repositories import groups as group_repo
from lmsbox.utils.role_permissions import WRITE_ROLES


def _org_role(current_user: Dict[str, Any], organization_id) -> str | None:
    membership = (current_user.get("memberships_by_org") or {}).get(str(organization_id))
    return membership.get("role") if membership else None


def is_staff_for(current_user: Dict[str, Any], organization_id) -> bool:
    if current_user.get("is_superadmin"):
        return True
    return _org_role(current_user, organization_id) in WRITE_ROLES


def can_access_course(db: Session, current_user: Dict[str, Any], course: models.Course) -> bool:
    if is_staff_for(current_user, course.organization_id):
        return True
    if course.status == "archived":
        return False
    return course.id in group_repo.accessible_course_ids(db, current_user["id"])


def token_organization_id(current_user: Dict[str, Any]):
    """Organization a bearer token is restricted to, if any."""
    return ((current_user or {}).get("pat") or {}).get("organization_id")


def accessible_courses(db: Session, current_user: Dict[str, Any]) -> List[models.Course]:
    """Courses a learner reaches through groups, excluding archived ones.

    An organization-restricted token only sees that organization's courses.
    """
    ids = group_repo.accessible_course_ids(db, current_user["id"])
    if not ids:
        return []
    query = db.query(models.Course).filter(models.Course.id.in_(list(ids)), models.Course.status != "archived")
    restricted_to = token_organization_id(current_user)
    if restricted_to:
        query = query.filter(models.Course.organization_id == restricted_to)
    return query.order_by(models.Course.title.asc()).all()
