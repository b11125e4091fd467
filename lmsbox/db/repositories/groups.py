"""
Learning group repository functions.

Groups bundle learners and courses inside one organization. A learner sees a
course through any active membership of a group the course is assigned to.
"""
from __future__ import annotations

import uuid
from typing import Dict, Iterable, List, Optional, Set

from sqlalchemy import func
from sqlalchemy.orm import Session

from lmsbox.db import models


def get_group(db: Session, group_id: uuid.UUID) -> Optional[models.LearningGroup]:
    return db.query(models.LearningGroup).filter(models.LearningGroup.id == group_id).first()


def get_group_by_name(db: Session, organization_id: uuid.UUID, name: str) -> Optional[models.LearningGroup]:
    return (
        db.query(models.LearningGroup)
        .filter(
            models.LearningGroup.organization_id == organization_id,
            func.lower(models.LearningGroup.name) == name.lower(),
        )
        .first()
    )


def list_groups(db: Session, organization_id: uuid.UUID, *, search: Optional[str] = None) -> List[models.LearningGroup]:
    query = db.query(models.LearningGroup).filter(models.LearningGroup.organization_id == organization_id)
    if search:
        query = query.filter(models.LearningGroup.name.ilike(f"%{search.strip()}%"))
    return query.order_by(models.LearningGroup.name.asc()).all()


def member_counts(db: Session, group_ids: Iterable[uuid.UUID]) -> Dict[uuid.UUID, int]:
    ids = list(group_ids)
    if not ids:
        return {}
    rows = (
        db.query(models.LearnerGroup.group_id, func.count(models.LearnerGroup.id))
        .filter(models.LearnerGroup.group_id.in_(ids), models.LearnerGroup.is_active.is_(True))
        .group_by(models.LearnerGroup.group_id)
        .all()
    )
    return {gid: count for gid, count in rows}


def course_counts(db: Session, group_ids: Iterable[uuid.UUID]) -> Dict[uuid.UUID, int]:
    ids = list(group_ids)
    if not ids:
        return {}
    rows = (
        db.query(models.GroupCourse.group_id, func.count(models.GroupCourse.id))
        .filter(models.GroupCourse.group_id.in_(ids))
        .group_by(models.GroupCourse.group_id)
        .all()
    )
    return {gid: count for gid, count in rows}


def create_group(
    db: Session,
    *,
    organization_id: uuid.UUID,
    name: str,
    description: Optional[str],
    user_id: uuid.UUID,
) -> models.LearningGroup:
    group = models.LearningGroup(
        organization_id=organization_id,
        name=name,
        description=description,
        created_by=user_id,
    )
    db.add(group)
    db.commit()
    db.refresh(group)
    return group


def update_group(db: Session, group: models.LearningGroup, changes: Dict[str, object]) -> models.LearningGroup:
    for key, value in changes.items():
        setattr(group, key, value)
    db.commit()
    db.refresh(group)
    return group


def delete_group(db: Session, group: models.LearningGroup) -> None:
    db.query(models.LearnerGroup).filter(models.LearnerGroup.group_id == group.id).delete(synchronize_session=False)
    db.query(models.GroupCourse).filter(models.GroupCourse.group_id == group.id).delete(synchronize_session=False)
    db.delete(group)
    db.commit()


def list_group_members(db: Session, group_id: uuid.UUID, *, include_inactive: bool = False):
    query = (
        db.query(models.LearnerGroup, models.User)
        .join(models.User, models.User.id == models.LearnerGroup.user_id)
        .filter(models.LearnerGroup.group_id == group_id)
    )
    if not include_inactive:
        query = query.filter(models.LearnerGroup.is_active.is_(True))
    return query.order_by(models.User.email.asc()).all()


def add_members(db: Session, group: models.LearningGroup, user_ids: Iterable[uuid.UUID]) -> int:
    """Add or reactivate memberships; returns how many rows changed."""
    changed = 0
    for user_id in dict.fromkeys(user_ids):
        row = (
            db.query(models.LearnerGroup)
            .filter(models.LearnerGroup.group_id == group.id, models.LearnerGroup.user_id == user_id)
            .first()
        )
        if row is None:
            db.add(models.LearnerGroup(group_id=group.id, user_id=user_id, is_active=True))
            changed += 1
        elif not row.is_active:
            row.is_active = True
            row.joined_at = models.now_utc()
            changed += 1
    db.commit()
    return changed


def remove_members(db: Session, group: models.LearningGroup, user_ids: Iterable[uuid.UUID]) -> int:
    """Deactivate memberships; rows are kept for history."""
    ids = list(user_ids)
    if not ids:
        return 0
    changed = (
        db.query(models.LearnerGroup)
        .filter(
            models.LearnerGroup.group_id == group.id,
            models.LearnerGroup.user_id.in_(ids),
            models.LearnerGroup.is_active.is_(True),
        )
        .update({models.LearnerGroup.is_active: False}, synchronize_session=False)
    )
    db.commit()
    return changed


def list_group_courses(db: Session, group_id: uuid.UUID) -> List[models.Course]:
    return (
        db.query(models.Course)
        .join(models.GroupCourse, models.GroupCourse.course_id == models.Course.id)
        .filter(models.GroupCourse.group_id == group_id)
        .order_by(models.Course.title.asc())
        .all()
    )


def assign_courses(db: Session, group: models.LearningGroup, course_ids: Iterable[uuid.UUID]) -> int:
    existing = {
        row.course_id
        for row in db.query(models.GroupCourse).filter(models.GroupCourse.group_id == group.id).all()
    }
    added = 0
    for course_id in dict.fromkeys(course_ids):
        if course_id in existing:
            continue
        db.add(models.GroupCourse(group_id=group.id, course_id=course_id))
        added += 1
    db.commit()
    return added


def unassign_courses(db: Session, group: models.LearningGroup, course_ids: Iterable[uuid.UUID]) -> int:
    ids = list(course_ids)
    if not ids:
        return 0
    removed = (
        db.query(models.GroupCourse)
        .filter(models.GroupCourse.group_id == group.id, models.GroupCourse.course_id.in_(ids))
        .delete(synchronize_session=False)
    )
    db.commit()
    return removed


def accessible_course_ids(db: Session, user_id: uuid.UUID) -> Set[uuid.UUID]:
    """Courses reachable through the user's active group memberships."""
    rows = (
        db.query(models.GroupCourse.course_id)
        .join(models.LearnerGroup, models.LearnerGroup.group_id == models.GroupCourse.group_id)
        .filter(models.LearnerGroup.user_id == user_id, models.LearnerGroup.is_active.is_(True))
        .distinct()
        .all()
    )
    return {row[0] for row in rows}
