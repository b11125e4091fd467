"""
Learning pathway repository functions.
"""
from __future__ import annotations

import uuid
from typing import Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from lmsbox.db import models, schemas


def get_pathway(db: Session, pathway_id: uuid.UUID) -> Optional[models.LearningPathway]:
    return db.query(models.LearningPathway).filter(models.LearningPathway.id == pathway_id).first()


def list_pathways(
    db: Session,
    organization_id: uuid.UUID,
    *,
    search: Optional[str] = None,
    is_active: Optional[bool] = None,
) -> List[models.LearningPathway]:
    query = db.query(models.LearningPathway).filter(models.LearningPathway.organization_id == organization_id)
    if search:
        query = query.filter(models.LearningPathway.title.ilike(f"%{search.strip()}%"))
    if is_active is not None:
        query = query.filter(models.LearningPathway.is_active.is_(is_active))
    return query.order_by(models.LearningPathway.created_at.desc()).all()


def enrollment_counts(db: Session, pathway_ids: List[uuid.UUID]) -> Dict[uuid.UUID, int]:
    if not pathway_ids:
        return {}
    rows = (
        db.query(models.LearnerPathwayProgress.pathway_id, func.count(models.LearnerPathwayProgress.id))
        .filter(models.LearnerPathwayProgress.pathway_id.in_(pathway_ids))
        .group_by(models.LearnerPathwayProgress.pathway_id)
        .all()
    )
    return {pid: count for pid, count in rows}


def create_pathway(
    db: Session,
    *,
    organization_id: uuid.UUID,
    payload: schemas.PathwayCreate,
    user_id: uuid.UUID,
) -> models.LearningPathway:
    data = payload.model_dump(exclude={"organization_id"})
    pathway = models.LearningPathway(organization_id=organization_id, created_by=user_id, **data)
    db.add(pathway)
    db.commit()
    db.refresh(pathway)
    return pathway


def update_pathway(db: Session, pathway: models.LearningPathway, payload: schemas.PathwayUpdate) -> models.LearningPathway:
    for key, value in payload.model_dump(exclude_unset=True).items():
        if value is None and key not in ("description", "short_description", "category"):
            continue
        setattr(pathway, key, value)
    db.commit()
    db.refresh(pathway)
    return pathway


def delete_pathway(db: Session, pathway: models.LearningPathway) -> None:
    db.query(models.LearnerPathwayProgress).filter(
        models.LearnerPathwayProgress.pathway_id == pathway.id
    ).delete(synchronize_session=False)
    db.delete(pathway)
    db.commit()


def get_pathway_course(db: Session, pathway_id: uuid.UUID, course_id: uuid.UUID) -> Optional[models.PathwayCourse]:
    return (
        db.query(models.PathwayCourse)
        .filter(models.PathwayCourse.pathway_id == pathway_id, models.PathwayCourse.course_id == course_id)
        .first()
    )


def add_course(db: Session, pathway: models.LearningPathway, payload: schemas.PathwayCoursePayload) -> models.PathwayCourse:
    sequence_order = payload.sequence_order
    if sequence_order is None:
        sequence_order = max((pc.sequence_order for pc in pathway.courses), default=-1) + 1
    link = models.PathwayCourse(
        pathway_id=pathway.id,
        course_id=payload.course_id,
        sequence_order=sequence_order,
        is_mandatory=payload.is_mandatory,
        prerequisite_course_ids=[str(cid) for cid in payload.prerequisite_course_ids],
    )
    db.add(link)
    db.commit()
    db.refresh(link)
    db.refresh(pathway)
    return link


def remove_course(db: Session, pathway: models.LearningPathway, course_id: uuid.UUID) -> bool:
    link = get_pathway_course(db, pathway.id, course_id)
    if not link:
        return False
    # Drop the removed course from other entries' prerequisites
    for other in pathway.courses:
        prereqs = list(other.prerequisite_course_ids or [])
        if str(course_id) in prereqs:
            other.prerequisite_course_ids = [p for p in prereqs if p != str(course_id)]
    db.delete(link)
    db.commit()
    db.refresh(pathway)
    return True


def pathway_ids_for_course(db: Session, course_id: uuid.UUID) -> List[uuid.UUID]:
    rows = db.query(models.PathwayCourse.pathway_id).filter(models.PathwayCourse.course_id == course_id).all()
    return [row[0] for row in rows]


# Enrolments


def get_enrollment(db: Session, *, pathway_id: uuid.UUID, user_id: uuid.UUID) -> Optional[models.LearnerPathwayProgress]:
    return (
        db.query(models.LearnerPathwayProgress)
        .filter(
            models.LearnerPathwayProgress.pathway_id == pathway_id,
            models.LearnerPathwayProgress.user_id == user_id,
        )
        .first()
    )


def enroll(db: Session, *, pathway_id: uuid.UUID, user_id: uuid.UUID) -> models.LearnerPathwayProgress:
    row = get_enrollment(db, pathway_id=pathway_id, user_id=user_id)
    if row is None:
        row = models.LearnerPathwayProgress(pathway_id=pathway_id, user_id=user_id)
        db.add(row)
        db.flush()
    return row


def unenroll(db: Session, *, pathway_id: uuid.UUID, user_id: uuid.UUID) -> bool:
    row = get_enrollment(db, pathway_id=pathway_id, user_id=user_id)
    if not row:
        return False
    db.delete(row)
    db.commit()
    return True


def list_enrollments(db: Session, pathway_id: uuid.UUID):
    return (
        db.query(models.LearnerPathwayProgress, models.User)
        .join(models.User, models.User.id == models.LearnerPathwayProgress.user_id)
        .filter(models.LearnerPathwayProgress.pathway_id == pathway_id)
        .order_by(models.User.email.asc())
        .all()
    )


def list_enrollments_for_user(db: Session, user_id: uuid.UUID, pathway_id: Optional[uuid.UUID] = None):
    query = (
        db.query(models.LearnerPathwayProgress, models.LearningPathway)
        .join(models.LearningPathway, models.LearningPathway.id == models.LearnerPathwayProgress.pathway_id)
        .filter(models.LearnerPathwayProgress.user_id == user_id)
    )
    if pathway_id:
        query = query.filter(models.LearnerPathwayProgress.pathway_id == pathway_id)
    return query.order_by(models.LearnerPathwayProgress.enrolled_at.desc()).all()


def enrollments_for_pathways(db: Session, *, user_id: uuid.UUID, pathway_ids: List[uuid.UUID]) -> List[models.LearnerPathwayProgress]:
    if not pathway_ids:
        return []
    return (
        db.query(models.LearnerPathwayProgress)
        .filter(
            models.LearnerPathwayProgress.user_id == user_id,
            models.LearnerPathwayProgress.pathway_id.in_(pathway_ids),
        )
        .all()
    )
