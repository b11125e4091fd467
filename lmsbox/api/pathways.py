"""
Learning pathway endpoints.

Managers build pathways out of the organization's courses and enrol learners;
learners see the pathways they are enrolled in with per-course lock state.
"""
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from lmsbox.audit import AuditAction, AuditStatus, safe_log
from lmsbox.api.deps import (
    ensure_pat_allows,
    ensure_pat_allows_read,
    get_current_user_context_or_pat,
    get_org_context,
    get_org_hint,
    require_org_manager,
    resolve_organization_id,
)
from lmsbox.db import models, schemas
from lmsbox.db.database import get_db
from lmsbox.db.repositories import courses as course_repo
from lmsbox.db.repositories import pathways as pathway_repo
from lmsbox.db.repositories import progress as progress_repo
from lmsbox.services import access, progress_service

router = APIRouter(prefix="/pathways", tags=["pathways"])
learner_router = APIRouter(prefix="/learner/pathways", tags=["learner"])


def _pathway_dict(pathway: models.LearningPathway, *, enrollment_count: Optional[int] = None):
    data = {
        "id": str(pathway.id),
        "organization_id": str(pathway.organization_id),
        "title": pathway.title,
        "description": pathway.description,
        "short_description": pathway.short_description,
        "category": pathway.category,
        "difficulty_level": pathway.difficulty_level,
        "estimated_duration_hours": pathway.estimated_duration_hours,
        "is_active": bool(pathway.is_active),
        "course_count": len(pathway.courses),
        "created_at": models.ensure_aware(pathway.created_at),
    }
    if enrollment_count is not None:
        data["enrollment_count"] = enrollment_count
    return data


def _enrollment_dict(row: models.LearnerPathwayProgress):
    return {
        "pathway_id": str(row.pathway_id),
        "user_id": str(row.user_id),
        "completed_courses": row.completed_courses,
        "total_courses": row.total_courses,
        "progress_percent": row.progress_percent,
        "is_completed": bool(row.is_completed),
        "completed_at": models.ensure_aware(row.completed_at),
        "enrolled_at": models.ensure_aware(row.enrolled_at),
        "current_course_id": str(row.current_course_id) if row.current_course_id else None,
    }


def _courses_with_titles(db: Session, pathway: models.LearningPathway):
    ids = [pc.course_id for pc in pathway.courses]
    titles = {}
    if ids:
        titles = {c.id: c.title for c in db.query(models.Course).filter(models.Course.id.in_(ids)).all()}
    return [(pc, titles.get(pc.course_id)) for pc in pathway.courses]


def _get_pathway_for_manager(db: Session, pathway_id: uuid.UUID, current_user, *, write: bool = False):
    pathway = pathway_repo.get_pathway(db, pathway_id)
    if not pathway:
        raise HTTPException(status_code=404, detail="Pathway not found")
    require_org_manager(current_user, pathway.organization_id, write=write)
    return pathway


def _recompute_all(db: Session, pathway: models.LearningPathway) -> None:
    progress_service.recompute_pathway_enrollments(db, [pathway.id])


def _audit(db: Session, action: AuditAction, user, pathway_id, organization_id, metadata=None) -> None:
    safe_log(
        db,
        action=action,
        status=AuditStatus.SUCCESS,
        target_type="learning_pathway",
        target_id=pathway_id,
        actor_user_id=user.id,
        organization_id=organization_id,
        metadata=metadata,
    )


@router.get("/")
def list_pathways(
    search: Optional[str] = None,
    is_active: Optional[bool] = None,
    db: Session = Depends(get_db),
    org_context=Depends(get_org_context),
):
    _user, current_user, org_id = org_context
    require_org_manager(current_user, org_id)
    pathways = pathway_repo.list_pathways(db, org_id, search=search, is_active=is_active)
    counts = pathway_repo.enrollment_counts(db, [p.id for p in pathways])
    return [_pathway_dict(p, enrollment_count=counts.get(p.id, 0)) for p in pathways]


@router.post("/", status_code=status.HTTP_201_CREATED)
def create_pathway(
    payload: schemas.PathwayCreate,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context_or_pat),
    org_hint: Optional[str] = Depends(get_org_hint),
):
    user, current_user = user_context
    org_id = resolve_organization_id(current_user, payload.organization_id or org_hint)
    require_org_manager(current_user, org_id, write=True)
    pathway = pathway_repo.create_pathway(db, organization_id=org_id, payload=payload, user_id=user.id)
    _audit(db, AuditAction.PATHWAY_CREATE, user, pathway.id, org_id, {"title": pathway.title})
    return _pathway_dict(pathway, enrollment_count=0)


@router.get("/{pathway_id}")
def get_pathway(
    pathway_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context_or_pat),
):
    _user, current_user = user_context
    pathway = _get_pathway_for_manager(db, pathway_id, current_user)
    data = _pathway_dict(pathway, enrollment_count=pathway_repo.enrollment_counts(db, [pathway.id]).get(pathway.id, 0))
    data["courses"] = [
        {
            "course_id": str(pc.course_id),
            "title": title,
            "sequence_order": pc.sequence_order,
            "is_mandatory": bool(pc.is_mandatory),
            "prerequisite_course_ids": list(pc.prerequisite_course_ids or []),
        }
        for pc, title in _courses_with_titles(db, pathway)
    ]
    return data


@router.put("/{pathway_id}")
def update_pathway(
    pathway_id: uuid.UUID,
    payload: schemas.PathwayUpdate,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context_or_pat),
):
    user, current_user = user_context
    pathway = _get_pathway_for_manager(db, pathway_id, current_user, write=True)
    if payload.title is not None and not payload.title.strip():
        raise HTTPException(status_code=422, detail="Pathway title cannot be empty")
    pathway = pathway_repo.update_pathway(db, pathway, payload)
    _audit(
        db,
        AuditAction.PATHWAY_UPDATE,
        user,
        pathway.id,
        pathway.organization_id,
        {"fields": sorted(payload.model_fields_set)},
    )
    return _pathway_dict(pathway)


@router.delete("/{pathway_id}")
def delete_pathway(
    pathway_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context_or_pat),
):
    user, current_user = user_context
    pathway = _get_pathway_for_manager(db, pathway_id, current_user, write=True)
    org_id, title = pathway.organization_id, pathway.title
    pathway_repo.delete_pathway(db, pathway)
    _audit(db, AuditAction.PATHWAY_DELETE, user, pathway_id, org_id, {"title": title})
    return {"status": "deleted"}


# Courses


@router.post("/{pathway_id}/courses", status_code=status.HTTP_201_CREATED)
def add_pathway_course(
    pathway_id: uuid.UUID,
    payload: schemas.PathwayCoursePayload,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context_or_pat),
):
    user, current_user = user_context
    pathway = _get_pathway_for_manager(db, pathway_id, current_user, write=True)
    course = course_repo.get_course(db, payload.course_id)
    if not course or course.organization_id != pathway.organization_id:
        raise HTTPException(status_code=422, detail="course_id does not reference a course of this organization")
    if pathway_repo.get_pathway_course(db, pathway.id, course.id):
        raise HTTPException(status_code=409, detail="Course already in pathway")
    present = {pc.course_id for pc in pathway.courses}
    missing = [str(cid) for cid in payload.prerequisite_course_ids if cid not in present]
    if missing:
        raise HTTPException(status_code=422, detail=f"Prerequisites must already be in the pathway: {', '.join(missing)}")
    link = pathway_repo.add_course(db, pathway, payload)
    _recompute_all(db, pathway)
    _audit(db, AuditAction.PATHWAY_UPDATE, user, pathway.id, pathway.organization_id, {"course_added": str(course.id)})
    return {
        "course_id": str(link.course_id),
        "title": course.title,
        "sequence_order": link.sequence_order,
        "is_mandatory": bool(link.is_mandatory),
        "prerequisite_course_ids": list(link.prerequisite_course_ids or []),
    }


@router.delete("/{pathway_id}/courses/{course_id}")
def remove_pathway_course(
    pathway_id: uuid.UUID,
    course_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context_or_pat),
):
    user, current_user = user_context
    pathway = _get_pathway_for_manager(db, pathway_id, current_user, write=True)
    if not pathway_repo.remove_course(db, pathway, course_id):
        raise HTTPException(status_code=404, detail="Course not in pathway")
    _recompute_all(db, pathway)
    _audit(db, AuditAction.PATHWAY_UPDATE, user, pathway.id, pathway.organization_id, {"course_removed": str(course_id)})
    return {"status": "removed"}


# Enrolments


@router.get("/{pathway_id}/enrollments")
def list_pathway_enrollments(
    pathway_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context_or_pat),
):
    _user, current_user = user_context
    pathway = _get_pathway_for_manager(db, pathway_id, current_user)
    items = []
    for row, learner in pathway_repo.list_enrollments(db, pathway.id):
        data = _enrollment_dict(row)
        data["email"] = learner.email
        data["display_name"] = learner.display_name
        items.append(data)
    return items


@router.post("/{pathway_id}/enrollments")
def enroll_learners(
    pathway_id: uuid.UUID,
    payload: schemas.PathwayEnrollmentPayload,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context_or_pat),
):
    user, current_user = user_context
    pathway = _get_pathway_for_manager(db, pathway_id, current_user, write=True)
    member_ids = {
        row[0]
        for row in db.query(models.OrganizationMembership.user_id)
        .filter(
            models.OrganizationMembership.organization_id == pathway.organization_id,
            models.OrganizationMembership.user_id.in_(list(payload.user_ids)),
        )
        .all()
    }
    missing = [str(uid) for uid in payload.user_ids if uid not in member_ids]
    if missing:
        raise HTTPException(status_code=422, detail=f"Users are not members of this organization: {', '.join(missing)}")
    rows = []
    for user_id in dict.fromkeys(payload.user_ids):
        row = pathway_repo.enroll(db, pathway_id=pathway.id, user_id=user_id)
        rows.append(progress_service.recompute_pathway_progress(db, row))
    db.commit()
    _audit(db, AuditAction.PATHWAY_UPDATE, user, pathway.id, pathway.organization_id, {"enrolled": len(rows)})
    return [_enrollment_dict(row) for row in rows]


@router.delete("/{pathway_id}/enrollments/{user_id}")
def unenroll_learner(
    pathway_id: uuid.UUID,
    user_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context_or_pat),
):
    user, current_user = user_context
    pathway = _get_pathway_for_manager(db, pathway_id, current_user, write=True)
    if not pathway_repo.unenroll(db, pathway_id=pathway.id, user_id=user_id):
        raise HTTPException(status_code=404, detail="Enrollment not found")
    _audit(db, AuditAction.PATHWAY_UPDATE, user, pathway.id, pathway.organization_id, {"unenrolled": str(user_id)})
    return {"status": "removed"}


# Learner


def learner_pathway_detail(db: Session, user_id: uuid.UUID, row: models.LearnerPathwayProgress, pathway: models.LearningPathway):
    entries = _courses_with_titles(db, pathway)
    done = progress_repo.course_progress_map(db, user_id=user_id, course_ids=[pc.course_id for pc, _t in entries])
    completed_ids = {str(cid) for cid, p in done.items() if p.completed}
    courses = []
    for pc, title in entries:
        course_row = done.get(pc.course_id)
        prereqs = list(pc.prerequisite_course_ids or [])
        courses.append(
            {
                "course_id": str(pc.course_id),
                "title": title,
                "sequence_order": pc.sequence_order,
                "is_mandatory": bool(pc.is_mandatory),
                "prerequisite_course_ids": prereqs,
                "progress_percent": course_row.progress_percent if course_row else 0,
                "completed": bool(course_row.completed) if course_row else False,
                "locked": any(p not in completed_ids for p in prereqs),
            }
        )
    data = _pathway_dict(pathway)
    data["progress"] = _enrollment_dict(row)
    data["courses"] = courses
    return data


@learner_router.get("/")
def list_my_pathways(
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context_or_pat),
):
    user, current_user = user_context
    ensure_pat_allows_read(current_user)
    restricted_to = access.token_organization_id(current_user)
    return [
        learner_pathway_detail(db, user.id, row, pathway)
        for row, pathway in pathway_repo.list_enrollments_for_user(db, user.id)
        if pathway.is_active and (not restricted_to or pathway.organization_id == restricted_to)
    ]


@learner_router.get("/{pathway_id}")
def get_my_pathway(
    pathway_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context_or_pat),
):
    user, current_user = user_context
    ensure_pat_allows_read(current_user)
    found = pathway_repo.list_enrollments_for_user(db, user.id, pathway_id=pathway_id)
    if not found:
        raise HTTPException(status_code=404, detail="Pathway not found")
    row, pathway = found[0]
    ensure_pat_allows(current_user, pathway.organization_id)
    row.last_accessed_at = models.now_utc()
    db.commit()
    return learner_pathway_detail(db, user.id, row, pathway)
