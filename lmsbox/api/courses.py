"""
Course authoring endpoints.

Courses carry their lessons inline: create accepts an optional lesson list
and update synchronises the stored lessons with the payload when present.
Instructors and managers of the course's organization write; any member
reads.
"""
import logging
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from lmsbox.audit import AuditAction, AuditStatus, safe_log
from lmsbox.api.deps import (
    get_current_user_context_or_pat,
    get_org_context,
    get_org_hint,
    require_org_author,
    require_org_member,
    resolve_organization_id,
)
from lmsbox.db import models, schemas
from lmsbox.db.database import get_db
from lmsbox.db.repositories import courses as course_repo
from lmsbox.db.repositories import surveys as survey_repo
from lmsbox.services import progress_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/courses", tags=["courses"])


def _get_course_or_404(db: Session, course_id: uuid.UUID) -> models.Course:
    course = course_repo.get_course(db, course_id)
    if not course:
        raise HTTPException(status_code=404, detail="Course not found")
    return course


def _check_survey_links(db: Session, organization_id: uuid.UUID, payload) -> None:
    for field in ("pre_course_survey_id", "post_course_survey_id"):
        survey_id = getattr(payload, field, None)
        if survey_id is None:
            continue
        survey = survey_repo.get_survey(db, survey_id)
        if not survey or survey.organization_id != organization_id:
            raise HTTPException(status_code=422, detail=f"{field} does not reference a survey of this organization")


@router.get("/", response_model=schemas.PaginatedCourses)
def list_courses(
    search: Optional[str] = None,
    status_filter: Optional[str] = Query(default=None, alias="status"),
    category: Optional[str] = None,
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, ge=1, le=100),
    db: Session = Depends(get_db),
    org_context=Depends(get_org_context),
):
    _user, current_user, org_id = org_context
    require_org_member(current_user, org_id)
    rows, total = course_repo.list_courses(
        db,
        org_id,
        search=search,
        status=status_filter,
        category=category,
        page=page,
        page_size=page_size,
    )
    ids = [c.id for c in rows]
    lessons = course_repo.lesson_counts(db, ids)
    enrollments = course_repo.enrollment_counts(db, ids)
    items = [
        schemas.CourseSummary(
            id=c.id,
            title=c.title,
            short_description=c.short_description,
            category=c.category,
            status=c.status,
            lesson_count=lessons.get(c.id, 0),
            enrollment_count=enrollments.get(c.id, 0),
            created_at=models.ensure_aware(c.created_at),
        )
        for c in rows
    ]
    return {"items": items, "total": total, "page": page, "page_size": page_size}


@router.get("/{course_id}", response_model=schemas.Course)
def get_course(
    course_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context_or_pat),
):
    _user, current_user = user_context
    course = _get_course_or_404(db, course_id)
    require_org_member(current_user, course.organization_id)
    return course


@router.post("/", response_model=schemas.Course, status_code=status.HTTP_201_CREATED)
def create_course(
    payload: schemas.CourseCreate,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context_or_pat),
    org_hint: Optional[str] = Depends(get_org_hint),
):
    user, current_user = user_context
    org_id = resolve_organization_id(current_user, payload.organization_id or org_hint)
    require_org_author(current_user, org_id, write=True)
    _check_survey_links(db, org_id, payload)
    try:
        course = course_repo.create_course(db, organization_id=org_id, payload=payload, user_id=user.id)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc))

    safe_log(
        db,
        action=AuditAction.COURSE_CREATE,
        status=AuditStatus.SUCCESS,
        target_type="course",
        target_id=course.id,
        actor_user_id=user.id,
        organization_id=org_id,
        metadata={"title": course.title, "lessons": len(course.lessons)},
    )
    return course


@router.put("/{course_id}", response_model=schemas.Course)
def update_course(
    course_id: uuid.UUID,
    payload: schemas.CourseUpdate,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context_or_pat),
):
    user, current_user = user_context
    course = _get_course_or_404(db, course_id)
    require_org_author(current_user, course.organization_id, write=True)
    _check_survey_links(db, course.organization_id, payload)
    try:
        course = course_repo.update_course(db, course, payload, user_id=user.id)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc))

    safe_log(
        db,
        action=AuditAction.COURSE_UPDATE,
        status=AuditStatus.SUCCESS,
        target_type="course",
        target_id=course.id,
        actor_user_id=user.id,
        organization_id=course.organization_id,
        metadata={"fields": sorted(payload.model_fields_set)},
    )
    return course


@router.delete("/{course_id}")
def delete_course(
    course_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context_or_pat),
):
    user, current_user = user_context
    course = _get_course_or_404(db, course_id)
    org_id = course.organization_id
    require_org_author(current_user, org_id, write=True)
    title = course.title
    pathway_ids = course_repo.delete_course(db, course)
    refreshed = progress_service.recompute_pathway_enrollments(db, pathway_ids)
    logger.info("Course %s deleted by %s; %d pathway enrolments refreshed", course_id, user.id, refreshed)
    safe_log(
        db,
        action=AuditAction.COURSE_DELETE,
        status=AuditStatus.SUCCESS,
        target_type="course",
        target_id=course_id,
        actor_user_id=user.id,
        organization_id=org_id,
        metadata={"title": title},
    )
    return {"status": "deleted"}
