"""
Learner-facing course, progress and certificate endpoints.

Every route works on the calling user's own progress. Course visibility goes
through ``services.access`` so staff of the course's organization always
see it while learners need an active group assignment.
"""
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy.orm import Session

from lmsbox.audit import AuditAction, AuditStatus, safe_log
from lmsbox.api.deps import (
    ensure_pat_allows,
    ensure_pat_allows_read,
    ensure_pat_allows_write,
    get_current_user_context_or_pat,
)
from lmsbox.db import models, schemas
from lmsbox.db.database import get_db
from lmsbox.db.repositories import courses as course_repo
from lmsbox.db.repositories import progress as progress_repo
from lmsbox.services import access, certificate_service, progress_service
from lmsbox.utils.feature_flags import certificates_enabled

router = APIRouter(prefix="/learner", tags=["learner"])

PROGRESS_FILTERS = ("all", "not_started", "in_progress", "completed")


def format_duration(seconds: Optional[int]) -> Optional[str]:
    if seconds is None:
        return None
    minutes, secs = divmod(int(seconds), 60)
    return f"{minutes:02d}:{secs:02d}"


def lesson_url(lesson: models.Lesson) -> Optional[str]:
    if lesson.lesson_type == "video":
        return lesson.video_url
    if lesson.lesson_type == "scorm":
        return lesson.scorm_entry_url or lesson.scorm_url
    if lesson.lesson_type == "document":
        return lesson.document_url
    return None


def _matches_progress(percent: int, progress: str) -> bool:
    if progress == "not_started":
        return percent <= 0
    if progress == "in_progress":
        return 0 < percent < 100
    if progress == "completed":
        return percent >= 100
    return True


def _get_accessible_course(db: Session, current_user, course_id: uuid.UUID, *, write: bool = False) -> models.Course:
    course = course_repo.get_course(db, course_id)
    if not course or not access.can_access_course(db, current_user, course):
        raise HTTPException(status_code=404, detail="Course not found")
    ensure_pat_allows(current_user, course.organization_id, write=write)
    return course


def _get_course_lesson(db: Session, course: models.Course, lesson_id: uuid.UUID) -> models.Lesson:
    lesson = course_repo.get_lesson(db, lesson_id)
    if not lesson or lesson.course_id != course.id:
        raise HTTPException(status_code=404, detail="Lesson not found")
    return lesson


def _require_certificates() -> None:
    if not certificates_enabled():
        raise HTTPException(status_code=503, detail="Certificates are currently disabled")


def _lesson_progress_dict(lesson: models.Lesson, row: Optional[models.LearnerProgress]):
    return {
        "id": str(lesson.id),
        "title": lesson.title,
        "content": lesson.content,
        "ordinal": lesson.ordinal,
        "lesson_type": lesson.lesson_type,
        "quiz_id": str(lesson.quiz_id) if lesson.quiz_id else None,
        "url": lesson_url(lesson),
        "duration": format_duration(lesson.video_duration_seconds) if lesson.lesson_type == "video" else None,
        "is_optional": bool(lesson.is_optional),
        "progress_percent": row.progress_percent if row else 0,
        "completed": bool(row.completed) if row else False,
        "completed_at": models.ensure_aware(row.completed_at) if row else None,
        "last_accessed_at": models.ensure_aware(row.last_accessed_at) if row else None,
        "video_timestamp": row.video_timestamp if row else None,
        "total_time_spent_seconds": (row.total_time_spent_seconds or 0) if row else 0,
    }


def _survey_requirements(course: models.Course, course_row: Optional[models.LearnerProgress]):
    return {
        "pre_course_survey_id": str(course.pre_course_survey_id) if course.pre_course_survey_id else None,
        "is_pre_survey_mandatory": bool(course.is_pre_survey_mandatory),
        "pre_survey_completed": bool(course_row.pre_survey_completed) if course_row else False,
        "post_course_survey_id": str(course.post_course_survey_id) if course.post_course_survey_id else None,
        "is_post_survey_mandatory": bool(course.is_post_survey_mandatory),
        "post_survey_completed": bool(course_row.post_survey_completed) if course_row else False,
    }


def course_detail(db: Session, user_id: uuid.UUID, course: models.Course):
    course_row = progress_repo.get_course_progress(db, user_id=user_id, course_id=course.id)
    lesson_rows = progress_repo.lesson_progress_map(db, user_id=user_id, course_id=course.id)
    lessons = [_lesson_progress_dict(lesson, lesson_rows.get(lesson.id)) for lesson in course.lessons]

    last_row = None
    for row in lesson_rows.values():
        if row.last_accessed_at is None:
            continue
        if last_row is None or models.ensure_aware(row.last_accessed_at) > models.ensure_aware(last_row.last_accessed_at):
            last_row = row

    return {
        "id": str(course.id),
        "organization_id": str(course.organization_id),
        "title": course.title,
        "description": course.description,
        "short_description": course.short_description,
        "category": course.category,
        "tags": list(course.tags or []),
        "banner_url": course.banner_url,
        "status": course.status,
        "certificate_enabled": bool(course.certificate_enabled),
        "progress_percent": course_row.progress_percent if course_row else 0,
        "completed": bool(course_row.completed) if course_row else False,
        "completed_at": models.ensure_aware(course_row.completed_at) if course_row else None,
        "certificate_id": course_row.certificate_id if course_row else None,
        "total_time_spent_seconds": (course_row.total_time_spent_seconds or 0) if course_row else 0,
        "last_accessed_lesson_id": str(last_row.lesson_id) if last_row else None,
        "video_timestamp": last_row.video_timestamp if last_row else None,
        "surveys": _survey_requirements(course, course_row),
        "lessons": lessons,
    }


# Course catalogue


@router.get("/courses")
def list_learner_courses(
    search: Optional[str] = None,
    progress: str = Query(default="all"),
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context_or_pat),
):
    user, current_user = user_context
    ensure_pat_allows_read(current_user)
    if progress not in PROGRESS_FILTERS:
        raise HTTPException(status_code=422, detail=f"Invalid progress filter. Allowed: {list(PROGRESS_FILTERS)}")
    courses = access.accessible_courses(db, current_user)
    if search:
        needle = search.strip().lower()
        courses = [
            c for c in courses
            if needle in (c.title or "").lower() or needle in (c.short_description or "").lower()
        ]
    rows = progress_repo.course_progress_map(db, user_id=user.id, course_ids=[c.id for c in courses])
    items = []
    for course in courses:
        row = rows.get(course.id)
        percent = row.progress_percent if row else 0
        if not _matches_progress(percent, progress):
            continue
        items.append(
            {
                "id": str(course.id),
                "organization_id": str(course.organization_id),
                "title": course.title,
                "short_description": course.short_description,
                "category": course.category,
                "banner_url": course.banner_url,
                "lesson_count": len(course.lessons),
                "progress_percent": percent,
                "completed": bool(row.completed) if row else False,
                "last_accessed_at": models.ensure_aware(row.last_accessed_at) if row else None,
            }
        )
    return items


@router.get("/courses/certificates")
def list_certificates(
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context_or_pat),
):
    user, current_user = user_context
    ensure_pat_allows_read(current_user)
    rows = progress_repo.list_certificates(db, user_id=user.id)
    courses = {}
    if rows:
        courses = {
            c.id: c
            for c in db.query(models.Course).filter(models.Course.id.in_([r.course_id for r in rows])).all()
        }
    restricted_to = access.token_organization_id(current_user)
    if restricted_to:
        rows = [r for r in rows if r.course_id in courses and courses[r.course_id].organization_id == restricted_to]
    return [
        {
            "course_id": str(row.course_id),
            "course_title": courses[row.course_id].title if row.course_id in courses else None,
            "certificate_id": row.certificate_id,
            "completed_at": models.ensure_aware(row.completed_at),
            "issued_at": models.ensure_aware(row.certificate_issued_at),
        }
        for row in rows
    ]


@router.get("/courses/{course_id}")
def get_learner_course(
    course_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context_or_pat),
):
    user, current_user = user_context
    ensure_pat_allows_read(current_user)
    course = _get_accessible_course(db, current_user, course_id)
    return course_detail(db, user.id, course)


@router.post("/courses/{course_id}/lessons/{lesson_id}/progress")
def track_lesson_progress(
    course_id: uuid.UUID,
    lesson_id: uuid.UUID,
    payload: schemas.LessonTrackingUpdate,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context_or_pat),
):
    user, current_user = user_context
    ensure_pat_allows_write(current_user)
    course = _get_accessible_course(db, current_user, course_id, write=True)
    lesson = _get_course_lesson(db, course, lesson_id)
    row = progress_service.track_lesson(
        db,
        user.id,
        lesson,
        progress_percent=payload.progress_percent,
        video_timestamp=payload.video_timestamp,
        time_spent_seconds=payload.time_spent_seconds,
        completed=payload.completed,
    )
    return {
        "lesson": _lesson_progress_dict(lesson, row),
        "course": progress_service.summarize(db, user.id, course),
    }


@router.post("/courses/{course_id}/lessons/{lesson_id}/access")
def record_lesson_access(
    course_id: uuid.UUID,
    lesson_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context_or_pat),
):
    user, current_user = user_context
    ensure_pat_allows_write(current_user)
    course = _get_accessible_course(db, current_user, course_id, write=True)
    lesson = _get_course_lesson(db, course, lesson_id)
    row = progress_service.touch_lesson(db, user.id, lesson)
    return {"lesson_id": str(lesson.id), "last_accessed_at": models.ensure_aware(row.last_accessed_at)}


# Progress


@router.post("/progress/courses/{course_id}/start")
def start_course(
    course_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context_or_pat),
):
    user, current_user = user_context
    ensure_pat_allows_write(current_user)
    course = _get_accessible_course(db, current_user, course_id, write=True)
    return progress_service.start_course(db, user.id, course)


def _get_accessible_lesson(db: Session, current_user, lesson_id: uuid.UUID, *, write: bool = False) -> models.Lesson:
    lesson = course_repo.get_lesson(db, lesson_id)
    if not lesson:
        raise HTTPException(status_code=404, detail="Lesson not found")
    _get_accessible_course(db, current_user, lesson.course_id, write=write)
    return lesson


@router.put("/progress/lessons/{lesson_id}")
def update_lesson_progress(
    lesson_id: uuid.UUID,
    payload: schemas.LessonProgressUpdate,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context_or_pat),
):
    user, current_user = user_context
    ensure_pat_allows_write(current_user)
    lesson = _get_accessible_lesson(db, current_user, lesson_id, write=True)
    row = progress_service.set_lesson_progress(db, user.id, lesson, payload.progress_percent)
    return {
        "lesson_id": str(lesson.id),
        "progress_percent": row.progress_percent,
        "completed": bool(row.completed),
        "completed_at": models.ensure_aware(row.completed_at),
    }


@router.post("/progress/lessons/{lesson_id}/complete")
def complete_lesson(
    lesson_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context_or_pat),
):
    user, current_user = user_context
    ensure_pat_allows_write(current_user)
    lesson = _get_accessible_lesson(db, current_user, lesson_id, write=True)
    row = progress_service.complete_lesson(db, user.id, lesson)
    return {
        "lesson_id": str(lesson.id),
        "progress_percent": row.progress_percent,
        "completed": bool(row.completed),
        "completed_at": models.ensure_aware(row.completed_at),
    }


@router.get("/progress/courses/{course_id}")
def get_course_progress(
    course_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context_or_pat),
):
    user, current_user = user_context
    ensure_pat_allows_read(current_user)
    course = _get_accessible_course(db, current_user, course_id)
    data = progress_service.summarize(db, user.id, course)
    lesson_rows = progress_repo.lesson_progress_map(db, user_id=user.id, course_id=course.id)
    data["lessons"] = [_lesson_progress_dict(lesson, lesson_rows.get(lesson.id)) for lesson in course.lessons]
    return data


# Certificates


def _issue_or_409(db: Session, user, current_user, course_id: uuid.UUID):
    course = _get_accessible_course(db, current_user, course_id)
    existing = progress_repo.get_course_progress(db, user_id=user.id, course_id=course.id)
    if not (existing and existing.certificate_id):
        # minting a certificate is a write
        ensure_pat_allows_write(current_user, course.organization_id)
    try:
        row, newly_issued = certificate_service.issue_certificate(db, user=user, course=course)
    except certificate_service.CertificateNotEligible as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    if newly_issued:
        safe_log(
            db,
            action=AuditAction.CERTIFICATE_ISSUE,
            status=AuditStatus.SUCCESS,
            target_type="course",
            target_id=course.id,
            actor_user_id=user.id,
            organization_id=course.organization_id,
            metadata={"certificate_id": row.certificate_id},
        )
    return course, row, newly_issued


@router.post("/courses/{course_id}/certificate")
def issue_certificate(
    course_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context_or_pat),
):
    _require_certificates()
    user, current_user = user_context
    ensure_pat_allows_write(current_user)
    course, row, newly_issued = _issue_or_409(db, user, current_user, course_id)
    return {
        "course_id": str(course.id),
        "certificate_id": row.certificate_id,
        "issued_at": models.ensure_aware(row.certificate_issued_at),
        "issued_by": row.certificate_issued_by,
        "newly_issued": newly_issued,
    }


def _render(db: Session, user, current_user, course_id: uuid.UUID) -> tuple:
    course, row, _new = _issue_or_409(db, user, current_user, course_id)
    data = certificate_service.certificate_data(db, user=user, course=course, row=row)
    return data, certificate_service.render_png(data)


@router.get("/courses/{course_id}/certificate.png")
def download_certificate_png(
    course_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context_or_pat),
):
    _require_certificates()
    user, current_user = user_context
    ensure_pat_allows_read(current_user)
    data, png = _render(db, user, current_user, course_id)
    return Response(
        content=png,
        media_type="image/png",
        headers={"Content-Disposition": f'attachment; filename="{data.certificate_id}.png"'},
    )


@router.get("/courses/{course_id}/certificate.pdf")
def download_certificate_pdf(
    course_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context_or_pat),
):
    _require_certificates()
    user, current_user = user_context
    ensure_pat_allows_read(current_user)
    data, png = _render(db, user, current_user, course_id)
    return Response(
        content=certificate_service.png_to_pdf(png),
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{data.certificate_id}.pdf"'},
    )
