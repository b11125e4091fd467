"""
Learner progress tracking and roll-ups.

Lesson rows feed the course-level row (``lesson_id`` NULL), and course
completion feeds every pathway enrolment that contains the course. Roll-ups
flush but do not commit; the public operations commit once at the end.
"""
from __future__ import annotations

import logging
import uuid
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from lmsbox.db import models
from lmsbox.db.repositories import pathways as pathway_repo
from lmsbox.db.repositories import progress as progress_repo

logger = logging.getLogger(__name__)


def clamp_percent(value: int) -> int:
    return max(0, min(100, int(value)))


def counted_lessons(course: models.Course):
    """Lessons that count toward completion: required ones, or all when every lesson is optional."""
    required = [lesson for lesson in course.lessons if not lesson.is_optional]
    return required or list(course.lessons)


def _apply_completion(row, percent: int) -> None:
    row.progress_percent = percent
    if percent >= 100:
        row.completed = True
        if row.completed_at is None:
            row.completed_at = models.now_utc()
    else:
        row.completed = False
        row.completed_at = None


def recompute_pathway_progress(db: Session, enrollment: models.LearnerPathwayProgress) -> models.LearnerPathwayProgress:
    pathway = pathway_repo.get_pathway(db, enrollment.pathway_id)
    if pathway is None:
        return enrollment
    mandatory = [pc for pc in pathway.courses if pc.is_mandatory]
    done = progress_repo.course_progress_map(
        db, user_id=enrollment.user_id, course_ids=[pc.course_id for pc in mandatory]
    )
    completed_ids = {cid for cid, row in done.items() if row.completed}
    enrollment.total_courses = len(mandatory)
    enrollment.completed_courses = sum(1 for pc in mandatory if pc.course_id in completed_ids)
    enrollment.current_course_id = next(
        (pc.course_id for pc in mandatory if pc.course_id not in completed_ids), None
    )
    if mandatory:
        percent = round(enrollment.completed_courses / len(mandatory) * 100)
        was_completed = bool(enrollment.is_completed)
        enrollment.progress_percent = percent
        if percent >= 100:
            enrollment.is_completed = True
            if enrollment.completed_at is None:
                enrollment.completed_at = models.now_utc()
        else:
            enrollment.is_completed = False
            enrollment.completed_at = None
        if was_completed != enrollment.is_completed:
            logger.info(
                "Pathway %s completion for user %s changed to %s",
                enrollment.pathway_id,
                enrollment.user_id,
                enrollment.is_completed,
            )
    db.flush()
    return enrollment


def recompute_pathway_enrollments(db: Session, pathway_ids) -> int:
    """Re-run the pathway roll-up for every enrolment in the given pathways and commit."""
    refreshed = 0
    for pathway_id in pathway_ids:
        for enrollment, _user in pathway_repo.list_enrollments(db, pathway_id):
            recompute_pathway_progress(db, enrollment)
            refreshed += 1
    db.commit()
    return refreshed


def recompute_course_progress(db: Session, user_id: uuid.UUID, course_id: uuid.UUID) -> Optional[models.LearnerProgress]:
    """Recalculate the course-level row from lesson rows, then the affected pathways.

    Returns the course-level row, or None when the course does not exist.
    """
    course = db.query(models.Course).filter(models.Course.id == course_id).first()
    if course is None:
        return None
    course_row = progress_repo.get_or_create_course_progress(db, user_id=user_id, course_id=course_id)
    lessons = counted_lessons(course)
    total = len(lessons)
    if total == 0:
        return course_row

    lesson_rows = progress_repo.lesson_progress_map(db, user_id=user_id, course_id=course_id)
    completed = sum(1 for lesson in lessons if lesson_rows.get(lesson.id) is not None and lesson_rows[lesson.id].completed)
    percent = round(completed / total * 100)
    before = (course_row.progress_percent, bool(course_row.completed))
    _apply_completion(course_row, percent)
    db.flush()
    if before != (course_row.progress_percent, bool(course_row.completed)):
        logger.info(
            "Course %s progress for user %s: %s%% -> %s%% (completed=%s)",
            course_id,
            user_id,
            before[0],
            course_row.progress_percent,
            course_row.completed,
        )

    pathway_ids = pathway_repo.pathway_ids_for_course(db, course_id)
    for enrollment in pathway_repo.enrollments_for_pathways(db, user_id=user_id, pathway_ids=pathway_ids):
        recompute_pathway_progress(db, enrollment)
    return course_row


def summarize(db: Session, user_id: uuid.UUID, course: models.Course) -> Dict[str, Any]:
    course_row = progress_repo.get_course_progress(db, user_id=user_id, course_id=course.id)
    lesson_rows = progress_repo.lesson_progress_map(db, user_id=user_id, course_id=course.id)
    return {
        "course_id": course.id,
        "progress_percent": course_row.progress_percent if course_row else 0,
        "completed": bool(course_row.completed) if course_row else False,
        "completed_at": models.ensure_aware(course_row.completed_at) if course_row else None,
        "total_lessons": len(course.lessons),
        "completed_lessons": sum(1 for row in lesson_rows.values() if row.completed),
    }


def start_course(db: Session, user_id: uuid.UUID, course: models.Course) -> Dict[str, Any]:
    """Create the course row and any missing lesson rows; safe to call repeatedly."""
    row = progress_repo.get_or_create_course_progress(db, user_id=user_id, course_id=course.id)
    row.last_accessed_at = models.now_utc()
    existing = progress_repo.lesson_progress_map(db, user_id=user_id, course_id=course.id)
    for lesson in course.lessons:
        if lesson.id not in existing:
            db.add(models.LearnerProgress(user_id=user_id, course_id=course.id, lesson_id=lesson.id))
    db.flush()
    recompute_course_progress(db, user_id, course.id)
    db.commit()
    return summarize(db, user_id, course)


def set_lesson_progress(db: Session, user_id: uuid.UUID, lesson: models.Lesson, progress_percent: int) -> models.LearnerProgress:
    """Store a lesson percentage (clamped to 0..100); 100 completes, lower values never un-complete."""
    row = progress_repo.get_or_create_lesson_progress(
        db, user_id=user_id, course_id=lesson.course_id, lesson_id=lesson.id
    )
    percent = clamp_percent(progress_percent)
    row.progress_percent = percent
    row.last_accessed_at = models.now_utc()
    if percent >= 100:
        row.completed = True
        if row.completed_at is None:
            row.completed_at = models.now_utc()
    db.flush()
    recompute_course_progress(db, user_id, lesson.course_id)
    db.commit()
    db.refresh(row)
    return row


def complete_lesson(db: Session, user_id: uuid.UUID, lesson: models.Lesson) -> models.LearnerProgress:
    return set_lesson_progress(db, user_id, lesson, 100)


def track_lesson(
    db: Session,
    user_id: uuid.UUID,
    lesson: models.Lesson,
    *,
    progress_percent: Optional[int] = None,
    video_timestamp: Optional[int] = None,
    time_spent_seconds: Optional[int] = None,
    completed: Optional[bool] = None,
) -> models.LearnerProgress:
    """Player heartbeat: accumulate time, remember the video position, maybe complete."""
    row = progress_repo.get_or_create_lesson_progress(
        db, user_id=user_id, course_id=lesson.course_id, lesson_id=lesson.id
    )
    now = models.now_utc()
    row.last_accessed_at = now
    if video_timestamp is not None:
        row.video_timestamp = video_timestamp
    if time_spent_seconds:
        row.total_time_spent_seconds = (row.total_time_spent_seconds or 0) + time_spent_seconds
    if progress_percent is not None:
        row.progress_percent = clamp_percent(progress_percent)
    if completed or (row.progress_percent or 0) >= 100:
        row.progress_percent = 100
        row.completed = True
        if row.completed_at is None:
            row.completed_at = now

    course_row = progress_repo.get_or_create_course_progress(db, user_id=user_id, course_id=lesson.course_id)
    course_row.last_accessed_at = now
    if time_spent_seconds:
        course_row.total_time_spent_seconds = (course_row.total_time_spent_seconds or 0) + time_spent_seconds
    db.flush()
    recompute_course_progress(db, user_id, lesson.course_id)
    db.commit()
    db.refresh(row)
    return row


def touch_lesson(db: Session, user_id: uuid.UUID, lesson: models.Lesson) -> models.LearnerProgress:
    row = progress_repo.get_or_create_lesson_progress(
        db, user_id=user_id, course_id=lesson.course_id, lesson_id=lesson.id
    )
    row.last_accessed_at = models.now_utc()
    db.commit()
    db.refresh(row)
    return row
