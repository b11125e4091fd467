"""
Course and lesson repository functions.

Course writes accept nested lessons; `sync_lessons` reconciles the stored
lessons with a payload list (update by id, add new, delete missing).
"""
from __future__ import annotations

import uuid
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from lmsbox.db import models, schemas

COURSE_SCALAR_FIELDS = (
    "title",
    "description",
    "short_description",
    "category",
    "tags",
    "status",
    "certificate_enabled",
    "banner_url",
    "pre_course_survey_id",
    "post_course_survey_id",
    "is_pre_survey_mandatory",
    "is_post_survey_mandatory",
)
LESSON_FIELDS = (
    "title",
    "content",
    "lesson_type",
    "quiz_id",
    "video_url",
    "video_duration_seconds",
    "scorm_url",
    "scorm_entry_url",
    "document_url",
    "is_optional",
)


def get_course(db: Session, course_id: uuid.UUID) -> Optional[models.Course]:
    return db.query(models.Course).filter(models.Course.id == course_id).first()


def get_lesson(db: Session, lesson_id: uuid.UUID) -> Optional[models.Lesson]:
    return db.query(models.Lesson).filter(models.Lesson.id == lesson_id).first()


def list_courses(
    db: Session,
    organization_id: uuid.UUID,
    *,
    search: Optional[str] = None,
    status: Optional[str] = None,
    category: Optional[str] = None,
    page: int = 1,
    page_size: int = 20,
) -> Tuple[List[models.Course], int]:
    query = db.query(models.Course).filter(models.Course.organization_id == organization_id)
    if search:
        term = f"%{search.strip()}%"
        query = query.filter(or_(models.Course.title.ilike(term), models.Course.description.ilike(term)))
    if status:
        query = query.filter(models.Course.status == status)
    if category:
        query = query.filter(models.Course.category == category)
    total = query.count()
    page = max(page, 1)
    rows = (
        query.order_by(models.Course.created_at.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
        .all()
    )
    return rows, total


def lesson_counts(db: Session, course_ids: Iterable[uuid.UUID]) -> Dict[uuid.UUID, int]:
    ids = list(course_ids)
    if not ids:
        return {}
    rows = (
        db.query(models.Lesson.course_id, func.count(models.Lesson.id))
        .filter(models.Lesson.course_id.in_(ids))
        .group_by(models.Lesson.course_id)
        .all()
    )
    return {course_id: count for course_id, count in rows}


def enrollment_counts(db: Session, course_ids: Iterable[uuid.UUID]) -> Dict[uuid.UUID, int]:
    """Learners with a course-level progress row, per course."""
    ids = list(course_ids)
    if not ids:
        return {}
    rows = (
        db.query(models.LearnerProgress.course_id, func.count(func.distinct(models.LearnerProgress.user_id)))
        .filter(
            models.LearnerProgress.course_id.in_(ids),
            models.LearnerProgress.lesson_id.is_(None),
        )
        .group_by(models.LearnerProgress.course_id)
        .all()
    )
    return {course_id: count for course_id, count in rows}


def _validate_quiz_lesson(db: Session, organization_id: uuid.UUID, payload: schemas.LessonPayload) -> None:
    if payload.lesson_type != "quiz":
        return
    if not payload.quiz_id:
        raise ValueError(f"Quiz lesson '{payload.title}' requires quiz_id")
    quiz = db.query(models.Quiz).filter(models.Quiz.id == payload.quiz_id).first()
    if not quiz or quiz.organization_id != organization_id:
        raise ValueError(f"Quiz {payload.quiz_id} does not belong to this organization")


def sync_lessons(
    db: Session,
    course: models.Course,
    lessons: List[schemas.LessonPayload],
    *,
    user_id: Optional[uuid.UUID] = None,
) -> None:
    """Make the course's lessons match ``lessons``.

    Ordinals come from the payload when given, otherwise from list position.
    Raises ValueError when a payload id is not a lesson of this course or a
    quiz lesson is misconfigured. Does not commit.
    """
    existing = {lesson.id: lesson for lesson in course.lessons}
    keep: set = set()
    for position, payload in enumerate(lessons):
        _validate_quiz_lesson(db, course.organization_id, payload)
        ordinal = payload.ordinal if payload.ordinal is not None else position
        values = {field: getattr(payload, field) for field in LESSON_FIELDS}
        if payload.lesson_type != "quiz":
            values["quiz_id"] = None
        if payload.id is not None:
            lesson = existing.get(payload.id)
            if lesson is None:
                raise ValueError(f"Lesson {payload.id} does not belong to this course")
            for key, value in values.items():
                setattr(lesson, key, value)
            lesson.ordinal = ordinal
            keep.add(lesson.id)
        else:
            course.lessons.append(models.Lesson(ordinal=ordinal, created_by=user_id, **values))
    for lesson_id, lesson in existing.items():
        if lesson_id not in keep:
            db.query(models.LearnerProgress).filter(models.LearnerProgress.lesson_id == lesson_id).delete(
                synchronize_session=False
            )
            course.lessons.remove(lesson)


def create_course(
    db: Session,
    *,
    organization_id: uuid.UUID,
    payload: schemas.CourseCreate,
    user_id: uuid.UUID,
) -> models.Course:
    data = payload.model_dump(include=set(COURSE_SCALAR_FIELDS), exclude_none=True)
    course = models.Course(organization_id=organization_id, created_by=user_id, **data)
    if course.tags is None:
        course.tags = []
    db.add(course)
    try:
        if payload.lessons:
            sync_lessons(db, course, payload.lessons, user_id=user_id)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(course)
    return course


def update_course(
    db: Session,
    course: models.Course,
    payload: schemas.CourseUpdate,
    *,
    user_id: Optional[uuid.UUID] = None,
) -> models.Course:
    changes = payload.model_dump(include=set(COURSE_SCALAR_FIELDS), exclude_unset=True)
    for key, value in changes.items():
        if key in ("title", "status", "certificate_enabled", "is_pre_survey_mandatory", "is_post_survey_mandatory") and value is None:
            continue
        if key == "tags" and value is None:
            value = []
        setattr(course, key, value)
    try:
        if payload.lessons is not None:
            sync_lessons(db, course, payload.lessons, user_id=user_id)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(course)
    return course


def delete_course(db: Session, course: models.Course) -> List[uuid.UUID]:
    """Delete a course with its lessons, progress rows and group/pathway links.

    Returns the ids of pathways that contained the course; their enrolments
    need a fresh roll-up.
    """
    course_id = course.id
    pathway_ids = [
        row[0]
        for row in db.query(models.PathwayCourse.pathway_id).filter(models.PathwayCourse.course_id == course_id).all()
    ]
    if pathway_ids:
        for other in db.query(models.PathwayCourse).filter(
            models.PathwayCourse.pathway_id.in_(pathway_ids), models.PathwayCourse.course_id != course_id
        ):
            prereqs = list(other.prerequisite_course_ids or [])
            if str(course_id) in prereqs:
                other.prerequisite_course_ids = [p for p in prereqs if p != str(course_id)]
    db.query(models.LearnerProgress).filter(models.LearnerProgress.course_id == course_id).delete(
        synchronize_session=False
    )
    db.query(models.GroupCourse).filter(models.GroupCourse.course_id == course_id).delete(synchronize_session=False)
    db.query(models.PathwayCourse).filter(models.PathwayCourse.course_id == course_id).delete(
        synchronize_session=False
    )
    db.query(models.LearnerPathwayProgress).filter(
        models.LearnerPathwayProgress.current_course_id == course_id
    ).update({models.LearnerPathwayProgress.current_course_id: None}, synchronize_session=False)
    db.query(models.Quiz).filter(models.Quiz.course_id == course_id).update(
        {models.Quiz.course_id: None}, synchronize_session=False
    )
    db.query(models.SurveyResponse).filter(models.SurveyResponse.course_id == course_id).update(
        {models.SurveyResponse.course_id: None}, synchronize_session=False
    )
    lesson_ids = [lesson.id for lesson in course.lessons]
    if lesson_ids:
        db.query(models.QuizAttempt).filter(models.QuizAttempt.lesson_id.in_(lesson_ids)).update(
            {models.QuizAttempt.lesson_id: None}, synchronize_session=False
        )
    db.delete(course)
    db.commit()
    return pathway_ids
