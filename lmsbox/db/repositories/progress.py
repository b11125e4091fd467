"""
Learner progress repository functions.

A course-level row has ``lesson_id`` NULL; lesson rows carry the lesson id.
"""
from __future__ import annotations

import uuid
from typing import Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from lmsbox.db import models


def get_course_progress(db: Session, *, user_id: uuid.UUID, course_id: uuid.UUID) -> Optional[models.LearnerProgress]:
    return (
        db.query(models.LearnerProgress)
        .filter(
            models.LearnerProgress.user_id == user_id,
            models.LearnerProgress.course_id == course_id,
            models.LearnerProgress.lesson_id.is_(None),
        )
        .first()
    )


def get_lesson_progress(db: Session, *, user_id: uuid.UUID, lesson_id: uuid.UUID) -> Optional[models.LearnerProgress]:
    return (
        db.query(models.LearnerProgress)
        .filter(
            models.LearnerProgress.user_id == user_id,
            models.LearnerProgress.lesson_id == lesson_id,
        )
        .first()
    )


def lesson_progress_map(db: Session, *, user_id: uuid.UUID, course_id: uuid.UUID) -> Dict[uuid.UUID, models.LearnerProgress]:
    rows = (
        db.query(models.LearnerProgress)
        .filter(
            models.LearnerProgress.user_id == user_id,
            models.LearnerProgress.course_id == course_id,
            models.LearnerProgress.lesson_id.isnot(None),
        )
        .all()
    )
    return {row.lesson_id: row for row in rows}


def course_progress_map(db: Session, *, user_id: uuid.UUID, course_ids: Iterable[uuid.UUID]) -> Dict[uuid.UUID, models.LearnerProgress]:
    ids = list(course_ids)
    if not ids:
        return {}
    rows = (
        db.query(models.LearnerProgress)
        .filter(
            models.LearnerProgress.user_id == user_id,
            models.LearnerProgress.course_id.in_(ids),
            models.LearnerProgress.lesson_id.is_(None),
        )
        .all()
    )
    return {row.course_id: row for row in rows}


def get_or_create_course_progress(db: Session, *, user_id: uuid.UUID, course_id: uuid.UUID) -> models.LearnerProgress:
    row = get_course_progress(db, user_id=user_id, course_id=course_id)
    if row is None:
        row = models.LearnerProgress(user_id=user_id, course_id=course_id, lesson_id=None)
        db.add(row)
        db.flush()
    return row


def get_or_create_lesson_progress(
    db: Session,
    *,
    user_id: uuid.UUID,
    course_id: uuid.UUID,
    lesson_id: uuid.UUID,
) -> models.LearnerProgress:
    row = get_lesson_progress(db, user_id=user_id, lesson_id=lesson_id)
    if row is None:
        row = models.LearnerProgress(user_id=user_id, course_id=course_id, lesson_id=lesson_id)
        db.add(row)
        db.flush()
    return row


def list_certificates(db: Session, *, user_id: uuid.UUID) -> List[models.LearnerProgress]:
    return (
        db.query(models.LearnerProgress)
        .filter(
            models.LearnerProgress.user_id == user_id,
            models.LearnerProgress.lesson_id.is_(None),
            models.LearnerProgress.completed.is_(True),
            models.LearnerProgress.certificate_id.isnot(None),
        )
        .order_by(models.LearnerProgress.completed_at.desc())
        .all()
    )
