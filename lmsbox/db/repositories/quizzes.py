"""
Quiz repository functions: quizzes with nested questions/options and learner attempts.
"""
from __future__ import annotations

import uuid
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from lmsbox.db import models, schemas

QUIZ_SETTING_FIELDS = (
    "description",
    "course_id",
    "passing_score",
    "is_timed",
    "time_limit_minutes",
    "shuffle_questions",
    "shuffle_answers",
    "show_results",
    "allow_retake",
    "max_attempts",
)


def get_quiz(db: Session, quiz_id: uuid.UUID) -> Optional[models.Quiz]:
    return db.query(models.Quiz).filter(models.Quiz.id == quiz_id).first()


def list_quizzes(db: Session, organization_id: uuid.UUID, *, course_id: Optional[uuid.UUID] = None) -> List[models.Quiz]:
    query = db.query(models.Quiz).filter(models.Quiz.organization_id == organization_id)
    if course_id:
        query = query.filter(models.Quiz.course_id == course_id)
    return query.order_by(models.Quiz.created_at.desc()).all()


def _build_questions(questions: List[schemas.QuizQuestionPayload]) -> List[models.QuizQuestion]:
    built = []
    for q_index, payload in enumerate(questions):
        question = models.QuizQuestion(
            question=payload.question,
            question_type=payload.question_type,
            points=payload.points,
            explanation=payload.explanation,
            ordinal=q_index,
        )
        for o_index, option in enumerate(payload.options):
            question.options.append(
                models.QuizOption(text=option.text, is_correct=option.is_correct, ordinal=o_index)
            )
        built.append(question)
    return built


def create_quiz(
    db: Session,
    *,
    organization_id: uuid.UUID,
    payload: schemas.QuizCreate,
    user_id: uuid.UUID,
) -> models.Quiz:
    settings = payload.model_dump(include=set(QUIZ_SETTING_FIELDS), exclude_none=True)
    quiz = models.Quiz(
        organization_id=organization_id,
        title=payload.title,
        created_by=user_id,
        **settings,
    )
    quiz.questions = _build_questions(payload.questions)
    db.add(quiz)
    db.commit()
    db.refresh(quiz)
    return quiz


def update_quiz(db: Session, quiz: models.Quiz, payload: schemas.QuizUpdate) -> models.Quiz:
    changes = payload.model_dump(include=set(QUIZ_SETTING_FIELDS) | {"title"}, exclude_unset=True)
    for key, value in changes.items():
        if value is None and key not in ("description", "course_id"):
            continue
        setattr(quiz, key, value)
    if payload.questions is not None:
        quiz.questions = _build_questions(payload.questions)
    db.commit()
    db.refresh(quiz)
    return quiz


def delete_quiz(db: Session, quiz: models.Quiz) -> None:
    db.query(models.Lesson).filter(models.Lesson.quiz_id == quiz.id).update(
        {models.Lesson.quiz_id: None}, synchronize_session=False
    )
    db.query(models.QuizAttempt).filter(models.QuizAttempt.quiz_id == quiz.id).delete(synchronize_session=False)
    db.delete(quiz)
    db.commit()


# Attempts


def count_attempts(db: Session, *, quiz_id: uuid.UUID, user_id: uuid.UUID) -> int:
    return (
        db.query(func.count(models.QuizAttempt.id))
        .filter(models.QuizAttempt.quiz_id == quiz_id, models.QuizAttempt.user_id == user_id)
        .scalar()
        or 0
    )


def has_passed(db: Session, *, quiz_id: uuid.UUID, user_id: uuid.UUID) -> bool:
    return (
        db.query(models.QuizAttempt.id)
        .filter(
            models.QuizAttempt.quiz_id == quiz_id,
            models.QuizAttempt.user_id == user_id,
            models.QuizAttempt.passed.is_(True),
        )
        .first()
        is not None
    )


def list_attempts(db: Session, *, quiz_id: uuid.UUID, user_id: Optional[uuid.UUID] = None) -> List[models.QuizAttempt]:
    query = db.query(models.QuizAttempt).filter(models.QuizAttempt.quiz_id == quiz_id)
    if user_id:
        query = query.filter(models.QuizAttempt.user_id == user_id)
    return query.order_by(models.QuizAttempt.submitted_at.desc()).all()


def create_attempt(
    db: Session,
    *,
    quiz_id: uuid.UUID,
    user_id: uuid.UUID,
    lesson_id: Optional[uuid.UUID],
    score: int,
    earned_points: int,
    total_points: int,
    passed: bool,
    answers: dict,
) -> models.QuizAttempt:
    attempt = models.QuizAttempt(
        quiz_id=quiz_id,
        user_id=user_id,
        lesson_id=lesson_id,
        score=score,
        earned_points=earned_points,
        total_points=total_points,
        passed=passed,
        answers=answers,
    )
    db.add(attempt)
    db.commit()
    db.refresh(attempt)
    return attempt
