"""
Quiz authoring and learner quiz-taking endpoints.

Authors (owner/admin/instructor) manage quizzes under ``/quizzes``; learners
read and submit under ``/learner/quizzes``. The learner view never carries
correct flags or explanations.
"""
import logging
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from lmsbox.audit import AuditAction, AuditStatus, safe_log
from lmsbox.api.deps import (
    ensure_pat_allows,
    ensure_pat_allows_read,
    ensure_pat_allows_write,
    get_current_user_context_or_pat,
    get_org_context,
    get_org_hint,
    require_org_author,
    resolve_organization_id,
)
from lmsbox.db import models, schemas
from lmsbox.db.database import get_db
from lmsbox.db.repositories import courses as course_repo
from lmsbox.db.repositories import quizzes as quiz_repo
from lmsbox.services import access, progress_service, quiz_grading

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/quizzes", tags=["quizzes"])
learner_router = APIRouter(prefix="/learner/quizzes", tags=["learner"])


def _quiz_dict(quiz: models.Quiz, *, include_questions: bool = True):
    data = {
        "id": str(quiz.id),
        "organization_id": str(quiz.organization_id),
        "course_id": str(quiz.course_id) if quiz.course_id else None,
        "title": quiz.title,
        "description": quiz.description,
        "passing_score": quiz.passing_score,
        "is_timed": quiz.is_timed,
        "time_limit_minutes": quiz.time_limit_minutes,
        "shuffle_questions": quiz.shuffle_questions,
        "shuffle_answers": quiz.shuffle_answers,
        "show_results": quiz.show_results,
        "allow_retake": quiz.allow_retake,
        "max_attempts": quiz.max_attempts,
        "question_count": len(quiz.questions),
        "created_at": models.ensure_aware(quiz.created_at),
    }
    if include_questions:
        data["questions"] = [
            {
                "id": str(q.id),
                "question": q.question,
                "question_type": q.question_type,
                "points": q.points,
                "explanation": q.explanation,
                "ordinal": q.ordinal,
                "options": [
                    {"id": str(o.id), "text": o.text, "is_correct": bool(o.is_correct), "ordinal": o.ordinal}
                    for o in q.options
                ],
            }
            for q in quiz.questions
        ]
    return data


def _attempt_dict(attempt: models.QuizAttempt):
    return {
        "id": str(attempt.id),
        "quiz_id": str(attempt.quiz_id),
        "user_id": str(attempt.user_id),
        "lesson_id": str(attempt.lesson_id) if attempt.lesson_id else None,
        "score": attempt.score,
        "earned_points": attempt.earned_points,
        "total_points": attempt.total_points,
        "passed": bool(attempt.passed),
        "submitted_at": models.ensure_aware(attempt.submitted_at),
    }


def _get_quiz_or_404(db: Session, quiz_id: uuid.UUID) -> models.Quiz:
    quiz = quiz_repo.get_quiz(db, quiz_id)
    if not quiz:
        raise HTTPException(status_code=404, detail="Quiz not found")
    return quiz


def _check_course(db: Session, organization_id: uuid.UUID, course_id: Optional[uuid.UUID]) -> None:
    if course_id is None:
        return
    course = course_repo.get_course(db, course_id)
    if not course or course.organization_id != organization_id:
        raise HTTPException(status_code=422, detail="course_id does not reference a course of this organization")


# Authoring


@router.get("/")
def list_quizzes(
    course_id: Optional[uuid.UUID] = None,
    db: Session = Depends(get_db),
    org_context=Depends(get_org_context),
):
    _user, current_user, org_id = org_context
    require_org_author(current_user, org_id)
    return [_quiz_dict(q, include_questions=False) for q in quiz_repo.list_quizzes(db, org_id, course_id=course_id)]


@router.post("/", status_code=status.HTTP_201_CREATED)
def create_quiz(
    payload: schemas.QuizCreate,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context_or_pat),
    org_hint: Optional[str] = Depends(get_org_hint),
):
    user, current_user = user_context
    org_id = resolve_organization_id(current_user, payload.organization_id or org_hint)
    require_org_author(current_user, org_id, write=True)
    _check_course(db, org_id, payload.course_id)
    quiz = quiz_repo.create_quiz(db, organization_id=org_id, payload=payload, user_id=user.id)
    safe_log(
        db,
        action=AuditAction.QUIZ_CREATE,
        status=AuditStatus.SUCCESS,
        target_type="quiz",
        target_id=quiz.id,
        actor_user_id=user.id,
        organization_id=org_id,
        metadata={"title": quiz.title, "questions": len(quiz.questions)},
    )
    return _quiz_dict(quiz)


@router.get("/{quiz_id}")
def get_quiz(
    quiz_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context_or_pat),
):
    _user, current_user = user_context
    quiz = _get_quiz_or_404(db, quiz_id)
    require_org_author(current_user, quiz.organization_id)
    return _quiz_dict(quiz)


@router.put("/{quiz_id}")
def update_quiz(
    quiz_id: uuid.UUID,
    payload: schemas.QuizUpdate,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context_or_pat),
):
    user, current_user = user_context
    quiz = _get_quiz_or_404(db, quiz_id)
    require_org_author(current_user, quiz.organization_id, write=True)
    if "course_id" in payload.model_fields_set:
        _check_course(db, quiz.organization_id, payload.course_id)
    quiz = quiz_repo.update_quiz(db, quiz, payload)
    safe_log(
        db,
        action=AuditAction.QUIZ_UPDATE,
        status=AuditStatus.SUCCESS,
        target_type="quiz",
        target_id=quiz.id,
        actor_user_id=user.id,
        organization_id=quiz.organization_id,
        metadata={"fields": sorted(payload.model_fields_set)},
    )
    return _quiz_dict(quiz)


@router.delete("/{quiz_id}")
def delete_quiz(
    quiz_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context_or_pat),
):
    user, current_user = user_context
    quiz = _get_quiz_or_404(db, quiz_id)
    org_id, title = quiz.organization_id, quiz.title
    require_org_author(current_user, org_id, write=True)
    quiz_repo.delete_quiz(db, quiz)
    safe_log(
        db,
        action=AuditAction.QUIZ_DELETE,
        status=AuditStatus.SUCCESS,
        target_type="quiz",
        target_id=quiz_id,
        actor_user_id=user.id,
        organization_id=org_id,
        metadata={"title": title},
    )
    return {"status": "deleted"}


@router.get("/{quiz_id}/attempts")
def list_quiz_attempts(
    quiz_id: uuid.UUID,
    user_id: Optional[uuid.UUID] = None,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context_or_pat),
):
    _user, current_user = user_context
    quiz = _get_quiz_or_404(db, quiz_id)
    require_org_author(current_user, quiz.organization_id)
    return [_attempt_dict(a) for a in quiz_repo.list_attempts(db, quiz_id=quiz.id, user_id=user_id)]


# Learner


def _get_quiz_for_learner(db: Session, current_user, quiz_id: uuid.UUID, *, write: bool = False) -> models.Quiz:
    quiz = quiz_repo.get_quiz(db, quiz_id)
    if not quiz:
        raise HTTPException(status_code=404, detail="Quiz not found")
    if quiz.course_id is not None:
        course = course_repo.get_course(db, quiz.course_id)
        if not course or not access.can_access_course(db, current_user, course):
            raise HTTPException(status_code=403, detail="Forbidden")
    elif not access.is_staff_for(current_user, quiz.organization_id) and str(quiz.organization_id) not in (
        current_user.get("memberships_by_org") or {}
    ):
        raise HTTPException(status_code=403, detail="Forbidden")
    ensure_pat_allows(current_user, quiz.organization_id, write=write)
    return quiz


@learner_router.get("/{quiz_id}")
def get_learner_quiz(
    quiz_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context_or_pat),
):
    user, current_user = user_context
    ensure_pat_allows_read(current_user)
    quiz = _get_quiz_for_learner(db, current_user, quiz_id)
    used = quiz_repo.count_attempts(db, quiz_id=quiz.id, user_id=user.id)
    view = quiz_grading.learner_view(quiz, attempts_used=used)
    view["has_passed"] = quiz_repo.has_passed(db, quiz_id=quiz.id, user_id=user.id)
    return view


@learner_router.post("/{quiz_id}/submit")
def submit_quiz(
    quiz_id: uuid.UUID,
    payload: schemas.QuizSubmission,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context_or_pat),
):
    user, current_user = user_context
    ensure_pat_allows_write(current_user)
    quiz = _get_quiz_for_learner(db, current_user, quiz_id, write=True)

    used = quiz_repo.count_attempts(db, quiz_id=quiz.id, user_id=user.id)
    if quiz.max_attempts and used >= quiz.max_attempts:
        raise HTTPException(status_code=409, detail="Maximum attempts reached")
    if not quiz.allow_retake and quiz_repo.has_passed(db, quiz_id=quiz.id, user_id=user.id):
        raise HTTPException(status_code=409, detail="Quiz already passed and retakes are not allowed")

    lesson = None
    if payload.lesson_id is not None:
        lesson = course_repo.get_lesson(db, payload.lesson_id)
        if not lesson or lesson.lesson_type != "quiz" or lesson.quiz_id != quiz.id:
            raise HTTPException(status_code=422, detail="lesson_id does not reference a lesson for this quiz")
        lesson_course = course_repo.get_course(db, lesson.course_id)
        if not lesson_course or not access.can_access_course(db, current_user, lesson_course):
            raise HTTPException(status_code=403, detail="Forbidden")
        ensure_pat_allows(current_user, lesson_course.organization_id, write=True)

    result = quiz_grading.grade(quiz, payload.answers)
    attempt = quiz_repo.create_attempt(
        db,
        quiz_id=quiz.id,
        user_id=user.id,
        lesson_id=lesson.id if lesson else None,
        score=result.score,
        earned_points=result.earned_points,
        total_points=result.total_points,
        passed=result.passed,
        answers={str(qid): [str(o) for o in opts] for qid, opts in payload.answers.items()},
    )
    logger.info("Quiz %s attempt by %s scored %s (passed=%s)", quiz.id, user.id, result.score, result.passed)

    if result.passed and lesson is not None:
        progress_service.complete_lesson(db, user.id, lesson)

    response = {
        "attempt_id": str(attempt.id),
        "score": result.score,
        "earned_points": result.earned_points,
        "total_points": result.total_points,
        "passed": result.passed,
        "passing_score": quiz.passing_score,
        "attempts_used": used + 1,
        "attempts_remaining": max((quiz.max_attempts or 0) - used - 1, 0),
    }
    if quiz.show_results:
        response["question_results"] = [
            {
                "question_id": str(r["question_id"]),
                "selected_option_ids": [str(o) for o in r["selected_option_ids"]],
                "correct_option_ids": [str(o) for o in r["correct_option_ids"]],
                "is_correct": r["is_correct"],
                "points_awarded": r["points_awarded"],
                "explanation": r["explanation"],
            }
            for r in result.question_results
        ]
    return response
