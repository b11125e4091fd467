"""
Survey submission checks and per-question analytics.
"""
from __future__ import annotations

import logging
from collections import Counter
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from lmsbox.db import models, schemas
from lmsbox.db.repositories import progress as progress_repo
from lmsbox.db.repositories import surveys as survey_repo

logger = logging.getLogger(__name__)

LATEST_TEXT_ANSWERS = 10
YES_VALUES = ("yes", "true", "1")
NO_VALUES = ("no", "false", "0")


def _has_value(answer: schemas.SurveyAnswer) -> bool:
    return bool(
        (answer.answer_text and answer.answer_text.strip())
        or answer.selected_options
        or answer.rating_value is not None
    )


def validate_submission(survey: models.Survey, submission: schemas.SurveySubmission) -> None:
    """Raise ValueError describing the first problem with the submitted answers."""
    questions = {q.id: q for q in survey.questions}
    answered = {}
    for answer in submission.answers:
        question = questions.get(answer.question_id)
        if question is None:
            raise ValueError(f"Question {answer.question_id} is not part of this survey")
        if answer.question_id in answered:
            raise ValueError(f"Question {answer.question_id} answered more than once")
        answered[answer.question_id] = answer
        if not _has_value(answer):
            continue
        qtype = question.question_type
        if qtype == "rating":
            if answer.rating_value is None:
                raise ValueError(f"Question '{question.question_text}' expects a rating")
            low = question.min_rating if question.min_rating is not None else 1
            high = question.max_rating if question.max_rating is not None else 5
            if not low <= answer.rating_value <= high:
                raise ValueError(f"Rating for '{question.question_text}' must be within {low}..{high}")
        elif qtype in ("single_choice", "multiple_choice"):
            selected = answer.selected_options or []
            if not selected:
                raise ValueError(f"Question '{question.question_text}' expects selected_options")
            allowed = set(question.options or [])
            invalid = [o for o in selected if o not in allowed]
            if invalid:
                raise ValueError(f"Invalid options for '{question.question_text}': {invalid}")
            if qtype == "single_choice" and len(selected) != 1:
                raise ValueError(f"Question '{question.question_text}' accepts exactly one option")
        elif qtype == "yes_no":
            value = (answer.answer_text or "").strip().lower()
            if value not in YES_VALUES + NO_VALUES:
                raise ValueError(f"Question '{question.question_text}' expects yes or no")
        elif qtype == "text":
            if not (answer.answer_text and answer.answer_text.strip()):
                raise ValueError(f"Question '{question.question_text}' expects answer_text")

    for question in survey.questions:
        if question.is_required:
            answer = answered.get(question.id)
            if answer is None or not _has_value(answer):
                raise ValueError(f"Question '{question.question_text}' is required")


def submit_response(
    db: Session,
    *,
    survey: models.Survey,
    user_id,
    submission: schemas.SurveySubmission,
) -> models.SurveyResponse:
    """Persist a validated response and stamp course survey flags for pre/post course surveys."""
    validate_submission(survey, submission)
    response = survey_repo.create_response(
        db,
        survey=survey,
        user_id=user_id,
        course_id=submission.course_id,
        survey_type=submission.survey_type,
        answers=submission.answers,
    )
    if submission.course_id and submission.survey_type in ("pre_course", "post_course"):
        row = progress_repo.get_or_create_course_progress(db, user_id=user_id, course_id=submission.course_id)
        now = models.now_utc()
        if submission.survey_type == "pre_course":
            row.pre_survey_completed = True
            row.pre_survey_completed_at = now
            row.pre_survey_response_id = response.id
        else:
            row.post_survey_completed = True
            row.post_survey_completed_at = now
            row.post_survey_response_id = response.id
    db.commit()
    db.refresh(response)
    logger.info("Survey %s response %s stored (%s)", survey.id, response.id, submission.survey_type)
    return response


def _question_analytics(question: models.SurveyQuestion, answers: List[models.SurveyQuestionResponse]) -> Dict[str, Any]:
    base = {
        "question_id": question.id,
        "question_text": question.question_text,
        "question_type": question.question_type,
        "total_answers": len(answers),
    }
    qtype = question.question_type
    if qtype == "rating":
        ratings = [a.rating_value for a in answers if a.rating_value is not None]
        low = question.min_rating if question.min_rating is not None else 1
        high = question.max_rating if question.max_rating is not None else 5
        counts = Counter(ratings)
        base["average_rating"] = round(sum(ratings) / len(ratings), 2) if ratings else None
        base["distribution"] = {str(value): counts.get(value, 0) for value in range(low, high + 1)}
    elif qtype in ("single_choice", "multiple_choice"):
        counts = Counter(option for a in answers for option in (a.selected_options or []))
        base["option_counts"] = {option: counts.get(option, 0) for option in (question.options or [])}
    elif qtype == "yes_no":
        values = [(a.answer_text or "").strip().lower() for a in answers]
        yes = sum(1 for v in values if v in YES_VALUES)
        no = sum(1 for v in values if v in NO_VALUES)
        base["yes_count"] = yes
        base["no_count"] = no
        base["yes_percentage"] = round(yes / (yes + no) * 100, 2) if (yes + no) else 0.0
    else:
        texts = [a for a in answers if a.answer_text and a.answer_text.strip()]
        texts.sort(key=lambda a: models.ensure_aware(a.answered_at), reverse=True)
        base["total_answers"] = len(texts)
        base["latest_answers"] = [a.answer_text for a in texts[:LATEST_TEXT_ANSWERS]]
    return base


def analytics(db: Session, survey: models.Survey, *, course_id=None) -> Dict[str, Any]:
    responses = survey_repo.list_responses(db, survey.id, course_id=course_id)
    by_question: Dict[Any, List[models.SurveyQuestionResponse]] = {}
    for response in responses:
        for answer in response.answers:
            by_question.setdefault(answer.question_id, []).append(answer)
    return {
        "survey_id": survey.id,
        "course_id": course_id,
        "total_responses": len(responses),
        "questions": [_question_analytics(q, by_question.get(q.id, [])) for q in survey.questions],
    }


def serialize_response(response: models.SurveyResponse, user: Optional[models.User] = None) -> Dict[str, Any]:
    return {
        "id": response.id,
        "survey_id": response.survey_id,
        "user_id": response.user_id,
        "user_email": user.email if user else None,
        "course_id": response.course_id,
        "survey_type": response.survey_type,
        "submitted_at": models.ensure_aware(response.submitted_at),
        "answers": [
            {
                "question_id": a.question_id,
                "answer_text": a.answer_text,
                "selected_options": a.selected_options,
                "rating_value": a.rating_value,
            }
            for a in response.answers
        ],
    }
