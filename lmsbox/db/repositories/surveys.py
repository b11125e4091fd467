"""
Survey repository functions.

Surveys are soft-deleted; every read helper here skips deleted rows unless
asked otherwise.
"""
from __future__ import annotations

import uuid
from typing import Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from lmsbox.db import models, schemas


def get_survey(db: Session, survey_id: uuid.UUID, *, include_deleted: bool = False) -> Optional[models.Survey]:
    query = db.query(models.Survey).filter(models.Survey.id == survey_id)
    if not include_deleted:
        query = query.filter(models.Survey.is_deleted.is_(False))
    return query.first()


def list_surveys(db: Session, organization_id: uuid.UUID, *, status: Optional[str] = None) -> List[models.Survey]:
    query = db.query(models.Survey).filter(
        models.Survey.organization_id == organization_id,
        models.Survey.is_deleted.is_(False),
    )
    if status:
        query = query.filter(models.Survey.status == status)
    return query.order_by(models.Survey.created_at.desc()).all()


def response_counts(db: Session, survey_ids: List[uuid.UUID]) -> Dict[uuid.UUID, int]:
    if not survey_ids:
        return {}
    rows = (
        db.query(models.SurveyResponse.survey_id, func.count(models.SurveyResponse.id))
        .filter(models.SurveyResponse.survey_id.in_(survey_ids))
        .group_by(models.SurveyResponse.survey_id)
        .all()
    )
    return {sid: count for sid, count in rows}


def create_survey(
    db: Session,
    *,
    organization_id: uuid.UUID,
    payload: schemas.SurveyCreate,
    user_id: uuid.UUID,
) -> models.Survey:
    survey = models.Survey(
        organization_id=organization_id,
        title=payload.title,
        description=payload.description,
        status=payload.status,
        created_by=user_id,
    )
    db.add(survey)
    db.commit()
    db.refresh(survey)
    return survey


def update_survey(db: Session, survey: models.Survey, payload: schemas.SurveyUpdate) -> models.Survey:
    for key, value in payload.model_dump(exclude_unset=True).items():
        if value is None and key != "description":
            continue
        setattr(survey, key, value)
    db.commit()
    db.refresh(survey)
    return survey


def soft_delete_survey(db: Session, survey: models.Survey) -> None:
    survey.is_deleted = True
    survey.is_active = False
    survey.deleted_at = models.now_utc()
    # Courses stop pointing at a deleted survey
    db.query(models.Course).filter(models.Course.pre_course_survey_id == survey.id).update(
        {models.Course.pre_course_survey_id: None, models.Course.is_pre_survey_mandatory: False},
        synchronize_session=False,
    )
    db.query(models.Course).filter(models.Course.post_course_survey_id == survey.id).update(
        {models.Course.post_course_survey_id: None, models.Course.is_post_survey_mandatory: False},
        synchronize_session=False,
    )
    db.commit()


def get_question(db: Session, survey_id: uuid.UUID, question_id: uuid.UUID) -> Optional[models.SurveyQuestion]:
    return (
        db.query(models.SurveyQuestion)
        .filter(models.SurveyQuestion.id == question_id, models.SurveyQuestion.survey_id == survey_id)
        .first()
    )


def add_question(db: Session, survey: models.Survey, payload: schemas.SurveyQuestionPayload) -> models.SurveyQuestion:
    order_index = payload.order_index
    if order_index is None:
        order_index = len(survey.questions)
    question = models.SurveyQuestion(
        survey_id=survey.id,
        question_text=payload.question_text,
        question_type=payload.question_type,
        options=payload.options,
        order_index=order_index,
        is_required=payload.is_required,
        min_rating=payload.min_rating,
        max_rating=payload.max_rating,
    )
    db.add(question)
    db.commit()
    db.refresh(question)
    return question


def update_question(db: Session, question: models.SurveyQuestion, payload: schemas.SurveyQuestionPayload) -> models.SurveyQuestion:
    question.question_text = payload.question_text
    question.question_type = payload.question_type
    question.options = payload.options
    question.is_required = payload.is_required
    question.min_rating = payload.min_rating
    question.max_rating = payload.max_rating
    if payload.order_index is not None:
        question.order_index = payload.order_index
    db.commit()
    db.refresh(question)
    return question


def delete_question(db: Session, question: models.SurveyQuestion) -> None:
    db.query(models.SurveyQuestionResponse).filter(
        models.SurveyQuestionResponse.question_id == question.id
    ).delete(synchronize_session=False)
    db.delete(question)
    db.commit()


def create_response(
    db: Session,
    *,
    survey: models.Survey,
    user_id: uuid.UUID,
    course_id: Optional[uuid.UUID],
    survey_type: str,
    answers: List[schemas.SurveyAnswer],
) -> models.SurveyResponse:
    response = models.SurveyResponse(
        survey_id=survey.id,
        user_id=user_id,
        course_id=course_id,
        survey_type=survey_type,
    )
    for answer in answers:
        response.answers.append(
            models.SurveyQuestionResponse(
                question_id=answer.question_id,
                answer_text=answer.answer_text,
                selected_options=answer.selected_options,
                rating_value=answer.rating_value,
            )
        )
    db.add(response)
    db.flush()
    return response


def list_responses(
    db: Session,
    survey_id: uuid.UUID,
    *,
    course_id: Optional[uuid.UUID] = None,
) -> List[models.SurveyResponse]:
    query = db.query(models.SurveyResponse).filter(models.SurveyResponse.survey_id == survey_id)
    if course_id:
        query = query.filter(models.SurveyResponse.course_id == course_id)
    return query.order_by(models.SurveyResponse.submitted_at.desc()).all()
