"""
Survey management and learner survey endpoints.

Organization managers own surveys and their questions; deleting a survey is
a soft delete so stored responses stay reportable. Learners read published
surveys and submit responses under ``/learner/surveys``.
"""
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
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
    require_org_manager,
    resolve_organization_id,
)
from lmsbox.db import models, schemas
from lmsbox.db.database import get_db
from lmsbox.db.repositories import courses as course_repo
from lmsbox.db.repositories import surveys as survey_repo
from lmsbox.services import survey_service
from lmsbox.utils.feature_flags import surveys_enabled


def _require_surveys() -> None:
    if not surveys_enabled():
        raise HTTPException(status_code=503, detail="Surveys are currently disabled")


router = APIRouter(prefix="/surveys", tags=["surveys"], dependencies=[Depends(_require_surveys)])
learner_router = APIRouter(prefix="/learner/surveys", tags=["learner"], dependencies=[Depends(_require_surveys)])


def _question_dict(question: models.SurveyQuestion):
    return {
        "id": str(question.id),
        "question_text": question.question_text,
        "question_type": question.question_type,
        "options": list(question.options) if question.options else None,
        "order_index": question.order_index,
        "is_required": bool(question.is_required),
        "min_rating": question.min_rating,
        "max_rating": question.max_rating,
    }


def _survey_dict(survey: models.Survey, *, response_count: Optional[int] = None, include_questions: bool = True):
    data = {
        "id": str(survey.id),
        "organization_id": str(survey.organization_id),
        "title": survey.title,
        "description": survey.description,
        "status": survey.status,
        "is_active": bool(survey.is_active),
        "question_count": len(survey.questions),
        "created_at": models.ensure_aware(survey.created_at),
        "updated_at": models.ensure_aware(survey.updated_at),
    }
    if response_count is not None:
        data["response_count"] = response_count
    if include_questions:
        data["questions"] = [_question_dict(q) for q in survey.questions]
    return data


def _get_survey_or_404(db: Session, survey_id: uuid.UUID) -> models.Survey:
    survey = survey_repo.get_survey(db, survey_id)
    if not survey:
        raise HTTPException(status_code=404, detail="Survey not found")
    return survey


def _audit(db: Session, action: AuditAction, user, survey_id, organization_id, metadata=None) -> None:
    safe_log(
        db,
        action=action,
        status=AuditStatus.SUCCESS,
        target_type="survey",
        target_id=survey_id,
        actor_user_id=user.id,
        organization_id=organization_id,
        metadata=metadata,
    )


@router.get("/")
def list_surveys(
    status_filter: Optional[str] = Query(default=None, alias="status"),
    db: Session = Depends(get_db),
    org_context=Depends(get_org_context),
):
    _user, current_user, org_id = org_context
    require_org_author(current_user, org_id)
    surveys = survey_repo.list_surveys(db, org_id, status=status_filter)
    counts = survey_repo.response_counts(db, [s.id for s in surveys])
    return [_survey_dict(s, response_count=counts.get(s.id, 0), include_questions=False) for s in surveys]


@router.post("/", status_code=status.HTTP_201_CREATED)
def create_survey(
    payload: schemas.SurveyCreate,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context_or_pat),
    org_hint: Optional[str] = Depends(get_org_hint),
):
    user, current_user = user_context
    org_id = resolve_organization_id(current_user, payload.organization_id or org_hint)
    require_org_manager(current_user, org_id, write=True)
    survey = survey_repo.create_survey(db, organization_id=org_id, payload=payload, user_id=user.id)
    _audit(db, AuditAction.SURVEY_CREATE, user, survey.id, org_id, {"title": survey.title})
    return _survey_dict(survey, response_count=0)


@router.get("/{survey_id}")
def get_survey(
    survey_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context_or_pat),
):
    _user, current_user = user_context
    survey = _get_survey_or_404(db, survey_id)
    require_org_author(current_user, survey.organization_id)
    counts = survey_repo.response_counts(db, [survey.id])
    return _survey_dict(survey, response_count=counts.get(survey.id, 0))


@router.put("/{survey_id}")
def update_survey(
    survey_id: uuid.UUID,
    payload: schemas.SurveyUpdate,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context_or_pat),
):
    user, current_user = user_context
    survey = _get_survey_or_404(db, survey_id)
    require_org_manager(current_user, survey.organization_id, write=True)
    if payload.title is not None and not payload.title.strip():
        raise HTTPException(status_code=422, detail="Survey title cannot be empty")
    survey = survey_repo.update_survey(db, survey, payload)
    _audit(
        db,
        AuditAction.SURVEY_UPDATE,
        user,
        survey.id,
        survey.organization_id,
        {"fields": sorted(payload.model_fields_set)},
    )
    return _survey_dict(survey)


@router.delete("/{survey_id}")
def delete_survey(
    survey_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context_or_pat),
):
    user, current_user = user_context
    survey = _get_survey_or_404(db, survey_id)
    require_org_manager(current_user, survey.organization_id, write=True)
    survey_repo.soft_delete_survey(db, survey)
    _audit(db, AuditAction.SURVEY_DELETE, user, survey.id, survey.organization_id, {"title": survey.title})
    return {"status": "deleted"}


# Questions


@router.post("/{survey_id}/questions", status_code=status.HTTP_201_CREATED)
def add_question(
    survey_id: uuid.UUID,
    payload: schemas.SurveyQuestionPayload,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context_or_pat),
):
    user, current_user = user_context
    survey = _get_survey_or_404(db, survey_id)
    require_org_manager(current_user, survey.organization_id, write=True)
    question = survey_repo.add_question(db, survey, payload)
    _audit(
        db,
        AuditAction.SURVEY_UPDATE,
        user,
        survey.id,
        survey.organization_id,
        {"question_added": str(question.id)},
    )
    return _question_dict(question)


@router.put("/{survey_id}/questions/{question_id}")
def update_question(
    survey_id: uuid.UUID,
    question_id: uuid.UUID,
    payload: schemas.SurveyQuestionPayload,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context_or_pat),
):
    _user, current_user = user_context
    survey = _get_survey_or_404(db, survey_id)
    require_org_manager(current_user, survey.organization_id, write=True)
    question = survey_repo.get_question(db, survey.id, question_id)
    if not question:
        raise HTTPException(status_code=404, detail="Question not found")
    return _question_dict(survey_repo.update_question(db, question, payload))


@router.delete("/{survey_id}/questions/{question_id}")
def delete_question(
    survey_id: uuid.UUID,
    question_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context_or_pat),
):
    _user, current_user = user_context
    survey = _get_survey_or_404(db, survey_id)
    require_org_manager(current_user, survey.organization_id, write=True)
    question = survey_repo.get_question(db, survey.id, question_id)
    if not question:
        raise HTTPException(status_code=404, detail="Question not found")
    survey_repo.delete_question(db, question)
    return {"status": "deleted"}


# Responses and analytics


@router.get("/{survey_id}/responses")
def list_responses(
    survey_id: uuid.UUID,
    course_id: Optional[uuid.UUID] = None,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context_or_pat),
):
    _user, current_user = user_context
    survey = survey_repo.get_survey(db, survey_id, include_deleted=True)
    if not survey:
        raise HTTPException(status_code=404, detail="Survey not found")
    require_org_manager(current_user, survey.organization_id)
    responses = survey_repo.list_responses(db, survey.id, course_id=course_id)
    user_ids = {r.user_id for r in responses}
    users = {}
    if user_ids:
        users = {u.id: u for u in db.query(models.User).filter(models.User.id.in_(list(user_ids))).all()}
    return [survey_service.serialize_response(r, users.get(r.user_id)) for r in responses]


@router.get("/{survey_id}/analytics")
def survey_analytics(
    survey_id: uuid.UUID,
    course_id: Optional[uuid.UUID] = None,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context_or_pat),
):
    _user, current_user = user_context
    survey = survey_repo.get_survey(db, survey_id, include_deleted=True)
    if not survey:
        raise HTTPException(status_code=404, detail="Survey not found")
    require_org_manager(current_user, survey.organization_id)
    return survey_service.analytics(db, survey, course_id=course_id)


# Learner


def _get_published_survey(db: Session, current_user, survey_id: uuid.UUID, *, write: bool = False) -> models.Survey:
    survey = survey_repo.get_survey(db, survey_id)
    if not survey or survey.status != "published" or not survey.is_active:
        raise HTTPException(status_code=404, detail="Survey not found")
    if not current_user.get("is_superadmin") and str(survey.organization_id) not in (
        current_user.get("memberships_by_org") or {}
    ):
        raise HTTPException(status_code=403, detail="Forbidden")
    ensure_pat_allows(current_user, survey.organization_id, write=write)
    return survey


@learner_router.get("/{survey_id}")
def get_learner_survey(
    survey_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context_or_pat),
):
    _user, current_user = user_context
    ensure_pat_allows_read(current_user)
    survey = _get_published_survey(db, current_user, survey_id)
    return _survey_dict(survey)


@learner_router.post("/{survey_id}/responses", status_code=status.HTTP_201_CREATED)
def submit_survey_response(
    survey_id: uuid.UUID,
    payload: schemas.SurveySubmission,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context_or_pat),
):
    user, current_user = user_context
    ensure_pat_allows_write(current_user)
    survey = _get_published_survey(db, current_user, survey_id, write=True)
    if payload.course_id is not None:
        course = course_repo.get_course(db, payload.course_id)
        if not course or course.organization_id != survey.organization_id:
            raise HTTPException(status_code=422, detail="course_id does not reference a course of this organization")
    try:
        response = survey_service.submit_response(db, survey=survey, user_id=user.id, submission=payload)
    except ValueError as exc:
        db.rollback()
        raise HTTPException(status_code=422, detail=str(exc))
    return {"id": str(response.id), "survey_id": str(survey.id), "submitted_at": models.ensure_aware(response.submitted_at)}
