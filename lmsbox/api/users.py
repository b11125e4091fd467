"""
Users API endpoints.

Self-profile read/update and personal access token management.
"""
import uuid
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from lmsbox.db.database import get_db
from lmsbox.api.deps import get_current_user_context_or_pat, ensure_pat_allows_write
from lmsbox.api.permissions import is_member_of_org
from lmsbox.db import schemas
from lmsbox.db.repositories import tokens as token_repo
from lmsbox.db.repositories import users as user_repo
from lmsbox.audit import AuditAction, AuditStatus, safe_log

router = APIRouter(prefix="/users", tags=["users"])


def _profile(user, current_user):
    data = schemas.User.model_validate(user).model_dump()
    data["memberships"] = current_user.get("memberships", [])
    return data


@router.get("/me")
def get_me(user_context=Depends(get_current_user_context_or_pat)):
    user, current_user = user_context
    return _profile(user, current_user)


@router.patch("/me")
def update_me(
    payload: schemas.UserProfileUpdate,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context_or_pat),
):
    user, current_user = user_context
    ensure_pat_allows_write(current_user)
    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    if changes:
        user = user_repo.update_user(db, user, changes)
    return _profile(user, current_user)


# Bearer tokens owned by the caller. Session tokens from login links are not listed.

TOKEN_TARGET = "personal_access_token"


def _parse_token_id(token_id: str) -> uuid.UUID:
    try:
        return uuid.UUID(str(token_id))
    except ValueError:
        raise HTTPException(status_code=422, detail="Invalid token id")


def _with_secret(pat, full_token: str) -> schemas.TokenCreateResponse:
    # The full token string is only ever returned here
    listed = schemas.TokenResponse.model_validate(pat, from_attributes=True)
    return schemas.TokenCreateResponse(**listed.model_dump(), token=full_token)


def _audit_token(db: Session, action: AuditAction, token_db_id, user, **extra) -> None:
    safe_log(
        db,
        action=action,
        status=AuditStatus.SUCCESS,
        target_type=TOKEN_TARGET,
        target_id=token_db_id,
        actor_user_id=user.id,
        **extra,
    )


@router.get("/me/tokens", response_model=list[schemas.TokenResponse])
def list_tokens(
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context_or_pat),
):
    user, _ctx = user_context
    return token_repo.list_tokens(db, user_id=user.id)


@router.post("/me/tokens", response_model=schemas.TokenCreateResponse, status_code=status.HTTP_201_CREATED)
def create_token(
    payload: schemas.TokenCreateRequest,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context_or_pat),
):
    user, current_user = user_context
    ensure_pat_allows_write(current_user)
    if payload.organization_id and not is_member_of_org(payload.organization_id, current_user):
        raise HTTPException(status_code=403, detail="Forbidden")
    pat, full_token = token_repo.create_token(db, user_id=user.id, payload=payload)
    _audit_token(
        db,
        AuditAction.TOKEN_CREATE,
        pat.id,
        user,
        organization_id=payload.organization_id,
        metadata={
            "name": payload.name,
            "scopes": list(payload.scopes or []),
            "expires_at": payload.expires_at.isoformat() if payload.expires_at else None,
        },
    )
    return _with_secret(pat, full_token)


@router.delete("/me/tokens/{token_id}")
def revoke_token(
    token_id: str,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context_or_pat),
):
    user, current_user = user_context
    ensure_pat_allows_write(current_user)
    token_db_id = _parse_token_id(token_id)
    if not token_repo.revoke_token(db, token_db_id=token_db_id, user_id=user.id):
        raise HTTPException(status_code=404, detail="Token not found")
    _audit_token(db, AuditAction.TOKEN_REVOKE, token_db_id, user)
    return {"message": "revoked"}


@router.post("/me/tokens/{token_id}/rotate", response_model=schemas.TokenCreateResponse)
def rotate_token(
    token_id: str,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context_or_pat),
):
    user, current_user = user_context
    ensure_pat_allows_write(current_user)
    token_db_id = _parse_token_id(token_id)
    rotated = token_repo.rotate_token(db, token_db_id=token_db_id, user_id=user.id)
    if rotated is None:
        raise HTTPException(status_code=404, detail="Token not found or not active")
    _audit_token(db, AuditAction.TOKEN_ROTATE, token_db_id, user)
    return _with_secret(*rotated)


@router.patch("/me/tokens/{token_id}", response_model=schemas.TokenResponse)
def update_token(
    token_id: str,
    payload: schemas.TokenUpdateRequest,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context_or_pat),
):
    user, current_user = user_context
    ensure_pat_allows_write(current_user)
    pat = token_repo.update_token(db, token_db_id=_parse_token_id(token_id), user_id=user.id, payload=payload)
    if pat is None:
        raise HTTPException(status_code=404, detail="Token not found")
    return pat
