"""
Passwordless sign-in endpoints.

A login link is mailed to a known, active user; verifying it mints a
short-lived session token that callers present as a bearer token.
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from lmsbox.audit import AuditAction, AuditStatus, safe_log
from lmsbox.api.auth import build_user_context
from lmsbox.api.deps import get_current_user_context_or_pat
from lmsbox.db import models, schemas
from lmsbox.db.database import get_db
from lmsbox.db.repositories import tokens as token_repo
from lmsbox.db.repositories import users as user_repo
from lmsbox.services.login_link_service import LoginLinkConfig, LoginLinkService
from lmsbox.utils.feature_flags import login_links_enabled

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

_SENT = {"status": "sent"}


def _require_login_links():
    if not login_links_enabled():
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Login links are currently disabled")


def _brand_for(db: Session, user: models.User):
    membership = (
        db.query(models.OrganizationMembership)
        .filter(models.OrganizationMembership.user_id == user.id)
        .order_by(models.OrganizationMembership.created_at.asc())
        .first()
    )
    if not membership:
        return None
    org = db.query(models.Organization).filter(models.Organization.id == membership.organization_id).first()
    return org.display_name if org else None


@router.post("/login-link", status_code=status.HTTP_202_ACCEPTED)
async def request_login_link(
    payload: schemas.LoginLinkRequest,
    db: Session = Depends(get_db),
):
    """Mail a sign-in link. The answer never reveals whether the account exists."""
    _require_login_links()
    user = user_repo.get_user_by_email(db, payload.email)
    if user is None or not user.is_active:
        logger.info("Login link requested for unknown or inactive account")
        return _SENT

    service = LoginLinkService(db)
    sent = await service.create_and_send(user, brand_name=_brand_for(db, user))
    safe_log(
        db,
        action=AuditAction.LOGIN_LINK_REQUEST,
        status=AuditStatus.SUCCESS if sent else AuditStatus.FAILURE,
        target_type="user",
        target_id=user.id,
        actor_user_id=user.id,
    )
    return _SENT


@router.post("/login-link/verify", response_model=schemas.SessionTokenResponse)
def verify_login_link(
    payload: schemas.VerifyLoginLinkRequest,
    db: Session = Depends(get_db),
):
    _require_login_links()
    config = LoginLinkConfig()
    service = LoginLinkService(db, config=config)
    row = service.validate(payload.token)
    if row is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or expired login link")

    user = user_repo.get_user(db, row.user_id)
    if user is None or not user.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or expired login link")

    pat, access_token = token_repo.create_session_token(
        db, user_id=user.id, ttl_hours=config.session_token_ttl_hours
    )
    user_repo.stamp_login(db, user)
    safe_log(
        db,
        action=AuditAction.LOGIN_LINK_VERIFY,
        status=AuditStatus.SUCCESS,
        target_type="user",
        target_id=user.id,
        actor_user_id=user.id,
    )
    context = build_user_context(db, user)
    return {
        "access_token": access_token,
        "token_type": "bearer",
        "expires_at": models.ensure_aware(pat.expires_at),
        "user": _public_context(context),
    }


@router.post("/logout")
def logout(
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context_or_pat),
):
    """Revoke the presenting session token; other sessions stay valid."""
    user, current_user = user_context
    pat = current_user.get("pat")
    revoked = False
    if pat and pat.get("kind") == "session":
        revoked = token_repo.revoke_by_token_id(db, token_id=pat["token_id"], user_id=user.id)
    return {"status": "logged_out", "revoked": revoked}


def _public_context(current_user):
    return {
        "id": str(current_user["id"]),
        "email": current_user["email"],
        "display_name": current_user.get("display_name"),
        "first_name": current_user.get("first_name"),
        "last_name": current_user.get("last_name"),
        "is_superadmin": current_user.get("is_superadmin", False),
        "memberships": current_user.get("memberships", []),
    }


@router.get("/me")
def me(user_context=Depends(get_current_user_context_or_pat)):
    _user, current_user = user_context
    return _public_context(current_user)
