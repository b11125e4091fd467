"""
Bearer token storage.

Two kinds share the ``personal_access_tokens`` table: ``api`` tokens users
create under /users/me/tokens, and ``session`` tokens minted when a login
link is verified. Only the argon2 hash of the secret is stored; the full
token string is returned once, at creation or rotation.
"""
from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from lmsbox.db import models, schemas
from lmsbox.utils import token_crypto

PAT = models.PersonalAccessToken

KIND_API = "api"
KIND_SESSION = "session"
SESSION_TOKEN_NAME = "Login link session"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _save(db: Session, pat: PAT) -> PAT:
    db.add(pat)
    db.commit()
    db.refresh(pat)
    return pat


def _issue(
    db: Session,
    *,
    user_id: uuid.UUID,
    name: str,
    scopes: List[str],
    organization_id: Optional[uuid.UUID],
    expires_at: Optional[datetime],
    kind: str,
) -> Tuple[PAT, str]:
    token_id, secret, full_token = token_crypto.generate_token()
    prefix, last_four = token_crypto.derive_display_parts(full_token)
    pat = PAT(
        user_id=user_id,
        token_id=token_id,
        token_hash=token_crypto.hash_secret(secret),
        name=name,
        prefix=prefix,
        last_four=last_four,
        scopes=scopes,
        organization_id=organization_id,
        status="active",
        kind=kind,
        created_at=_utcnow(),
        expires_at=expires_at,
    )
    return _save(db, pat), full_token


def create_token(db: Session, *, user_id: uuid.UUID, payload: schemas.TokenCreateRequest) -> Tuple[PAT, str]:
    return _issue(
        db,
        user_id=user_id,
        name=payload.name,
        scopes=list(payload.scopes or []),
        organization_id=payload.organization_id,
        expires_at=payload.expires_at,
        kind=KIND_API,
    )


def create_session_token(db: Session, *, user_id: uuid.UUID, ttl_hours: int) -> Tuple[PAT, str]:
    """Read/write token bound to no organization, valid for ``ttl_hours``."""
    return _issue(
        db,
        user_id=user_id,
        name=SESSION_TOKEN_NAME,
        scopes=["read", "write"],
        organization_id=None,
        expires_at=_utcnow() + timedelta(hours=ttl_hours),
        kind=KIND_SESSION,
    )


def list_tokens(db: Session, *, user_id: uuid.UUID, kind: Optional[str] = KIND_API) -> List[PAT]:
    query = db.query(PAT).filter(PAT.user_id == user_id)
    if kind:
        query = query.filter(PAT.kind == kind)
    return query.order_by(PAT.created_at.desc()).all()


def get_token_owned(db: Session, *, token_db_id: uuid.UUID, user_id: uuid.UUID) -> Optional[PAT]:
    return db.query(PAT).filter(PAT.id == token_db_id, PAT.user_id == user_id).first()


def get_by_token_id(db: Session, *, token_id: str) -> Optional[PAT]:
    return db.query(PAT).filter(PAT.token_id == token_id).first()


def _revoke(db: Session, pat: Optional[PAT], user_id: uuid.UUID) -> bool:
    if pat is None or pat.user_id != user_id:
        return False
    if pat.status != "revoked":
        pat.status = "revoked"
        pat.revoked_at = _utcnow()
        _save(db, pat)
    return True


def revoke_token(db: Session, *, token_db_id: uuid.UUID, user_id: uuid.UUID) -> bool:
    return _revoke(db, get_token_owned(db, token_db_id=token_db_id, user_id=user_id), user_id)


def revoke_by_token_id(db: Session, *, token_id: str, user_id: uuid.UUID) -> bool:
    """Revoke by the public token id embedded in the bearer string (logout)."""
    return _revoke(db, get_by_token_id(db, token_id=token_id), user_id)


def rotate_token(db: Session, *, token_db_id: uuid.UUID, user_id: uuid.UUID) -> Optional[Tuple[PAT, str]]:
    """New secret for an active token; the public token id is unchanged."""
    pat = get_token_owned(db, token_db_id=token_db_id, user_id=user_id)
    if pat is None or pat.status != "active":
        return None
    secret = token_crypto.generate_secret()
    full_token = token_crypto.build_token_string(pat.token_id, secret)
    pat.token_hash = token_crypto.hash_secret(secret)
    pat.prefix, pat.last_four = token_crypto.derive_display_parts(full_token)
    return _save(db, pat), full_token


def update_token(
    db: Session, *, token_db_id: uuid.UUID, user_id: uuid.UUID, payload: schemas.TokenUpdateRequest
) -> Optional[PAT]:
    pat = get_token_owned(db, token_db_id=token_db_id, user_id=user_id)
    if pat is None:
        return None
    new_name = (payload.name or "").strip()
    if new_name:
        pat.name = new_name
    # An explicit null clears the expiry; an omitted field leaves it alone
    if "expires_at" in payload.model_fields_set:
        pat.expires_at = payload.expires_at
    return _save(db, pat)


def mark_used_now(db: Session, *, pat: PAT) -> None:
    pat.last_used_at = _utcnow()
    try:
        db.commit()
    except Exception:
        db.rollback()
