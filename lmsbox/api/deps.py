"""
API dependency helpers.

Provides dependency-resolved user context and the active organization for
routes.
"""
import logging
import uuid
from datetime import datetime, timezone
from typing import Optional, Tuple, Dict, Any

from fastapi import Depends, Header, HTTPException, Query, status
from sqlalchemy.orm import Session

from lmsbox.db.database import get_db
from lmsbox.api.auth import resolve_identity_from_headers, get_or_create_user, build_user_context
from lmsbox.api.permissions import can_author_in_org, can_manage_org, is_member_of_org
from lmsbox.db import models
from lmsbox.db.repositories import tokens as token_repo
from lmsbox.utils.runtime import dev_mode_active
from lmsbox.utils.token_crypto import parse_token, verify_secret

logger = logging.getLogger(__name__)

DEV_USER_EMAIL = "dev@localhost"

# Contract:
# Returns (sqlalchemy User model, current_user_context_dict)
# Raises 401 if identity cannot be resolved.


def _ensure_active(user: models.User) -> None:
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Account is inactive")


def get_current_user_context(
    db: Session = Depends(get_db),
    x_auth_request_user: Optional[str] = Header(default=None),
    x_auth_request_email: Optional[str] = Header(default=None),
    x_forwarded_user: Optional[str] = Header(default=None),
    x_forwarded_email: Optional[str] = Header(default=None),
) -> Tuple[Any, Dict[str, Any]]:
    if dev_mode_active():
        email = DEV_USER_EMAIL
        name = "Development User"
    else:
        name, email = resolve_identity_from_headers(
            x_auth_request_user=x_auth_request_user,
            x_auth_request_email=x_auth_request_email,
            x_forwarded_user=x_forwarded_user,
            x_forwarded_email=x_forwarded_email,
        )
        if not email:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required")
    user = get_or_create_user(db, email=email, display_name=name)
    _ensure_active(user)
    return user, build_user_context(db, user)


def _extract_bearer(authorization: Optional[str], x_api_key: Optional[str]) -> Optional[str]:
    if authorization and authorization.lower().startswith("bearer "):
        return authorization[7:].strip()
    if x_api_key:
        return x_api_key.strip()
    return None


def get_current_user_context_or_pat(
    db: Session = Depends(get_db),
    authorization: Optional[str] = Header(default=None),
    x_api_key: Optional[str] = Header(default=None, alias="X-API-Key"),
    x_auth_request_user: Optional[str] = Header(default=None),
    x_auth_request_email: Optional[str] = Header(default=None),
    x_forwarded_user: Optional[str] = Header(default=None),
    x_forwarded_email: Optional[str] = Header(default=None),
) -> Tuple[Any, Dict[str, Any]]:
    """Return current user context, accepting either proxy headers or a bearer token.

    Bearer tokens come from ``Authorization: Bearer`` or ``X-API-Key`` and
    cover both personal access tokens and login-link session tokens.
    """
    raw_token = _extract_bearer(authorization, x_api_key)
    if not raw_token:
        return get_current_user_context(
            db=db,
            x_auth_request_user=x_auth_request_user,
            x_auth_request_email=x_auth_request_email,
            x_forwarded_user=x_forwarded_user,
            x_forwarded_email=x_forwarded_email,
        )

    parsed = parse_token(raw_token)
    if not parsed:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token format")
    pat = token_repo.get_by_token_id(db, token_id=parsed.token_id)
    if not pat:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    if pat.status != "active":
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token not active")
    expires_at = models.ensure_aware(pat.expires_at)
    if expires_at is not None and datetime.now(timezone.utc) > expires_at:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token expired")
    if not verify_secret(parsed.secret, pat.token_hash):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

    user = db.query(models.User).filter(models.User.id == pat.user_id).first()
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token user")
    _ensure_active(user)

    current_user = build_user_context(db, user)
    # Token metadata for downstream checks
    current_user["pat"] = {
        "id": pat.id,
        "token_id": pat.token_id,
        "kind": pat.kind,
        "scopes": list(pat.scopes or []),
        "organization_id": pat.organization_id,
    }
    token_repo.mark_used_now(db, pat=pat)
    return user, current_user


# scope -> scopes that satisfy it
_SCOPE_GRANTS = {
    "read": frozenset({"read", "write"}),
    "write": frozenset({"write"}),
}


def _check_token(current_user: Optional[Dict[str, Any]], target_org_id, scope: str) -> None:
    """403 when the presenting token lacks ``scope`` or is bound to another org.

    Requests authenticated by proxy headers carry no token and always pass.
    """
    pat = (current_user or {}).get("pat")
    if not pat:
        return
    if not _SCOPE_GRANTS[scope] & set(pat.get("scopes") or []):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=f"Token lacks {scope} scope")
    pat_org = pat.get("organization_id")
    if pat_org and target_org_id and str(pat_org) != str(target_org_id):
        logger.warning(
            "Token denied: user=%s org=%s reason=organization restriction mismatch",
            current_user.get("email"), target_org_id,
        )
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Token organization restriction mismatch")


def ensure_pat_allows_read(current_user: Dict[str, Any], target_org_id=None) -> None:
    _check_token(current_user, target_org_id, "read")


def ensure_pat_allows_write(current_user: Dict[str, Any], target_org_id=None) -> None:
    _check_token(current_user, target_org_id, "write")


def ensure_pat_allows(current_user: Dict[str, Any], target_org_id, *, write: bool = False) -> None:
    _check_token(current_user, target_org_id, "write" if write else "read")


def require_org_member(current_user: Dict[str, Any], org_id, *, write: bool = False) -> None:
    _check_token(current_user, org_id, "write" if write else "read")
    if not is_member_of_org(org_id, current_user):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")


def require_org_manager(current_user: Dict[str, Any], org_id, *, write: bool = False) -> None:
    _check_token(current_user, org_id, "write" if write else "read")
    if not can_manage_org(org_id, current_user):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")


def require_org_author(current_user: Dict[str, Any], org_id, *, write: bool = False) -> None:
    _check_token(current_user, org_id, "write" if write else "read")
    if not can_author_in_org(org_id, current_user):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")


def _parse_uuid_maybe(val) -> Optional[uuid.UUID]:
    if not val:
        return None
    if isinstance(val, uuid.UUID):
        return val
    try:
        return uuid.UUID(str(val))
    except ValueError:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="Invalid organization_id")


def resolve_organization_id(current_user: Dict[str, Any], explicit=None) -> uuid.UUID:
    """Pick the organization a request targets.

    Order: explicit header/query value, the token's organization restriction,
    then the user's only membership. Anything else is ambiguous.
    """
    org_id = _parse_uuid_maybe(explicit)
    if org_id is not None:
        return org_id
    pat = current_user.get("pat") or {}
    if pat.get("organization_id"):
        return _parse_uuid_maybe(pat["organization_id"])
    memberships = current_user.get("memberships") or []
    if len(memberships) == 1:
        return _parse_uuid_maybe(memberships[0]["organization_id"])
    raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="organization_id required")


def get_org_hint(
    organization_id: Optional[str] = Query(default=None),
    x_organization_id: Optional[str] = Header(default=None, alias="X-Organization-Id"),
) -> Optional[str]:
    """Raw organization id requested via header (preferred) or query string."""
    return x_organization_id or organization_id


def get_org_context(
    user_context=Depends(get_current_user_context_or_pat),
    org_hint: Optional[str] = Depends(get_org_hint),
) -> Tuple[Any, Dict[str, Any], uuid.UUID]:
    """Return (user, current_user, organization_id) for org-scoped list endpoints."""
    user, current_user = user_context
    org_id = resolve_organization_id(current_user, org_hint)
    return user, current_user, org_id
