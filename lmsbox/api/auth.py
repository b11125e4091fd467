"""
Identity resolution for proxy-authenticated requests.

oauth2-proxy (or any proxy speaking the same headers) authenticates the
browser session; this module maps the forwarded identity onto a ``User`` row
and builds the ``current_user`` dict the permission helpers read.
"""
import os
from typing import Any, Dict, List, Optional, Set, Tuple

from sqlalchemy.orm import Session

from lmsbox.db import models


def normalize_email(email: Optional[str]) -> Optional[str]:
    return email.strip().lower() if email else None


def superadmin_emails() -> Set[str]:
    """ADMIN_EMAILS, read per call so a changed value applies without a restart."""
    entries = (e.strip().strip("\"'") for e in os.getenv("ADMIN_EMAILS", "").split(","))
    return {e.lower() for e in entries if e}


def resolve_identity_from_headers(
    x_auth_request_user: Optional[str],
    x_auth_request_email: Optional[str],
    x_forwarded_user: Optional[str],
    x_forwarded_email: Optional[str],
) -> Tuple[Optional[str], Optional[str]]:
    """Return (display name, normalized email); the x-auth-request pair wins."""
    name = x_auth_request_user or x_forwarded_user
    return name, normalize_email(x_auth_request_email or x_forwarded_email)


def get_or_create_user(db: Session, email: str, display_name: Optional[str] = None) -> models.User:
    email = normalize_email(email)
    is_admin = email in superadmin_emails()
    user = db.query(models.User).filter(models.User.email == email).first()
    if user is None:
        user = models.User(email=email, display_name=display_name or email.split("@")[0], is_superadmin=is_admin)
        db.add(user)
    elif is_admin and not user.is_superadmin:
        user.is_superadmin = True
    else:
        return user
    db.commit()
    db.refresh(user)
    return user


def get_user_memberships(db: Session, user_id) -> List[Dict[str, Any]]:
    rows = (
        db.query(models.OrganizationMembership, models.Organization.name)
        .join(models.Organization, models.Organization.id == models.OrganizationMembership.organization_id)
        .filter(models.OrganizationMembership.user_id == user_id)
        .order_by(models.Organization.name.asc())
        .all()
    )
    return [
        {
            "organization_id": str(membership.organization_id),
            "organization_name": org_name,
            "role": membership.role,
            "can_read": bool(membership.can_read),
            "can_write": bool(membership.can_write),
        }
        for membership, org_name in rows
    ]


def build_user_context(db: Session, user: models.User) -> Dict[str, Any]:
    memberships = get_user_memberships(db, user.id)
    return {
        "id": user.id,
        "email": user.email,
        "display_name": user.display_name,
        "first_name": user.first_name,
        "last_name": user.last_name,
        "is_superadmin": bool(user.is_superadmin),
        "active_status": user.active_status,
        "memberships": memberships,
        # string keys, matching how permission helpers look organizations up
        "memberships_by_org": {m["organization_id"]: m for m in memberships},
    }
