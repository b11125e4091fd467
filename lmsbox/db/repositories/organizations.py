"""
Organization repository functions.

Implements CRUD for organizations, their settings, and memberships.
"""
from __future__ import annotations

import uuid
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from lmsbox.db import models
from lmsbox.utils.role_permissions import ROLE_LEARNER, ROLE_OWNER, get_role_permissions

MEMBER_SORT_FIELDS = {
    "first_name": models.User.first_name,
    "last_name": models.User.last_name,
    "email": models.User.email,
    "created_at": models.OrganizationMembership.created_at,
}
MAX_MEMBER_PAGE_SIZE = 100

SETTINGS_FIELDS = (
    "name",
    "description",
    "brand_name",
    "logo_url",
    "support_name",
    "support_email",
    "support_phone",
    "max_users",
)


def create_organization(db: Session, *, name: str, slug: Optional[str], user_id: uuid.UUID, description: Optional[str] = None):
    db_organization = models.Organization(
        name=name,
        slug=slug,
        description=description,
        created_by=user_id,
    )
    db.add(db_organization)
    db.flush()
    # Creator becomes owner
    perms = get_role_permissions(ROLE_OWNER)
    db.add(
        models.OrganizationMembership(
            organization_id=db_organization.id,
            user_id=user_id,
            role=ROLE_OWNER,
            can_read=perms["can_read"],
            can_write=perms["can_write"],
        )
    )
    db.commit()
    db.refresh(db_organization)
    return db_organization


def get_organization(db: Session, organization_id: uuid.UUID):
    return db.query(models.Organization).filter(models.Organization.id == organization_id).first()


def get_organization_by_name(db: Session, name: str):
    return db.query(models.Organization).filter(func.lower(models.Organization.name) == name.lower()).first()


def get_organization_by_slug(db: Session, slug: str):
    return db.query(models.Organization).filter(func.lower(models.Organization.slug) == slug.lower()).first()


def get_organizations(db: Session, user_id: uuid.UUID, skip: int = 0, limit: int = 100):
    return (
        db.query(models.Organization)
        .join(models.OrganizationMembership)
        .filter(models.OrganizationMembership.user_id == user_id)
        .order_by(models.Organization.name.asc())
        .offset(skip)
        .limit(limit)
        .all()
    )


def get_all_organizations(db: Session, skip: int = 0, limit: int = 100):
    return db.query(models.Organization).order_by(models.Organization.name.asc()).offset(skip).limit(limit).all()


def get_manageable_organizations(db: Session, user_id: uuid.UUID, roles) -> List[models.Organization]:
    return (
        db.query(models.Organization)
        .join(models.OrganizationMembership)
        .filter(
            models.OrganizationMembership.user_id == user_id,
            models.OrganizationMembership.role.in_(list(roles)),
        )
        .order_by(models.Organization.name.asc())
        .all()
    )


def update_organization(db: Session, organization_id: uuid.UUID, changes: Dict[str, Any]):
    db_organization = get_organization(db, organization_id)
    if db_organization:
        for key, value in changes.items():
            setattr(db_organization, key, value)
        db.commit()
        db.refresh(db_organization)
    return db_organization


def count_courses(db: Session, organization_id: uuid.UUID) -> int:
    return db.query(func.count(models.Course.id)).filter(models.Course.organization_id == organization_id).scalar() or 0


def delete_organization(db: Session, organization_id: uuid.UUID) -> bool:
    db_organization = get_organization(db, organization_id)
    if db_organization:
        # Rows without ON DELETE CASCADE on SQLite are cleared explicitly
        db.query(models.OrganizationMembership).filter(
            models.OrganizationMembership.organization_id == organization_id
        ).delete(synchronize_session=False)
        db.delete(db_organization)
        db.commit()
        return True
    return False


# Memberships


def get_organization_member(db: Session, organization_id: uuid.UUID, user_id: uuid.UUID):
    return (
        db.query(models.OrganizationMembership)
        .filter(
            models.OrganizationMembership.organization_id == organization_id,
            models.OrganizationMembership.user_id == user_id,
        )
        .first()
    )


def count_members(db: Session, organization_id: uuid.UUID) -> int:
    return (
        db.query(func.count(models.OrganizationMembership.user_id))
        .filter(models.OrganizationMembership.organization_id == organization_id)
        .scalar()
        or 0
    )


def list_members(
    db: Session,
    organization_id: uuid.UUID,
    *,
    search: Optional[str] = None,
    role: Optional[str] = None,
    page: int = 1,
    page_size: int = 20,
    sort_by: str = "created_at",
    sort_desc: bool = False,
) -> Tuple[List[Tuple[models.OrganizationMembership, models.User]], int]:
    """Return ((membership, user) rows for the page, total matches)."""
    query = (
        db.query(models.OrganizationMembership, models.User)
        .join(models.User, models.User.id == models.OrganizationMembership.user_id)
        .filter(models.OrganizationMembership.organization_id == organization_id)
    )
    if role:
        query = query.filter(models.OrganizationMembership.role == role)
    if search:
        term = f"%{search.strip()}%"
        query = query.filter(
            or_(
                models.User.email.ilike(term),
                models.User.first_name.ilike(term),
                models.User.last_name.ilike(term),
                models.User.display_name.ilike(term),
            )
        )
    total = query.count()
    column = MEMBER_SORT_FIELDS.get(sort_by, MEMBER_SORT_FIELDS["created_at"])
    query = query.order_by(column.desc() if sort_desc else column.asc(), models.User.email.asc())
    page = max(page, 1)
    page_size = max(1, min(page_size, MAX_MEMBER_PAGE_SIZE))
    rows = query.offset((page - 1) * page_size).limit(page_size).all()
    return rows, total


def add_member(
    db: Session,
    organization_id: uuid.UUID,
    user_id: uuid.UUID,
    role: str = ROLE_LEARNER,
    can_read: Optional[bool] = None,
    can_write: Optional[bool] = None,
):
    perms = get_role_permissions(role)
    db_member = models.OrganizationMembership(
        organization_id=organization_id,
        user_id=user_id,
        role=role,
        can_read=perms["can_read"] if can_read is None else can_read,
        can_write=perms["can_write"] if can_write is None else can_write,
    )
    db.add(db_member)
    db.commit()
    db.refresh(db_member)
    return db_member


def update_member(db: Session, organization_id: uuid.UUID, user_id: uuid.UUID, changes: Dict[str, Any]):
    db_member = get_organization_member(db, organization_id, user_id)
    if db_member:
        for key, value in changes.items():
            setattr(db_member, key, value)
        db.commit()
        db.refresh(db_member)
    return db_member


def delete_member(db: Session, organization_id: uuid.UUID, user_id: uuid.UUID) -> bool:
    db_member = get_organization_member(db, organization_id, user_id)
    if db_member:
        db.delete(db_member)
        db.commit()
        return True
    return False


def count_owners(db: Session, organization_id: uuid.UUID) -> int:
    return (
        db.query(func.count(models.OrganizationMembership.user_id))
        .filter(
            models.OrganizationMembership.organization_id == organization_id,
            models.OrganizationMembership.role == ROLE_OWNER,
        )
        .scalar()
        or 0
    )
