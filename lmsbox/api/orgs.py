"""
Organizations API endpoints.

Manage organizations, their settings and memberships with owner/admin role
enforcement and audited lifecycle actions.
"""
import re
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from lmsbox.audit import AuditAction, AuditStatus, safe_log
from lmsbox.db.database import get_db
from lmsbox.db import models, schemas
from lmsbox.db.repositories import organizations as org_repo
from lmsbox.db.repositories import users as user_repo
from lmsbox.api.deps import (
    get_current_user_context_or_pat,
    ensure_pat_allows_write,
    require_org_manager,
    require_org_member,
)
from lmsbox.utils.role_permissions import (
    MANAGE_ROLES,
    ROLE_LEARNER,
    ROLE_OWNER,
    get_allowed_roles,
    get_role_permissions,
)


router = APIRouter(prefix="/organizations", tags=["organizations"])

_SLUG_STRIP = re.compile(r"[^a-z0-9]+")
ACTIVE_STATUSES = ("active", "inactive")


def slugify(name: str) -> str:
    return _SLUG_STRIP.sub("-", name.lower()).strip("-")


def _org_dict(org: models.Organization, *, include_creator: bool = False):
    data = {
        "id": str(org.id),
        "name": org.name,
        "slug": org.slug,
        "description": org.description,
        "is_active": org.is_active,
    }
    if include_creator:
        data["created_by"] = str(org.created_by) if org.created_by else None
    return data


def _get_org_or_404(db: Session, org_id: uuid.UUID) -> models.Organization:
    org = org_repo.get_organization(db, org_id)
    if not org:
        raise HTTPException(status_code=404, detail="Organization not found")
    return org


def _check_name_free(db: Session, name: str, org_id: Optional[uuid.UUID] = None):
    existing = org_repo.get_organization_by_name(db, name)
    if existing and existing.id != org_id:
        raise HTTPException(status_code=409, detail="Organization name already exists")


def _check_slug_free(db: Session, slug: str, org_id: Optional[uuid.UUID] = None):
    existing = org_repo.get_organization_by_slug(db, slug)
    if existing and existing.id != org_id:
        raise HTTPException(status_code=409, detail="Organization slug already exists")


def _audit(db: Session, action: AuditAction, actor, org_id, *, member_id=None, metadata=None) -> None:
    """Membership actions target the member; everything else targets the organization."""
    target_type, target_id = ("user", member_id) if member_id else ("organization", org_id)
    safe_log(
        db,
        action=action,
        status=AuditStatus.SUCCESS,
        target_type=target_type,
        target_id=target_id,
        actor_user_id=actor.id,
        organization_id=org_id,
        metadata=metadata,
    )


@router.post("/", status_code=status.HTTP_201_CREATED)
def create_organization(
    payload: dict,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context_or_pat),
):
    user, current_user = user_context
    ensure_pat_allows_write(current_user)
    name = (payload.get("name") or "").strip()
    if not name:
        raise HTTPException(status_code=422, detail="Organization name is required")
    slug = slugify((payload.get("slug") or "").strip() or name)
    if not slug:
        raise HTTPException(status_code=422, detail="Organization slug is invalid")

    _check_name_free(db, name)
    _check_slug_free(db, slug)

    org = org_repo.create_organization(
        db,
        name=name,
        slug=slug,
        user_id=user.id,
        description=payload.get("description"),
    )
    _audit(db, AuditAction.ORGANIZATION_CREATE, user, org.id)
    return _org_dict(org)


@router.get("/")
def list_organizations(
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context_or_pat),
):
    """List organizations where the user has membership (for the organization switcher)."""
    user, _current_user = user_context
    return [_org_dict(o) for o in org_repo.get_organizations(db, user.id, limit=1000)]


@router.get("/manageable")
def list_manageable_organizations(
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context_or_pat),
):
    """Organizations the user owns or administers; every organization for superadmins."""
    user, current_user = user_context
    if current_user.get("is_superadmin"):
        orgs = org_repo.get_all_organizations(db, limit=1000)
    else:
        orgs = org_repo.get_manageable_organizations(db, user.id, MANAGE_ROLES)
    return [_org_dict(o, include_creator=True) for o in orgs]


@router.get("/admin")
def list_organizations_admin(
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context_or_pat),
):
    """List all organizations for administration purposes (superadmin only)."""
    _user, current_user = user_context
    if not current_user.get("is_superadmin"):
        raise HTTPException(status_code=403, detail="Superadmin access required")
    orgs = org_repo.get_all_organizations(db, limit=1000)
    result = []
    for o in orgs:
        data = _org_dict(o, include_creator=True)
        data["member_count"] = org_repo.count_members(db, o.id)
        data["course_count"] = org_repo.count_courses(db, o.id)
        result.append(data)
    return result


@router.get("/{org_id}")
def get_organization(
    org_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context_or_pat),
):
    _user, current_user = user_context
    org = _get_org_or_404(db, org_id)
    require_org_member(current_user, org_id)
    return _org_dict(org)


@router.put("/{org_id}")
def update_organization(
    org_id: uuid.UUID,
    payload: dict,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context_or_pat),
):
    user, current_user = user_context
    org = _get_org_or_404(db, org_id)
    require_org_manager(current_user, org_id, write=True)

    old_data = {"name": org.name, "slug": org.slug, "is_active": org.is_active}
    changes = {}

    new_name = (payload.get("name") or "").strip()
    if new_name and new_name != org.name:
        _check_name_free(db, new_name, org_id)
        changes["name"] = new_name

    if payload.get("slug"):
        new_slug = slugify(payload["slug"])
        if new_slug and new_slug != org.slug:
            _check_slug_free(db, new_slug, org_id)
            changes["slug"] = new_slug

    if "description" in payload and payload["description"] != org.description:
        changes["description"] = payload["description"]

    new_active = payload.get("is_active")
    if new_active is not None and bool(new_active) != org.is_active:
        changes["is_active"] = bool(new_active)

    if changes:
        org = org_repo.update_organization(db, org_id, changes)
        new_data = {"name": org.name, "slug": org.slug, "is_active": org.is_active}
        _audit(db, AuditAction.ORGANIZATION_UPDATE, user, org.id, metadata={"old_data": old_data, "new_data": new_data})
    return _org_dict(org)


@router.delete("/{org_id}")
def delete_organization(
    org_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context_or_pat),
):
    user, current_user = user_context
    _get_org_or_404(db, org_id)
    require_org_manager(current_user, org_id, write=True)

    if org_repo.count_courses(db, org_id) > 0:
        raise HTTPException(status_code=409, detail="Organization still has courses; delete them first")

    # Logged before the delete so the entry can still reference the organization
    _audit(db, AuditAction.ORGANIZATION_DELETE, user, org_id)
    org_repo.delete_organization(db, org_id)
    return {"status": "deleted"}


# Settings


@router.get("/{org_id}/settings", response_model=schemas.OrganizationSettings)
def get_settings(
    org_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context_or_pat),
):
    _user, current_user = user_context
    org = _get_org_or_404(db, org_id)
    require_org_member(current_user, org_id)
    return org


@router.put("/{org_id}/settings", response_model=schemas.OrganizationSettings)
def update_settings(
    org_id: uuid.UUID,
    payload: schemas.OrganizationSettingsUpdate,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context_or_pat),
):
    user, current_user = user_context
    org = _get_org_or_404(db, org_id)
    require_org_manager(current_user, org_id, write=True)

    requested = payload.model_dump(exclude_unset=True)
    changes = {}
    for field in org_repo.SETTINGS_FIELDS:
        if field not in requested:
            continue
        value = requested[field]
        if isinstance(value, str):
            value = value.strip() or None
        if field == "name":
            if not value:
                raise HTTPException(status_code=422, detail="Organization name is required")
            if value != org.name:
                _check_name_free(db, value, org_id)
        if value != getattr(org, field):
            changes[field] = value

    if changes:
        if "max_users" in changes and changes["max_users"] is not None:
            if org_repo.count_members(db, org_id) > changes["max_users"]:
                raise HTTPException(status_code=409, detail="max_users is below the current member count")
        org = org_repo.update_organization(db, org_id, changes)
        _audit(db, AuditAction.ORGANIZATION_SETTINGS_UPDATE, user, org.id, metadata={"fields": sorted(changes.keys())})
    return org


# Members


def _member_dict(m: models.OrganizationMembership, u: models.User):
    return {
        "user_id": str(u.id),
        "email": u.email,
        "display_name": u.display_name,
        "first_name": u.first_name,
        "last_name": u.last_name,
        "role": m.role,
        "can_read": bool(m.can_read),
        "can_write": bool(m.can_write),
        "active_status": u.active_status,
        "created_at": models.ensure_aware(m.created_at),
    }


@router.get("/{org_id}/members")
def list_members(
    org_id: uuid.UUID,
    search: Optional[str] = None,
    role: Optional[str] = None,
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, ge=1, le=org_repo.MAX_MEMBER_PAGE_SIZE),
    sort_by: str = "created_at",
    sort_desc: bool = False,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context_or_pat),
):
    _user, current_user = user_context
    _get_org_or_404(db, org_id)
    require_org_member(current_user, org_id)
    if sort_by not in org_repo.MEMBER_SORT_FIELDS:
        raise HTTPException(status_code=422, detail="Invalid sort_by")
    if role and role not in get_allowed_roles():
        raise HTTPException(status_code=422, detail="Invalid role")

    rows, total = org_repo.list_members(
        db,
        org_id,
        search=search,
        role=role,
        page=page,
        page_size=page_size,
        sort_by=sort_by,
        sort_desc=sort_desc,
    )
    return {
        "items": [_member_dict(m, u) for m, u in rows],
        "total": total,
        "page": page,
        "page_size": page_size,
    }


@router.post("/{org_id}/members", status_code=status.HTTP_201_CREATED)
def add_member(
    org_id: uuid.UUID,
    payload: dict,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context_or_pat),
):
    user, current_user = user_context
    org = _get_org_or_404(db, org_id)
    require_org_manager(current_user, org_id, write=True)

    email = (payload.get("email") or "").strip().lower()
    if not email or "@" not in email:
        raise HTTPException(status_code=422, detail="Email is required")
    role = payload.get("role") or ROLE_LEARNER
    # Pre-validate role against allowed set to avoid DB integrity errors
    if role not in get_allowed_roles():
        raise HTTPException(status_code=422, detail="Invalid role")

    if org.max_users is not None and org_repo.count_members(db, org_id) >= org.max_users:
        raise HTTPException(status_code=409, detail="Organization has reached its member limit")

    member_user = user_repo.get_user_by_email(db, email)
    if member_user is None:
        member_user = user_repo.create_user(
            db,
            email=email,
            first_name=(payload.get("first_name") or "").strip() or None,
            last_name=(payload.get("last_name") or "").strip() or None,
        )
    elif org_repo.get_organization_member(db, org_id, member_user.id):
        raise HTTPException(status_code=409, detail="User already a member")

    m = org_repo.add_member(db, org_id, member_user.id, role=role)
    _audit(db, AuditAction.MEMBER_ADD, user, org_id, member_id=member_user.id, metadata={"role": role})
    return _member_dict(m, member_user)


@router.put("/{org_id}/members/{member_user_id}")
def update_member(
    org_id: uuid.UUID,
    member_user_id: uuid.UUID,
    payload: dict,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context_or_pat),
):
    user, current_user = user_context
    _get_org_or_404(db, org_id)
    require_org_manager(current_user, org_id, write=True)

    m = org_repo.get_organization_member(db, org_id, member_user_id)
    if not m:
        raise HTTPException(status_code=404, detail="Membership not found")
    member_user = user_repo.get_user(db, member_user_id)

    old_role = m.role
    new_role = payload.get("role") or old_role
    if new_role not in get_allowed_roles():
        raise HTTPException(status_code=422, detail="Invalid role")
    if old_role == ROLE_OWNER and new_role != ROLE_OWNER and org_repo.count_owners(db, org_id) <= 1:
        raise HTTPException(status_code=409, detail="Organization must keep at least one owner")

    active_status = payload.get("active_status")
    if active_status is not None:
        if active_status not in ACTIVE_STATUSES:
            raise HTTPException(status_code=422, detail="Invalid active_status")
        if member_user_id == user.id and active_status == "inactive":
            raise HTTPException(status_code=422, detail="You cannot deactivate yourself")
        if member_user.active_status != active_status:
            user_repo.update_user(db, member_user, {"active_status": active_status})

    if new_role != old_role:
        perms = get_role_permissions(new_role)
        m = org_repo.update_member(
            db,
            org_id,
            member_user_id,
            {"role": new_role, "can_read": perms["can_read"], "can_write": perms["can_write"]},
        )
        _audit(
            db, AuditAction.MEMBER_ROLE_CHANGE, user, org_id,
            member_id=member_user_id, metadata={"old_role": old_role, "new_role": new_role},
        )
    return _member_dict(m, member_user)


@router.delete("/{org_id}/members/{member_user_id}")
def remove_member(
    org_id: uuid.UUID,
    member_user_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context_or_pat),
):
    user, current_user = user_context
    _get_org_or_404(db, org_id)
    require_org_manager(current_user, org_id, write=True)
    if member_user_id == user.id:
        raise HTTPException(status_code=422, detail="You cannot remove yourself")

    m = org_repo.get_organization_member(db, org_id, member_user_id)
    if not m:
        raise HTTPException(status_code=404, detail="Membership not found")
    if m.role == ROLE_OWNER and org_repo.count_owners(db, org_id) <= 1:
        raise HTTPException(status_code=409, detail="Organization must keep at least one owner")
    org_repo.delete_member(db, org_id, member_user_id)

    _audit(db, AuditAction.MEMBER_REMOVE, user, org_id, member_id=member_user_id)
    return {"status": "removed"}
