"""
Learning group endpoints.

Groups are managed by organization owners/admins. Membership changes keep
history: removing a learner deactivates the row and re-adding reactivates it.
"""
import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from lmsbox.audit import AuditAction, AuditStatus, safe_log
from lmsbox.api.deps import (
    get_current_user_context_or_pat,
    get_org_context,
    get_org_hint,
    require_org_manager,
    resolve_organization_id,
)
from lmsbox.db import models, schemas
from lmsbox.db.database import get_db
from lmsbox.db.repositories import groups as group_repo

router = APIRouter(prefix="/groups", tags=["groups"])


def _group_dict(group: models.LearningGroup, *, member_count: int = 0, course_count: int = 0):
    return {
        "id": str(group.id),
        "organization_id": str(group.organization_id),
        "name": group.name,
        "description": group.description,
        "member_count": member_count,
        "course_count": course_count,
        "created_at": models.ensure_aware(group.created_at),
    }


def _get_group_for_manager(db: Session, group_id: uuid.UUID, current_user, *, write: bool = False):
    group = group_repo.get_group(db, group_id)
    if not group:
        raise HTTPException(status_code=404, detail="Group not found")
    require_org_manager(current_user, group.organization_id, write=write)
    return group


def _org_user_ids(db: Session, organization_id: uuid.UUID, user_ids: List[uuid.UUID]) -> set:
    rows = (
        db.query(models.OrganizationMembership.user_id)
        .filter(
            models.OrganizationMembership.organization_id == organization_id,
            models.OrganizationMembership.user_id.in_(list(user_ids)),
        )
        .all()
    )
    return {row[0] for row in rows}


def _audit_membership(db: Session, user, group, *, added: int = 0, removed: int = 0, courses=None):
    metadata = {"added": added, "removed": removed}
    if courses is not None:
        metadata["courses"] = courses
    safe_log(
        db,
        action=AuditAction.GROUP_MEMBERSHIP_CHANGE,
        status=AuditStatus.SUCCESS,
        target_type="learning_group",
        target_id=group.id,
        actor_user_id=user.id,
        organization_id=group.organization_id,
        metadata=metadata,
    )


@router.get("/")
def list_groups(
    search: Optional[str] = None,
    db: Session = Depends(get_db),
    org_context=Depends(get_org_context),
):
    _user, current_user, org_id = org_context
    require_org_manager(current_user, org_id)
    groups = group_repo.list_groups(db, org_id, search=search)
    ids = [g.id for g in groups]
    members = group_repo.member_counts(db, ids)
    courses = group_repo.course_counts(db, ids)
    return [
        _group_dict(g, member_count=members.get(g.id, 0), course_count=courses.get(g.id, 0))
        for g in groups
    ]


@router.post("/", status_code=status.HTTP_201_CREATED)
def create_group(
    payload: schemas.LearningGroupCreate,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context_or_pat),
    org_hint: Optional[str] = Depends(get_org_hint),
):
    user, current_user = user_context
    org_id = resolve_organization_id(current_user, payload.organization_id or org_hint)
    require_org_manager(current_user, org_id, write=True)
    if group_repo.get_group_by_name(db, org_id, payload.name):
        raise HTTPException(status_code=409, detail="A group with this name already exists")
    group = group_repo.create_group(
        db,
        organization_id=org_id,
        name=payload.name,
        description=payload.description,
        user_id=user.id,
    )
    safe_log(
        db,
        action=AuditAction.GROUP_CREATE,
        status=AuditStatus.SUCCESS,
        target_type="learning_group",
        target_id=group.id,
        actor_user_id=user.id,
        organization_id=org_id,
        metadata={"name": group.name},
    )
    return _group_dict(group)


@router.get("/{group_id}")
def get_group(
    group_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context_or_pat),
):
    _user, current_user = user_context
    group = _get_group_for_manager(db, group_id, current_user)
    data = _group_dict(
        group,
        member_count=group_repo.member_counts(db, [group.id]).get(group.id, 0),
        course_count=group_repo.course_counts(db, [group.id]).get(group.id, 0),
    )
    data["members"] = [
        {
            "user_id": str(u.id),
            "email": u.email,
            "display_name": u.display_name,
            "joined_at": models.ensure_aware(m.joined_at),
        }
        for m, u in group_repo.list_group_members(db, group.id)
    ]
    data["courses"] = [
        {"id": str(c.id), "title": c.title, "status": c.status}
        for c in group_repo.list_group_courses(db, group.id)
    ]
    return data


@router.put("/{group_id}")
def update_group(
    group_id: uuid.UUID,
    payload: schemas.LearningGroupUpdate,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context_or_pat),
):
    user, current_user = user_context
    group = _get_group_for_manager(db, group_id, current_user, write=True)
    changes = {}
    if payload.name is not None:
        name = payload.name.strip()
        if not name or len(name) > 200:
            raise HTTPException(status_code=422, detail="Group name must be 1..200 characters")
        existing = group_repo.get_group_by_name(db, group.organization_id, name)
        if existing and existing.id != group.id:
            raise HTTPException(status_code=409, detail="A group with this name already exists")
        changes["name"] = name
    if "description" in payload.model_fields_set:
        changes["description"] = payload.description
    if changes:
        group = group_repo.update_group(db, group, changes)
        safe_log(
            db,
            action=AuditAction.GROUP_UPDATE,
            status=AuditStatus.SUCCESS,
            target_type="learning_group",
            target_id=group.id,
            actor_user_id=user.id,
            organization_id=group.organization_id,
            metadata={"fields": sorted(changes.keys())},
        )
    return _group_dict(group)


@router.delete("/{group_id}")
def delete_group(
    group_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context_or_pat),
):
    user, current_user = user_context
    group = _get_group_for_manager(db, group_id, current_user, write=True)
    org_id, name = group.organization_id, group.name
    group_repo.delete_group(db, group)
    safe_log(
        db,
        action=AuditAction.GROUP_DELETE,
        status=AuditStatus.SUCCESS,
        target_type="learning_group",
        target_id=group_id,
        actor_user_id=user.id,
        organization_id=org_id,
        metadata={"name": name},
    )
    return {"status": "deleted"}


@router.post("/{group_id}/members")
def add_group_members(
    group_id: uuid.UUID,
    payload: schemas.GroupMembersPayload,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context_or_pat),
):
    user, current_user = user_context
    group = _get_group_for_manager(db, group_id, current_user, write=True)
    members = _org_user_ids(db, group.organization_id, payload.user_ids)
    missing = [str(uid) for uid in payload.user_ids if uid not in members]
    if missing:
        raise HTTPException(status_code=422, detail=f"Users are not members of this organization: {', '.join(missing)}")
    added = group_repo.add_members(db, group, payload.user_ids)
    _audit_membership(db, user, group, added=added)
    return {"added": added}


@router.delete("/{group_id}/members")
def remove_group_members(
    group_id: uuid.UUID,
    payload: schemas.GroupMembersPayload,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context_or_pat),
):
    user, current_user = user_context
    group = _get_group_for_manager(db, group_id, current_user, write=True)
    removed = group_repo.remove_members(db, group, payload.user_ids)
    _audit_membership(db, user, group, removed=removed)
    return {"removed": removed}


@router.post("/{group_id}/courses")
def assign_group_courses(
    group_id: uuid.UUID,
    payload: schemas.GroupCoursesPayload,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context_or_pat),
):
    user, current_user = user_context
    group = _get_group_for_manager(db, group_id, current_user, write=True)
    ids = list(payload.course_ids)
    found = {
        row[0]
        for row in db.query(models.Course.id)
        .filter(models.Course.id.in_(ids), models.Course.organization_id == group.organization_id)
        .all()
    }
    missing = [str(cid) for cid in ids if cid not in found]
    if missing:
        raise HTTPException(status_code=422, detail=f"Courses do not belong to this organization: {', '.join(missing)}")
    added = group_repo.assign_courses(db, group, ids)
    _audit_membership(db, user, group, added=added, courses=[str(cid) for cid in ids])
    return {"assigned": added}


@router.delete("/{group_id}/courses")
def unassign_group_courses(
    group_id: uuid.UUID,
    payload: schemas.GroupCoursesPayload,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context_or_pat),
):
    user, current_user = user_context
    group = _get_group_for_manager(db, group_id, current_user, write=True)
    removed = group_repo.unassign_courses(db, group, payload.course_ids)
    _audit_membership(db, user, group, removed=removed, courses=[str(cid) for cid in payload.course_ids])
    return {"unassigned": removed}
