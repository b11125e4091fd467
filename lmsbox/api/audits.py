"""
Audit trail endpoints.

Organization owners/admins read their organization's trail; superadmins may
read across organizations.
"""
import uuid
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from lmsbox.api.deps import ensure_pat_allows_read, get_current_user_context_or_pat
from lmsbox.api.permissions import can_manage_org
from lmsbox.db import models, schemas
from lmsbox.db.database import get_db
from lmsbox.db.repositories import audits as audit_repo

router = APIRouter(prefix="/audits", tags=["audits"])


def _entry(row: models.AuditLog) -> schemas.AuditLog:
    # The declarative base reserves `.metadata`; the JSON column is `metadata_json`
    return schemas.AuditLog(
        id=row.id,
        organization_id=row.organization_id,
        actor_user_id=row.actor_user_id,
        action_type=row.action_type,
        status=row.status,
        target_type=row.target_type,
        target_id=row.target_id,
        reason=row.reason,
        metadata=row.get_metadata(),
        created_at=models.ensure_aware(row.created_at),
    )


@router.get("/", response_model=List[schemas.AuditLog])
def list_audit_logs(
    organization_id: Optional[uuid.UUID] = None,
    user_id: Optional[uuid.UUID] = None,
    action_type: Optional[str] = None,
    status: Optional[str] = None,
    target_type: Optional[str] = None,
    target_id: Optional[uuid.UUID] = None,
    since: Optional[datetime] = None,
    until: Optional[datetime] = None,
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=100, ge=1, le=500),
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context_or_pat),
):
    _user, current_user = user_context
    ensure_pat_allows_read(current_user, organization_id)

    if organization_id:
        if not can_manage_org(organization_id, current_user):
            raise HTTPException(status_code=403, detail="Forbidden")
    elif not current_user.get("is_superadmin"):
        raise HTTPException(status_code=403, detail="Forbidden, organization_id is required for non-superadmins")

    rows = audit_repo.list_audit_logs(
        db,
        organization_id=organization_id,
        actor_user_id=user_id,
        action_type=action_type,
        status=status,
        target_type=target_type,
        target_id=target_id,
        since=since,
        until=until,
        skip=skip,
        limit=limit,
    )
    return [_entry(row) for row in rows]
