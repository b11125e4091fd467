"""
Audit trail persistence.

Rows are append-only; the JSON payload lives in the ``metadata`` column,
exposed on the model as ``metadata_json``.
"""
from __future__ import annotations

import uuid
from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from lmsbox.db import models, schemas


def record(
    db: Session,
    entry: schemas.AuditLogCreate,
    *,
    actor_user_id: uuid.UUID,
    organization_id: Optional[uuid.UUID] = None,
) -> models.AuditLog:
    row = models.AuditLog(
        actor_user_id=actor_user_id,
        organization_id=organization_id,
        action_type=entry.action_type,
        status=entry.status,
        target_type=entry.target_type,
        target_id=entry.target_id,
        reason=entry.reason,
        metadata_json=entry.metadata or None,
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def list_audit_logs(
    db: Session,
    *,
    organization_id: Optional[uuid.UUID] = None,
    actor_user_id: Optional[uuid.UUID] = None,
    action_type: Optional[str] = None,
    status: Optional[str] = None,
    target_type: Optional[str] = None,
    target_id: Optional[uuid.UUID] = None,
    since: Optional[datetime] = None,
    until: Optional[datetime] = None,
    skip: int = 0,
    limit: int = 100,
) -> List[models.AuditLog]:
    """Newest first; every filter is optional and they combine with AND."""
    AuditLog = models.AuditLog
    query = db.query(AuditLog)
    exact = (
        (AuditLog.organization_id, organization_id),
        (AuditLog.actor_user_id, actor_user_id),
        (AuditLog.action_type, action_type),
        (AuditLog.status, status),
        (AuditLog.target_type, target_type),
        (AuditLog.target_id, target_id),
    )
    for column, value in exact:
        if value is not None:
            query = query.filter(column == value)
    if since is not None:
        query = query.filter(AuditLog.created_at >= since)
    if until is not None:
        query = query.filter(AuditLog.created_at <= until)
    return query.order_by(AuditLog.created_at.desc()).offset(skip).limit(limit).all()
