"""
Audit trail writer.

Routers call `safe_log()` once a write has committed. Enum members are
stored by value so the `action_type` column stays plain text.
"""
from __future__ import annotations
import logging
import uuid
from enum import Enum
from typing import Any, Optional, Dict
from sqlalchemy.orm import Session

from lmsbox.db import models, schemas
from lmsbox.db.repositories import audits as audit_repo

logger = logging.getLogger(__name__)

class AuditAction(str, Enum):
    # Organization
    ORGANIZATION_CREATE = "organization_create"
    ORGANIZATION_UPDATE = "organization_update"
    ORGANIZATION_DELETE = "organization_delete"
    ORGANIZATION_SETTINGS_UPDATE = "organization_settings_update"
    # Membership
    MEMBER_ADD = "member_add"
    MEMBER_REMOVE = "member_remove"
    MEMBER_ROLE_CHANGE = "member_role_change"
    # Course content
    COURSE_CREATE = "course_create"
    COURSE_UPDATE = "course_update"
    COURSE_DELETE = "course_delete"
    QUIZ_CREATE = "quiz_create"
    QUIZ_UPDATE = "quiz_update"
    QUIZ_DELETE = "quiz_delete"
    SURVEY_CREATE = "survey_create"
    SURVEY_UPDATE = "survey_update"
    SURVEY_DELETE = "survey_delete"
    # Groups and pathways
    GROUP_CREATE = "group_create"
    GROUP_UPDATE = "group_update"
    GROUP_DELETE = "group_delete"
    GROUP_MEMBERSHIP_CHANGE = "group_membership_change"
    PATHWAY_CREATE = "pathway_create"
    PATHWAY_UPDATE = "pathway_update"
    PATHWAY_DELETE = "pathway_delete"
    # Learner
    CERTIFICATE_ISSUE = "certificate_issue"
    # Passwordless sign-in
    LOGIN_LINK_REQUEST = "login_link_request"
    LOGIN_LINK_VERIFY = "login_link_verify"
    # Personal Access Tokens
    TOKEN_CREATE = "token_create"
    TOKEN_ROTATE = "token_rotate"
    TOKEN_REVOKE = "token_revoke"


class AuditStatus(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"


def _plain(value) -> str:
    return value.value if isinstance(value, Enum) else str(value)


def log(
    db: Session,
    *,
    action: AuditAction | str,
    status: AuditStatus | str = AuditStatus.SUCCESS,
    target_type: str,
    target_id: Optional[uuid.UUID] = None,
    actor_user_id: uuid.UUID,
    organization_id: Optional[uuid.UUID] = None,
    metadata: Optional[Dict[str, Any]] = None,
    reason: Optional[str] = None,
) -> models.AuditLog:
    entry = schemas.AuditLogCreate(
        action_type=_plain(action),
        status=_plain(status),
        target_type=target_type,
        target_id=target_id,
        reason=reason,
        metadata=metadata or {},
    )
    return audit_repo.record(
        db,
        entry,
        actor_user_id=actor_user_id,
        organization_id=organization_id,
    )


def safe_log(db: Session, **kwargs) -> None:
    """Like `log()`, but a failed audit write is rolled back and logged instead of raised."""
    try:
        log(db, **kwargs)
    except Exception:
        db.rollback()
        logger.warning("audit_write_failed action=%s", _plain(kwargs.get("action")), exc_info=True)


__all__ = ["AuditAction", "AuditStatus", "log", "safe_log"]
