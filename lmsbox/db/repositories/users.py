"""
User repository functions.
"""
from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from lmsbox.db import models


def get_user(db: Session, user_id: uuid.UUID) -> Optional[models.User]:
    return db.query(models.User).filter(models.User.id == user_id).first()


def get_user_by_email(db: Session, email: str) -> Optional[models.User]:
    return db.query(models.User).filter(models.User.email == email.strip().lower()).first()


def create_user(
    db: Session,
    *,
    email: str,
    first_name: Optional[str] = None,
    last_name: Optional[str] = None,
    display_name: Optional[str] = None,
) -> models.User:
    email = email.strip().lower()
    if not display_name:
        parts = [p for p in (first_name, last_name) if p]
        display_name = " ".join(parts) if parts else email.split("@")[0]
    user = models.User(
        email=email,
        first_name=first_name,
        last_name=last_name,
        display_name=display_name,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def update_user(db: Session, user: models.User, changes: Dict[str, Any]) -> models.User:
    for key, value in changes.items():
        setattr(user, key, value)
    db.commit()
    db.refresh(user)
    return user


def stamp_login(db: Session, user: models.User) -> None:
    user.last_login_at = datetime.now(timezone.utc)
    db.commit()
