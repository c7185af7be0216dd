"""Append-only audit trail writes and per-user history queries."""

import logging
from typing import Any

from fastapi import Request
from sqlalchemy import and_, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.models import AuditLog, Profile, User

logger = logging.getLogger(__name__)

USER_RESOURCE = "user"
PROFILE_RESOURCE = "profile"


def user_snapshot(user: User) -> dict[str, Any]:
    """Fields recorded as old/new values for user changes (never the password hash)."""
    return {
        "username": user.username,
        "email": user.email,
        "firstName": user.first_name,
        "lastName": user.last_name,
        "active": user.active,
    }


def profile_snapshot(profile: Profile) -> dict[str, Any]:
    return {
        "name": profile.name,
        "description": profile.description,
        "permissions": list(profile.permissions or []),
    }


def record_audit(
    db: Session,
    actor_id: int | None,
    action: str,
    resource: str,
    resource_id: str | int | None = None,
    old_values: dict[str, Any] | None = None,
    new_values: dict[str, Any] | None = None,
    request: Request | None = None,
) -> AuditLog | None:
    """
    Append one audit entry and commit it.

    A failed write is logged and rolled back; the action it describes has already
    been committed, so the caller's response is not affected. Returns the entry or None.
    """
    entry = AuditLog(
        user_id=actor_id,
        action=action,
        resource=resource,
        resource_id=str(resource_id) if resource_id is not None else None,
        old_values=old_values,
        new_values=new_values,
        ip_address=request.client.host if request is not None and request.client else None,
        user_agent=request.headers.get("user-agent") if request is not None else None,
    )
    try:
        db.add(entry)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("Failed to write audit log: action=%s resource=%s: %s", action, resource, e)
        return None
    return entry


def _with_actor(db: Session):
    return db.query(AuditLog, User).outerjoin(User, User.id == AuditLog.user_id)


def recent_audit_entries(db: Session, limit: int) -> list[tuple[AuditLog, User | None]]:
    """Newest audit entries across all resources, with the actor (None once deleted)."""
    return (
        _with_actor(db)
        .order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
        .limit(limit)
        .all()
    )


def user_history(db: Session, user_id: int, limit: int) -> list[tuple[AuditLog, User | None]]:
    """Entries performed by the user or on the user record, newest first, with the actor."""
    return (
        _with_actor(db)
        .filter(
            or_(
                AuditLog.user_id == user_id,
                and_(
                    AuditLog.resource == USER_RESOURCE,
                    AuditLog.resource_id == str(user_id),
                ),
            )
        )
        .order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
        .limit(limit)
        .all()
    )
