"""Token issuance, refresh, revocation and expired-session cleanup."""

import logging
from dataclasses import dataclass
from datetime import UTC, datetime

import jwt
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import Settings
from app.core.security import (
    claim_user_id,
    create_access_token,
    create_refresh_token,
    decode_refresh_token,
    hash_token,
)
from app.models import AuthSession, User
from app.schemas.auth import CurrentUser

logger = logging.getLogger(__name__)


class RefreshTokenError(Exception):
    """Raised when a refresh token cannot be exchanged; the client must log in again."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str
    expires_at: datetime


def _persist_session(db: Session, user_id: int, token: str, expires_at: datetime) -> None:
    db.add(AuthSession(user_id=user_id, token_hash=hash_token(token), expires_at=expires_at))
    db.commit()


def issue_tokens(
    db: Session,
    user: CurrentUser,
    settings: Settings,
    now: datetime | None = None,
    persist_session: bool = True,
) -> TokenPair:
    """
    Mint an access/refresh token pair for an authenticated user.

    The access token's session row expires at the same instant as its exp claim.
    persist_session=False is used only for the break-glass identity, which has no
    database row to attach a session to.
    """
    now = now or datetime.now(UTC)
    access_token, expires_at = create_access_token(
        user.id, user.username, user.profile_id, now=now
    )
    refresh_token = create_refresh_token(user.id, now=now)
    if persist_session:
        _persist_session(db, user.id, access_token, expires_at)
    logger.info(
        "Issued tokens: user_id=%s session=%s expires_at=%s",
        user.id,
        "persisted" if persist_session else "none",
        expires_at.isoformat(),
    )
    return TokenPair(access_token, refresh_token, expires_at)


def refresh_access_token(
    db: Session,
    refresh_token: str,
    settings: Settings,
    now: datetime | None = None,
) -> str:
    """
    Exchange a valid refresh token for a new access token with the same identity claims.

    The user is re-read so a deactivated or deleted account cannot refresh, and a
    session row is persisted so the new token passes the request authenticator.
    Raises RefreshTokenError on any failure.
    """
    if not refresh_token:
        raise RefreshTokenError("Refresh token required")
    try:
        payload = decode_refresh_token(refresh_token)
    except jwt.PyJWTError as e:
        raise RefreshTokenError("Invalid refresh token") from e
    user_id = claim_user_id(payload)
    if user_id is None:
        raise RefreshTokenError("Invalid refresh token")

    now = now or datetime.now(UTC)
    try:
        user = db.get(User, user_id)
        if user is None or not user.active:
            raise RefreshTokenError("Invalid refresh token")
        profile_id = user.profile.id if user.profile else None
        access_token, expires_at = create_access_token(
            user.id, user.username, profile_id, now=now
        )
        _persist_session(db, user.id, access_token, expires_at)
    except SQLAlchemyError as e:
        logger.warning("Token refresh failed, storage unavailable: %s", e)
        db.rollback()
        raise RefreshTokenError("Invalid refresh token") from e
    logger.info("Refreshed access token: user_id=%s", user_id)
    return access_token


def revoke_session(db: Session, token: str) -> int:
    """Delete session rows for the token. Returns the number deleted (0 if already gone)."""
    deleted = (
        db.query(AuthSession)
        .filter(AuthSession.token_hash == hash_token(token))
        .delete(synchronize_session=False)
    )
    db.commit()
    return deleted


def revoke_user_sessions(db: Session, user_id: int) -> int:
    """Delete every session of a user (e.g. after a password change). Caller commits."""
    return (
        db.query(AuthSession)
        .filter(AuthSession.user_id == user_id)
        .delete(synchronize_session=False)
    )


def purge_expired_sessions(db: Session, now: datetime | None = None) -> int:
    """Delete sessions whose expires_at is at or before now. Idempotent."""
    now = now or datetime.now(UTC)
    deleted = (
        db.query(AuthSession)
        .filter(AuthSession.expires_at <= now)
        .delete(synchronize_session=False)
    )
    db.commit()
    if deleted > 0:
        logger.info("Session sweep: cutoff=%s, sessions_deleted=%s", now.isoformat(), deleted)
    return deleted
