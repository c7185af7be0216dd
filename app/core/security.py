"""Password hashing and JWT creation/verification for authentication."""

import hashlib
import uuid
from datetime import UTC, datetime, timedelta
from typing import Any

import bcrypt
import jwt

from app.core.config import settings

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"

# Min/max lengths for username and password validation.
USERNAME_MIN_LEN = 1
USERNAME_MAX_LEN = 255
PASSWORD_MIN_LEN = 1
PASSWORD_MAX_LEN = 128
# Stricter rules for accounts created or changed through user administration.
NEW_USERNAME_MIN_LEN = 3
NEW_PASSWORD_MIN_LEN = 6


def hash_password(plain_password: str) -> str:
    """Hash a plain-text password for storage. Do not store plain passwords."""
    # bcrypt has a 72-byte limit; truncate to avoid errors (validation already limits length).
    pw_bytes = plain_password.encode("utf-8")[:72]
    salt = bcrypt.gensalt(rounds=settings.PASSWORD_HASH_ROUNDS)
    return bcrypt.hashpw(pw_bytes, salt).decode("utf-8")


def verify_password(plain_password: str, hashed: str) -> bool:
    """Verify a plain password against a stored hash (bcrypt compares in constant time)."""
    pw_bytes = plain_password.encode("utf-8")[:72]
    try:
        return bcrypt.checkpw(pw_bytes, hashed.encode("utf-8"))
    except (ValueError, TypeError):
        return False


def hash_token(token: str) -> str:
    """SHA-256 hex digest of a token; sessions store this instead of the raw token."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def access_token_lifetime() -> timedelta:
    return timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)


def refresh_token_lifetime() -> timedelta:
    return timedelta(minutes=settings.REFRESH_TOKEN_EXPIRE_MINUTES)


def _encode(claims: dict[str, Any], secret: str, expire: datetime, now: datetime) -> str:
    payload = {**claims, "jti": uuid.uuid4().hex, "iat": now, "exp": expire}
    return jwt.encode(payload, secret, algorithm=settings.JWT_ALGORITHM)


def create_access_token(
    user_id: int,
    username: str,
    profile_id: int | None,
    now: datetime | None = None,
) -> tuple[str, datetime]:
    """
    Create a signed access token for the user.

    Returns (token, expires_at); the session row for the token must use the same expiry.
    """
    now = now or datetime.now(UTC)
    expire = now + access_token_lifetime()
    claims = {
        "sub": str(user_id),
        "userId": user_id,
        "username": username,
        "profileId": profile_id,
        "type": ACCESS_TOKEN_TYPE,
    }
    token = _encode(claims, settings.JWT_SECRET.get_secret_value(), expire, now)
    return token, expire


def create_refresh_token(user_id: int, now: datetime | None = None) -> str:
    """Create a refresh token signed with the refresh secret; carries only the user id."""
    now = now or datetime.now(UTC)
    claims = {"sub": str(user_id), "userId": user_id, "type": REFRESH_TOKEN_TYPE}
    return _encode(
        claims,
        settings.JWT_REFRESH_SECRET.get_secret_value(),
        now + refresh_token_lifetime(),
        now,
    )


def _decode(token: str, secret: str, expected_type: str) -> dict[str, Any]:
    payload = jwt.decode(
        token,
        secret,
        algorithms=[settings.JWT_ALGORITHM],
        options={"require": ["exp", "iat", "sub"]},
    )
    if payload.get("type") != expected_type:
        raise jwt.InvalidTokenError(f"Expected a {expected_type} token")
    return payload


def decode_access_token(token: str) -> dict[str, Any]:
    """
    Decode and validate an access token; return its claims.
    Raises jwt.PyJWTError on invalid, expired or mistyped token.
    """
    return _decode(token, settings.JWT_SECRET.get_secret_value(), ACCESS_TOKEN_TYPE)


def decode_refresh_token(token: str) -> dict[str, Any]:
    """
    Decode and validate a refresh token; return its claims.
    Raises jwt.PyJWTError on invalid, expired or mistyped token.
    """
    return _decode(token, settings.JWT_REFRESH_SECRET.get_secret_value(), REFRESH_TOKEN_TYPE)


def claim_user_id(payload: dict[str, Any]) -> int | None:
    """Integer user id from token claims, or None when missing or malformed."""
    raw = payload.get("userId", payload.get("sub"))
    if isinstance(raw, bool):
        return None
    try:
        return int(raw)
    except (TypeError, ValueError):
        return None
