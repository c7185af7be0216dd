"""Credential verification: username/password against stored users, plus break-glass."""

import enum
import hmac
import logging
from dataclasses import dataclass
from datetime import UTC, datetime

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import Settings
from app.core.security import verify_password
from app.models import User
from app.schemas.auth import CurrentUser, ProfileOut

logger = logging.getLogger(__name__)

BREAK_GLASS_USER_ID = 0
BREAK_GLASS_PROFILE_NAME = "Administrator"


class CredentialOutcome(enum.Enum):
    AUTHENTICATED = "authenticated"
    INVALID_CREDENTIALS = "invalid_credentials"
    ACCOUNT_INACTIVE = "account_inactive"


@dataclass(frozen=True)
class CredentialResult:
    """Outcome of a credential check; `user` is set only when authenticated."""

    outcome: CredentialOutcome
    user: CurrentUser | None = None
    # True when the identity is the in-memory administrator used during a storage outage.
    break_glass: bool = False

    @property
    def authenticated(self) -> bool:
        return self.outcome is CredentialOutcome.AUTHENTICATED


INVALID = CredentialResult(CredentialOutcome.INVALID_CREDENTIALS)
INACTIVE = CredentialResult(CredentialOutcome.ACCOUNT_INACTIVE)


def break_glass_identity(settings: Settings) -> CurrentUser:
    """In-memory administrator for the configured seed username; never persisted."""
    return CurrentUser(
        id=BREAK_GLASS_USER_ID,
        username=settings.SEED_ADMIN_USERNAME or "",
        email=settings.SEED_ADMIN_EMAIL,
        active=True,
        profile=ProfileOut(
            id=BREAK_GLASS_USER_ID,
            name=BREAK_GLASS_PROFILE_NAME,
            permissions=["all"],
        ),
    )


def _matches_break_glass(username: str, password: str, settings: Settings) -> bool:
    if not settings.BREAK_GLASS_ENABLED or not settings.seed_admin_configured:
        return False
    if settings.SEED_ADMIN_PASSWORD is None:
        return False
    expected_password = settings.SEED_ADMIN_PASSWORD.get_secret_value()
    username_ok = hmac.compare_digest(
        username.encode("utf-8"), (settings.SEED_ADMIN_USERNAME or "").encode("utf-8")
    )
    password_ok = hmac.compare_digest(
        password.encode("utf-8"), expected_password.encode("utf-8")
    )
    return username_ok and password_ok


def verify_credentials(
    db: Session,
    username: str,
    password: str,
    settings: Settings,
    now: datetime | None = None,
) -> CredentialResult:
    """
    Check a username/password pair against the user table.

    Unknown user and wrong password both yield INVALID_CREDENTIALS; an inactive
    account yields ACCOUNT_INACTIVE (callers answer both the same way). On success
    the user's last_login is updated. Storage errors fail closed, except that the
    seed administrator can still log in when BREAK_GLASS_ENABLED is set.
    """
    if not username or not password:
        return INVALID
    now = now or datetime.now(UTC)
    try:
        user = db.query(User).filter(User.username == username).first()
        if user is None:
            return INVALID
        if not user.active:
            return INACTIVE
        if not verify_password(password, user.password_hash):
            return INVALID
        user.last_login = now
        db.commit()
        db.refresh(user)
        return CredentialResult(
            CredentialOutcome.AUTHENTICATED, user=CurrentUser.model_validate(user)
        )
    except SQLAlchemyError as e:
        logger.warning("Credential check failed, storage unavailable: %s", e)
        db.rollback()
        if _matches_break_glass(username, password, settings):
            logger.warning("Break-glass login for seed administrator %r", username)
            return CredentialResult(
                CredentialOutcome.AUTHENTICATED,
                user=break_glass_identity(settings),
                break_glass=True,
            )
        return INVALID
