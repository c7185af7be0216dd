"""Startup upsert of the configured seed administrator into the user table."""

import logging

from sqlalchemy.orm import Session

from app.core.config import Settings
from app.core.permissions import is_admin
from app.core.security import hash_password, verify_password
from app.models import Profile, User

logger = logging.getLogger(__name__)

SEED_PROFILE_NAME = "Administrator"
SEED_PROFILE_DESCRIPTION = "Full system access"


def ensure_seed_identity(db: Session, settings: Settings) -> User | None:
    """
    Create or repair the seed administrator so it can always log in.

    Ensures the account exists, is active, has the configured password and holds
    the `all` permission. Returns None when no seed administrator is configured.
    """
    if not settings.seed_admin_configured or settings.SEED_ADMIN_PASSWORD is None:
        return None
    username = settings.SEED_ADMIN_USERNAME
    password = settings.SEED_ADMIN_PASSWORD.get_secret_value()

    user = db.query(User).filter(User.username == username).first()
    if user is None:
        user = User(
            username=username,
            email=settings.SEED_ADMIN_EMAIL,
            password_hash=hash_password(password),
            active=True,
        )
        db.add(user)
        db.flush()
        logger.info("Created seed administrator %r", username)
    else:
        if not user.active:
            user.active = True
        if not verify_password(password, user.password_hash):
            user.password_hash = hash_password(password)
            logger.info("Reset password of seed administrator %r", username)

    if user.profile is None:
        user.profile = Profile(
            name=SEED_PROFILE_NAME,
            description=SEED_PROFILE_DESCRIPTION,
            permissions=["all"],
        )
    elif not is_admin(user.profile.permissions):
        user.profile.permissions = [*(user.profile.permissions or []), "all"]
    db.commit()
    db.refresh(user)
    return user
