"""Base test case with a fresh schema per test and small builders for users."""

import unittest

from app.core.database import SessionLocal, engine
from app.core.security import hash_password
from app.models import Base, Profile, User


class DatabaseTestCase(unittest.TestCase):
    """Creates all tables before each test and drops them afterwards."""

    def setUp(self) -> None:
        Base.metadata.create_all(engine)
        self.db = SessionLocal()

    def tearDown(self) -> None:
        self.db.close()
        Base.metadata.drop_all(engine)

    def make_user(
        self,
        username: str = "contador",
        password: str = "contador123",
        permissions: list[str] | None = None,
        active: bool = True,
        email: str | None = None,
        with_profile: bool = True,
    ) -> User:
        """Persist a user (and profile unless with_profile=False) and return it."""
        user = User(
            username=username,
            email=email,
            password_hash=hash_password(password),
            first_name=username.capitalize(),
            active=active,
        )
        if with_profile:
            user.profile = Profile(
                name=f"{username} profile",
                permissions=list(permissions or []),
            )
        self.db.add(user)
        self.db.commit()
        self.db.refresh(user)
        return user
