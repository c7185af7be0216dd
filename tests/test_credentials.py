"""Tests for app.services.credentials: password checks, inactive accounts, fail-closed storage."""

import unittest
from datetime import UTC, datetime
from unittest.mock import MagicMock

from sqlalchemy.exc import OperationalError

from app.core.config import get_settings
from app.services.credentials import (
    BREAK_GLASS_USER_ID,
    CredentialOutcome,
    verify_credentials,
)
from tests.db_case import DatabaseTestCase


def _unreachable_db() -> MagicMock:
    db = MagicMock()
    db.query.side_effect = OperationalError("SELECT 1", {}, Exception("connection refused"))
    return db


class TestVerifyCredentials(DatabaseTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.settings = get_settings()
        self.user = self.make_user("contador", "contador123", ["accounting.full"])

    def test_valid_credentials(self) -> None:
        result = verify_credentials(self.db, "contador", "contador123", self.settings)
        self.assertTrue(result.authenticated)
        self.assertEqual(result.user.id, self.user.id)
        self.assertEqual(result.user.permissions, ["accounting.full"])
        self.assertFalse(result.break_glass)

    def test_updates_last_login(self) -> None:
        now = datetime(2026, 10, 19, 12, 0, tzinfo=UTC)
        verify_credentials(self.db, "contador", "contador123", self.settings, now=now)
        self.db.expire_all()
        self.assertEqual(self.user.last_login.replace(tzinfo=None), now.replace(tzinfo=None))

    def test_wrong_password(self) -> None:
        result = verify_credentials(self.db, "contador", "wrong", self.settings)
        self.assertEqual(result.outcome, CredentialOutcome.INVALID_CREDENTIALS)
        self.assertIsNone(result.user)

    def test_failed_login_does_not_touch_last_login(self) -> None:
        verify_credentials(self.db, "contador", "wrong", self.settings)
        self.db.expire_all()
        self.assertIsNone(self.user.last_login)

    def test_unknown_user(self) -> None:
        result = verify_credentials(self.db, "nobody", "contador123", self.settings)
        self.assertEqual(result.outcome, CredentialOutcome.INVALID_CREDENTIALS)

    def test_inactive_user(self) -> None:
        self.make_user("inactivo", "user123", active=False)
        result = verify_credentials(self.db, "inactivo", "user123", self.settings)
        self.assertEqual(result.outcome, CredentialOutcome.ACCOUNT_INACTIVE)
        self.assertFalse(result.authenticated)

    def test_empty_fields(self) -> None:
        self.assertFalse(verify_credentials(self.db, "", "x", self.settings).authenticated)
        self.assertFalse(verify_credentials(self.db, "contador", "", self.settings).authenticated)


class TestStorageFailure(unittest.TestCase):
    """Storage errors fail closed; only the seed administrator has a break-glass path."""

    def test_fails_closed(self) -> None:
        db = _unreachable_db()
        result = verify_credentials(db, "contador", "contador123", get_settings())
        self.assertEqual(result.outcome, CredentialOutcome.INVALID_CREDENTIALS)
        db.rollback.assert_called_once()

    def test_seed_admin_denied_when_break_glass_disabled(self) -> None:
        settings = get_settings().model_copy(update={"BREAK_GLASS_ENABLED": False})
        result = verify_credentials(_unreachable_db(), "adrian", "jopo", settings)
        self.assertFalse(result.authenticated)

    def test_break_glass_login(self) -> None:
        settings = get_settings().model_copy(update={"BREAK_GLASS_ENABLED": True})
        result = verify_credentials(_unreachable_db(), "adrian", "jopo", settings)
        self.assertTrue(result.authenticated)
        self.assertTrue(result.break_glass)
        self.assertEqual(result.user.id, BREAK_GLASS_USER_ID)
        self.assertEqual(result.user.username, "adrian")
        self.assertEqual(result.user.permissions, ["all"])

    def test_break_glass_wrong_password(self) -> None:
        settings = get_settings().model_copy(update={"BREAK_GLASS_ENABLED": True})
        result = verify_credentials(_unreachable_db(), "adrian", "wrong", settings)
        self.assertFalse(result.authenticated)

    def test_break_glass_other_user(self) -> None:
        settings = get_settings().model_copy(update={"BREAK_GLASS_ENABLED": True})
        result = verify_credentials(_unreachable_db(), "contador", "jopo", settings)
        self.assertFalse(result.authenticated)


if __name__ == "__main__":
    unittest.main()
