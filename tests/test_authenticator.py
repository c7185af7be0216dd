"""Tests for app.services.authenticator: header parsing, JWT checks and live-session checks."""

import unittest
from datetime import UTC, datetime, timedelta
from unittest.mock import MagicMock, patch

from sqlalchemy.exc import OperationalError

from app.core.config import get_settings
from app.core.security import create_access_token, hash_token
from app.models import AuthSession
from app.schemas.auth import CurrentUser
from app.services.authenticator import (
    AUTHORIZATION_REQUIRED,
    INVALID_TOKEN,
    SESSION_INVALID,
    authenticate_request,
    bearer_token,
    session_is_live,
)
from app.services.credentials import BREAK_GLASS_USER_ID
from app.services.tokens import issue_tokens, revoke_session
from tests.db_case import DatabaseTestCase


def _bearer(token: str) -> str:
    return f"Bearer {token}"


def _unreachable_db() -> MagicMock:
    db = MagicMock()
    error = OperationalError("SELECT 1", {}, Exception("connection refused"))
    db.get.side_effect = error
    db.query.side_effect = error
    return db


class TestBearerToken(unittest.TestCase):
    def test_valid(self) -> None:
        self.assertEqual(bearer_token("Bearer abc.def.ghi"), "abc.def.ghi")

    def test_missing_or_malformed(self) -> None:
        for header in (None, "", "Bearer", "Bearer ", "Basic dXNlcjpwYXNz", "abc.def.ghi"):
            self.assertIsNone(bearer_token(header), header)


class TestSessionIsLive(unittest.TestCase):
    def test_strictly_before_expiry(self) -> None:
        expires = datetime(2026, 10, 19, 12, 0, tzinfo=UTC)
        self.assertTrue(session_is_live(expires, expires - timedelta(microseconds=1)))
        self.assertFalse(session_is_live(expires, expires))
        self.assertFalse(session_is_live(expires, expires + timedelta(seconds=1)))

    def test_naive_stored_value_is_utc(self) -> None:
        expires = datetime(2026, 10, 19, 12, 0)
        now = datetime(2026, 10, 19, 11, 0, tzinfo=UTC)
        self.assertTrue(session_is_live(expires, now))


class TestAuthenticateRequest(DatabaseTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.settings = get_settings()
        self.orm_user = self.make_user("vendedor", "user123", ["sales.read"])
        self.user = CurrentUser.model_validate(self.orm_user)
        self.tokens = issue_tokens(self.db, self.user, self.settings)

    def test_valid_token(self) -> None:
        decision = authenticate_request(self.db, _bearer(self.tokens.access_token), self.settings)
        self.assertTrue(decision.allowed)
        self.assertEqual(decision.user.id, self.user.id)
        self.assertEqual(decision.user.permissions, ["sales.read"])

    def test_missing_header(self) -> None:
        decision = authenticate_request(self.db, None, self.settings)
        self.assertFalse(decision.allowed)
        self.assertEqual(decision.status_code, 401)
        self.assertEqual(decision.reason, AUTHORIZATION_REQUIRED)

    def test_malformed_header(self) -> None:
        decision = authenticate_request(self.db, self.tokens.access_token, self.settings)
        self.assertEqual(decision.reason, AUTHORIZATION_REQUIRED)

    def test_tampered_token(self) -> None:
        tampered = self.tokens.access_token[:-4] + "AAAA"
        decision = authenticate_request(self.db, _bearer(tampered), self.settings)
        self.assertEqual(decision.reason, INVALID_TOKEN)

    def test_refresh_token_rejected(self) -> None:
        decision = authenticate_request(self.db, _bearer(self.tokens.refresh_token), self.settings)
        self.assertEqual(decision.reason, INVALID_TOKEN)

    def test_expired_jwt_rejected_even_with_live_session(self) -> None:
        past = datetime.now(UTC) - timedelta(minutes=self.settings.ACCESS_TOKEN_EXPIRE_MINUTES + 5)
        token, _ = create_access_token(self.user.id, self.user.username, None, now=past)
        self.db.add(
            AuthSession(
                user_id=self.user.id,
                token_hash=hash_token(token),
                expires_at=datetime.now(UTC) + timedelta(hours=1),
            )
        )
        self.db.commit()
        decision = authenticate_request(self.db, _bearer(token), self.settings)
        self.assertEqual(decision.reason, INVALID_TOKEN)

    def test_valid_jwt_without_session_rejected(self) -> None:
        token, _ = create_access_token(self.user.id, self.user.username, self.user.profile_id)
        decision = authenticate_request(self.db, _bearer(token), self.settings)
        self.assertFalse(decision.allowed)
        self.assertEqual(decision.reason, SESSION_INVALID)

    def test_rejected_after_logout(self) -> None:
        revoke_session(self.db, self.tokens.access_token)
        decision = authenticate_request(self.db, _bearer(self.tokens.access_token), self.settings)
        self.assertEqual(decision.reason, SESSION_INVALID)

    def test_session_expiring_exactly_now_is_expired(self) -> None:
        now = self.tokens.expires_at
        decision = authenticate_request(
            self.db, _bearer(self.tokens.access_token), self.settings, now=now
        )
        self.assertFalse(decision.allowed)
        self.assertEqual(decision.reason, SESSION_INVALID)

    def test_session_live_just_before_expiry(self) -> None:
        now = self.tokens.expires_at - timedelta(seconds=1)
        decision = authenticate_request(
            self.db, _bearer(self.tokens.access_token), self.settings, now=now
        )
        self.assertTrue(decision.allowed)

    def test_inactive_user_rejected(self) -> None:
        self.orm_user.active = False
        self.db.commit()
        decision = authenticate_request(self.db, _bearer(self.tokens.access_token), self.settings)
        self.assertEqual(decision.reason, INVALID_TOKEN)

    def test_session_of_other_user_does_not_count(self) -> None:
        other = CurrentUser.model_validate(self.make_user("contador", "contador123"))
        forged, _ = create_access_token(other.id, other.username, None)
        # Session row carries the token hash but belongs to a different user.
        self.db.add(
            AuthSession(
                user_id=self.user.id,
                token_hash=hash_token(forged),
                expires_at=datetime.now(UTC) + timedelta(hours=1),
            )
        )
        self.db.commit()
        decision = authenticate_request(self.db, _bearer(forged), self.settings)
        self.assertEqual(decision.reason, SESSION_INVALID)

    def test_unexpected_error_is_denied(self) -> None:
        with patch(
            "app.services.authenticator.decode_access_token", side_effect=RuntimeError("boom")
        ):
            decision = authenticate_request(
                self.db, _bearer(self.tokens.access_token), self.settings
            )
        self.assertFalse(decision.allowed)
        self.assertEqual(decision.reason, INVALID_TOKEN)


class TestStorageFailure(unittest.TestCase):
    """Unreachable storage denies every token except the seed administrator's under break-glass."""

    def setUp(self) -> None:
        self.seed_token, _ = create_access_token(42, "adrian", 1)
        self.other_token, _ = create_access_token(43, "vendedor", 2)

    def test_fails_closed(self) -> None:
        db = _unreachable_db()
        decision = authenticate_request(db, _bearer(self.other_token), get_settings())
        self.assertFalse(decision.allowed)
        self.assertEqual(decision.reason, INVALID_TOKEN)
        db.rollback.assert_called_once()

    def test_seed_admin_denied_without_break_glass(self) -> None:
        decision = authenticate_request(_unreachable_db(), _bearer(self.seed_token), get_settings())
        self.assertFalse(decision.allowed)

    def test_break_glass_allows_seed_admin(self) -> None:
        settings = get_settings().model_copy(update={"BREAK_GLASS_ENABLED": True})
        decision = authenticate_request(_unreachable_db(), _bearer(self.seed_token), settings)
        self.assertTrue(decision.allowed)
        self.assertEqual(decision.user.id, BREAK_GLASS_USER_ID)
        self.assertEqual(decision.user.permissions, ["all"])

    def test_break_glass_does_not_extend_to_others(self) -> None:
        settings = get_settings().model_copy(update={"BREAK_GLASS_ENABLED": True})
        decision = authenticate_request(_unreachable_db(), _bearer(self.other_token), settings)
        self.assertFalse(decision.allowed)

    def test_break_glass_still_requires_valid_signature(self) -> None:
        settings = get_settings().model_copy(update={"BREAK_GLASS_ENABLED": True})
        decision = authenticate_request(
            _unreachable_db(), _bearer(self.seed_token[:-4] + "AAAA"), settings
        )
        self.assertEqual(decision.reason, INVALID_TOKEN)


if __name__ == "__main__":
    unittest.main()
