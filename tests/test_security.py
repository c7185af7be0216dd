"""Unit tests for app.core.security: password hashing and access/refresh JWTs."""

import unittest
from datetime import UTC, datetime, timedelta

import jwt

from app.core.config import settings
from app.core.security import (
    claim_user_id,
    create_access_token,
    create_refresh_token,
    decode_access_token,
    decode_refresh_token,
    hash_password,
    hash_token,
    verify_password,
)


class TestPasswordHashing(unittest.TestCase):
    def test_hash_is_salted_and_verifies(self) -> None:
        first = hash_password("jopo")
        second = hash_password("jopo")
        self.assertNotEqual(first, second)
        self.assertNotIn("jopo", first)
        self.assertTrue(verify_password("jopo", first))
        self.assertTrue(verify_password("jopo", second))

    def test_wrong_password(self) -> None:
        self.assertFalse(verify_password("nope", hash_password("jopo")))

    def test_malformed_hash_returns_false(self) -> None:
        self.assertFalse(verify_password("jopo", "not-a-bcrypt-hash"))


class TestAccessToken(unittest.TestCase):
    def test_claims(self) -> None:
        now = datetime.now(UTC)
        token, expires_at = create_access_token(7, "contador", 3, now=now)
        payload = decode_access_token(token)
        self.assertEqual(payload["userId"], 7)
        self.assertEqual(payload["sub"], "7")
        self.assertEqual(payload["username"], "contador")
        self.assertEqual(payload["profileId"], 3)
        self.assertEqual(payload["type"], "access")
        self.assertEqual(
            expires_at, now + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
        )
        self.assertEqual(payload["exp"], int(expires_at.timestamp()))

    def test_tokens_are_unique(self) -> None:
        now = datetime.now(UTC)
        first, _ = create_access_token(7, "contador", None, now=now)
        second, _ = create_access_token(7, "contador", None, now=now)
        self.assertNotEqual(first, second)
        self.assertNotEqual(hash_token(first), hash_token(second))

    def test_expired_token_rejected(self) -> None:
        past = datetime.now(UTC) - timedelta(
            minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES + 1
        )
        token, _ = create_access_token(7, "contador", None, now=past)
        with self.assertRaises(jwt.ExpiredSignatureError):
            decode_access_token(token)

    def test_tampered_token_rejected(self) -> None:
        token, _ = create_access_token(7, "contador", None)
        header, payload, signature = token.split(".")
        tampered = ".".join([header, payload, signature[::-1]])
        with self.assertRaises(jwt.PyJWTError):
            decode_access_token(tampered)

    def test_wrong_secret_rejected(self) -> None:
        forged = jwt.encode(
            {
                "sub": "7",
                "userId": 7,
                "username": "contador",
                "type": "access",
                "iat": datetime.now(UTC),
                "exp": datetime.now(UTC) + timedelta(hours=1),
            },
            "some-other-secret",
            algorithm="HS256",
        )
        with self.assertRaises(jwt.InvalidSignatureError):
            decode_access_token(forged)


class TestRefreshToken(unittest.TestCase):
    def test_claims(self) -> None:
        payload = decode_refresh_token(create_refresh_token(7))
        self.assertEqual(payload["userId"], 7)
        self.assertEqual(payload["type"], "refresh")
        self.assertNotIn("username", payload)

    def test_refresh_token_is_not_an_access_token(self) -> None:
        with self.assertRaises(jwt.PyJWTError):
            decode_access_token(create_refresh_token(7))

    def test_access_token_is_not_a_refresh_token(self) -> None:
        token, _ = create_access_token(7, "contador", None)
        with self.assertRaises(jwt.PyJWTError):
            decode_refresh_token(token)

    def test_lifetime(self) -> None:
        now = datetime.now(UTC)
        payload = decode_refresh_token(create_refresh_token(7, now=now))
        expected = now + timedelta(minutes=settings.REFRESH_TOKEN_EXPIRE_MINUTES)
        self.assertEqual(payload["exp"], int(expected.timestamp()))


class TestClaimUserId(unittest.TestCase):
    def test_valid(self) -> None:
        self.assertEqual(claim_user_id({"userId": 5}), 5)
        self.assertEqual(claim_user_id({"sub": "5"}), 5)

    def test_invalid(self) -> None:
        self.assertIsNone(claim_user_id({}))
        self.assertIsNone(claim_user_id({"userId": "abc"}))
        self.assertIsNone(claim_user_id({"userId": True}))


if __name__ == "__main__":
    unittest.main()
