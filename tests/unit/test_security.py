"""Tests for credentials, password hashing and reset tokens."""

from __future__ import annotations

from datetime import timedelta

import jwt
import pytest

from natours_api.database import as_utc, utcnow
from natours_api.models import User
from natours_api.security import (
    TokenService,
    digest_reset_token,
    hash_password,
    new_reset_token,
    verify_password,
)

SECRET = "test-secret-key-that-is-at-least-32-bytes-long"


class TestTokenService:
    def test_issue_and_decode(self) -> None:
        tokens = TokenService(SECRET, timedelta(days=1))
        claims = tokens.decode(tokens.issue("user-1"))
        assert claims.subject == "user-1"
        assert claims.expires_at - claims.issued_at == 24 * 60 * 60

    def test_expired_token(self) -> None:
        tokens = TokenService(SECRET, timedelta(seconds=-10))
        with pytest.raises(jwt.ExpiredSignatureError):
            tokens.decode(tokens.issue("user-1"))

    def test_wrong_secret(self) -> None:
        issued = TokenService(SECRET, timedelta(days=1)).issue("user-1")
        other = TokenService("another-secret-that-is-also-32-bytes-long", timedelta(1))
        with pytest.raises(jwt.InvalidTokenError):
            other.decode(issued)

    def test_garbage(self) -> None:
        tokens = TokenService(SECRET, timedelta(days=1))
        with pytest.raises(jwt.InvalidTokenError):
            tokens.decode("not-a-token")

    def test_missing_subject_rejected(self) -> None:
        token = jwt.encode({"iat": 1, "exp": 2**40}, SECRET, algorithm="HS256")
        with pytest.raises(jwt.InvalidTokenError):
            TokenService(SECRET, timedelta(days=1)).decode(token)


class TestPasswords:
    def test_hash_and_verify(self) -> None:
        hashed = hash_password("pass1234", rounds=4)
        assert hashed != "pass1234"
        assert verify_password("pass1234", hashed)
        assert not verify_password("wrong-pass", hashed)

    def test_verify_against_malformed_hash(self) -> None:
        assert verify_password("pass1234", "not-a-bcrypt-hash") is False


class TestResetTokens:
    def test_only_digest_stored(self) -> None:
        plain, digest = new_reset_token()
        assert len(plain) == 64
        assert digest == digest_reset_token(plain)
        assert digest != plain

    def test_user_reset_lifecycle(self) -> None:
        user = User(name="Jonas", email="jonas@example.com")
        plain = user.create_password_reset_token(timedelta(minutes=10))
        assert user.password_reset_token == digest_reset_token(plain)
        assert user.password_reset_expires > utcnow()
        user.clear_password_reset()
        assert user.password_reset_token is None
        assert user.password_reset_expires is None


class TestChangedPasswordAfter:
    def test_never_changed(self) -> None:
        user = User(name="Jonas", email="jonas@example.com")
        user.set_password("pass1234", rounds=4, initial=True)
        assert user.changed_password_after(0) is False

    def test_token_older_than_change(self) -> None:
        user = User(name="Jonas", email="jonas@example.com")
        user.set_password("pass1234", rounds=4)
        issued = int((utcnow() - timedelta(hours=1)).timestamp())
        assert user.changed_password_after(issued) is True

    def test_token_issued_after_change(self) -> None:
        user = User(name="Jonas", email="jonas@example.com")
        user.set_password("pass1234", rounds=4)
        assert user.changed_password_after(int(utcnow().timestamp())) is False

    def test_whole_second_boundary(self) -> None:
        user = User(name="Jonas", email="jonas@example.com")
        user.set_password("pass1234", rounds=4)
        changed = int(as_utc(user.password_changed_at).timestamp())
        assert user.changed_password_after(changed - 1) is True
        assert user.changed_password_after(changed) is False
        assert user.changed_password_after(changed + 1) is False

    def test_change_backdated_one_second(self) -> None:
        user = User(name="Jonas", email="jonas@example.com")
        before = utcnow()
        user.set_password("pass1234", rounds=4)
        assert user.password_changed_at is not None
        lag = before - user.password_changed_at
        assert timedelta(seconds=0.5) < lag <= timedelta(seconds=1)
