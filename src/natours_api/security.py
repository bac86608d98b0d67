"""Signed credentials (PyJWT, HS256) and password hashing (bcrypt)."""

from __future__ import annotations

import hashlib
import secrets
from dataclasses import dataclass
from datetime import timedelta

import bcrypt
import jwt

from natours_api.database import utcnow


@dataclass(frozen=True)
class TokenClaims:
    """Verified claims of a credential."""

    subject: str
    issued_at: int
    expires_at: int


class TokenService:
    """Issues and verifies time-limited credentials encoding a subject id."""

    algorithm = "HS256"

    def __init__(self, secret: str, expires_in: timedelta) -> None:
        self._secret = secret
        self._expires_in = expires_in

    @property
    def expires_in(self) -> timedelta:
        return self._expires_in

    def issue(self, subject: str) -> str:
        now = utcnow()
        payload = {
            "sub": subject,
            "iat": int(now.timestamp()),
            "exp": int((now + self._expires_in).timestamp()),
        }
        return jwt.encode(payload, self._secret, algorithm=self.algorithm)

    def decode(self, token: str) -> TokenClaims:
        """Verify signature and expiry.

        Raises ``jwt.ExpiredSignatureError`` for expired credentials and
        ``jwt.InvalidTokenError`` for anything else that fails verification.
        """
        payload = jwt.decode(
            token,
            self._secret,
            algorithms=[self.algorithm],
            options={"require": ["sub", "iat", "exp"]},
        )
        return TokenClaims(
            subject=str(payload["sub"]),
            issued_at=int(payload["iat"]),
            expires_at=int(payload["exp"]),
        )


def hash_password(password: str, rounds: int = 12) -> str:
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt(rounds=rounds)).decode()


def verify_password(password: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode(), hashed.encode())
    except ValueError:
        return False


def new_reset_token() -> tuple[str, str]:
    """Return ``(plain, digest)``; only the sha256 digest is stored."""
    plain = secrets.token_hex(32)
    return plain, digest_reset_token(plain)


def digest_reset_token(plain: str) -> str:
    return hashlib.sha256(plain.encode()).hexdigest()
