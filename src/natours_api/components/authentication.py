"""Authentication components: Protect, IsLoggedIn, AllowAnonymous."""

from __future__ import annotations

import logging
from typing import Any

import jwt

from natours_api._types import LookupCallback
from natours_api.component import ComponentCategory, FlowComponent
from natours_api.context import RequestContext
from natours_api.exceptions import AuthenticationFailed
from natours_api.security import TokenService

logger = logging.getLogger(__name__)

NOT_LOGGED_IN = "You are not logged in! Please log in to get access."
TOKEN_EXPIRED = "Your token has expired! Please log in again."
TOKEN_INVALID = "Invalid token. Please log in again!"
USER_GONE = "The user belonging to this token no longer exists."
PASSWORD_CHANGED = "User recently changed password! Please log in again."


def bearer_token(ctx: RequestContext, *, scheme: str = "Bearer") -> str | None:
    value = ctx.request.headers.get("Authorization")
    if not value:
        return None
    parts = value.split(" ", 1)
    if len(parts) != 2 or parts[0] != scheme or not parts[1].strip():
        return None
    return parts[1].strip()


async def verify_identity(
    token: str, tokens: TokenService, lookup: LookupCallback
) -> Any:
    """Verify ``token`` and return the live user it refers to.

    Raises ``AuthenticationFailed`` with a message telling expired, invalid,
    deleted-account and stale-after-password-change credentials apart.
    """
    try:
        claims = tokens.decode(token)
    except jwt.ExpiredSignatureError:
        raise AuthenticationFailed(TOKEN_EXPIRED) from None
    except jwt.InvalidTokenError:
        raise AuthenticationFailed(TOKEN_INVALID) from None

    user = await lookup(claims.subject)
    if user is None:
        raise AuthenticationFailed(USER_GONE)
    if user.changed_password_after(claims.issued_at):
        raise AuthenticationFailed(PASSWORD_CHANGED)
    return user


class Protect(FlowComponent):
    """Requires a valid credential from the Bearer header or the ``jwt`` cookie."""

    category = ComponentCategory.AUTHENTICATION

    def __init__(
        self,
        tokens: TokenService,
        lookup: LookupCallback,
        *,
        cookie_name: str = "jwt",
    ) -> None:
        self._tokens = tokens
        self._lookup = lookup
        self._cookie_name = cookie_name

    async def resolve(self, ctx: RequestContext) -> None:
        token = bearer_token(ctx) or ctx.request.cookies.get(self._cookie_name)
        if not token:
            raise AuthenticationFailed(NOT_LOGGED_IN)
        ctx.user = await verify_identity(token, self._tokens, self._lookup)

    def openapi_spec(self) -> dict[str, Any] | None:
        return {
            "security_schemes": {
                "Bearer": {"type": "http", "scheme": "bearer", "bearerFormat": "JWT"},
                "CookieAuth": {
                    "type": "apiKey",
                    "in": "cookie",
                    "name": self._cookie_name,
                },
            },
            "security": [{"Bearer": []}, {"CookieAuth": []}],
            "responses": {"401": {"description": "Authentication failed"}},
        }


class IsLoggedIn(FlowComponent):
    """Soft variant of ``Protect`` for responses that differ per visitor.

    Reads only the cookie. Any failure leaves ``ctx.user`` as ``None`` and
    lets the request continue.
    """

    category = ComponentCategory.AUTHENTICATION

    def __init__(
        self,
        tokens: TokenService,
        lookup: LookupCallback,
        *,
        cookie_name: str = "jwt",
    ) -> None:
        self._tokens = tokens
        self._lookup = lookup
        self._cookie_name = cookie_name

    async def resolve(self, ctx: RequestContext) -> None:
        token = ctx.request.cookies.get(self._cookie_name)
        if not token:
            return
        try:
            ctx.user = await verify_identity(token, self._tokens, self._lookup)
        except Exception as exc:
            logger.debug("anonymous visitor: %s", exc)
            ctx.user = None


class AllowAnonymous(FlowComponent):
    """Override component that replaces authentication requirements.

    Used with OverrideFlow to allow unauthenticated access.
    """

    category = ComponentCategory.AUTHENTICATION

    async def resolve(self, ctx: RequestContext) -> None:
        pass
