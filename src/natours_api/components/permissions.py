"""Permission components: RestrictTo."""

from __future__ import annotations

from typing import Any

from natours_api.component import ComponentCategory, FlowComponent
from natours_api.components.authentication import NOT_LOGGED_IN
from natours_api.context import RequestContext
from natours_api.exceptions import AuthenticationFailed, PermissionDenied


def _role_of(user: object) -> str | None:
    if isinstance(user, dict):
        return user.get("role")
    return getattr(user, "role", None)


class RestrictTo(FlowComponent):
    """Lets the request through only when the identity's role is permitted.

    Runs in the PERMISSION category, so always after authentication.
    """

    category = ComponentCategory.PERMISSION

    def __init__(self, *roles: str) -> None:
        if not roles:
            raise ValueError("RestrictTo needs at least one role")
        self._roles = frozenset(roles)

    @property
    def roles(self) -> frozenset[str]:
        return self._roles

    async def resolve(self, ctx: RequestContext) -> None:
        if ctx.user is None:
            raise AuthenticationFailed(NOT_LOGGED_IN)
        if _role_of(ctx.user) not in self._roles:
            raise PermissionDenied()

    def openapi_spec(self) -> dict[str, Any] | None:
        return {
            "responses": {"403": {"description": "Permission denied"}},
            "x-roles": sorted(self._roles),
        }
