"""Integration tests for flow_dependency inside a FastAPI application."""

from __future__ import annotations

from datetime import timedelta
from typing import Any
from unittest.mock import AsyncMock

from fastapi import Depends, FastAPI
from httpx import ASGITransport, AsyncClient

from natours_api.component import ComponentCategory, FlowComponent
from natours_api.components.authentication import Protect
from natours_api.config import Settings
from natours_api.context import RequestContext
from natours_api.dependency import flow_dependency
from natours_api.errors import install_error_handlers
from natours_api.flow import Flow
from natours_api.security import TokenService

SECRET = "test-secret-key-that-is-at-least-32-bytes-long"
TOKENS = TokenService(SECRET, timedelta(days=1))


class _Identity:
    def __init__(self, sub: str) -> None:
        self.sub = sub

    def changed_password_after(self, issued_at: int) -> bool:
        return False


class _OrderTracker(FlowComponent):
    category = ComponentCategory.CUSTOM

    def __init__(self, name: str) -> None:
        self._name = name

    async def resolve(self, ctx: RequestContext) -> None:
        ctx.state.setdefault("order", []).append(self._name)


class _PermStub(FlowComponent):
    category = ComponentCategory.PERMISSION

    async def resolve(self, ctx: RequestContext) -> None:
        ctx.state.setdefault("order", []).append("perm")


def _make_app(flow: Flow, environment: str = "production") -> FastAPI:
    app = FastAPI()
    install_error_handlers(
        app, Settings(_env_file=None, environment=environment, jwt_secret=SECRET)
    )

    @app.get("/test")
    async def test_endpoint(
        ctx: RequestContext = Depends(flow_dependency(flow)),  # noqa: B008
    ) -> dict[str, Any]:
        user = ctx.user.sub if ctx.user is not None else None
        return {"user": user, "order": ctx.state.get("order", [])}

    return app


async def _get(app: FastAPI, path: str = "/test", **kwargs: Any) -> Any:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        return await client.get(path, **kwargs)


def _protect(lookup: AsyncMock | None = None) -> Protect:
    return Protect(TOKENS, lookup or AsyncMock(return_value=_Identity("user-1")))


class TestFlowDependencyIntegration:
    async def test_valid_request_returns_populated_ctx(self) -> None:
        app = _make_app(Flow(_protect()))
        token = TOKENS.issue("user-1")
        resp = await _get(app, headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 200
        assert resp.json()["user"] == "user-1"

    async def test_invalid_credentials_return_401(self) -> None:
        app = _make_app(Flow(_protect()))
        resp = await _get(app, headers={"Authorization": "Bearer bad"})
        assert resp.status_code == 401
        assert resp.json() == {
            "status": "fail",
            "message": "Invalid token. Please log in again!",
        }

    async def test_missing_credentials_return_401(self) -> None:
        resp = await _get(_make_app(Flow(_protect())))
        assert resp.status_code == 401
        assert resp.json()["message"] == (
            "You are not logged in! Please log in to get access."
        )

    async def test_components_execute_in_category_order(self) -> None:
        class AuthTracker(FlowComponent):
            category = ComponentCategory.AUTHENTICATION

            async def resolve(self, ctx: RequestContext) -> None:
                ctx.user = _Identity("user-1")
                ctx.state.setdefault("order", []).append("auth")

        app = _make_app(Flow(_OrderTracker("custom"), _PermStub(), AuthTracker()))
        resp = await _get(app)
        assert resp.status_code == 200
        assert resp.json()["order"] == ["auth", "perm", "custom"]

    async def test_flow_coexists_with_other_depends(self) -> None:
        app = FastAPI()

        async def other_dep() -> str:
            return "other"

        dependency = flow_dependency(Flow(_protect()))

        @app.get("/test")
        async def endpoint(
            ctx: RequestContext = Depends(dependency),  # noqa: B008
            other: str = Depends(other_dep),
        ) -> dict[str, Any]:
            return {"user": ctx.user.sub, "other": other}

        token = TOKENS.issue("user-1")
        resp = await _get(app, headers={"Authorization": f"Bearer {token}"})
        assert resp.json() == {"user": "user-1", "other": "other"}

    async def test_unexpected_exception_returns_generic_500(self) -> None:
        class Broken(FlowComponent):
            category = ComponentCategory.CUSTOM

            async def resolve(self, ctx: RequestContext) -> None:
                raise RuntimeError("unexpected")

        resp = await _get(_make_app(Flow(Broken())))
        assert resp.status_code == 500
        assert resp.json() == {"status": "error", "message": "Something went wrong!"}

    async def test_unexpected_exception_verbose(self) -> None:
        class Broken(FlowComponent):
            category = ComponentCategory.CUSTOM

            async def resolve(self, ctx: RequestContext) -> None:
                raise RuntimeError("unexpected")

        resp = await _get(_make_app(Flow(Broken()), environment="development"))
        body = resp.json()
        assert resp.status_code == 500
        assert body["error"]["type"] == "RuntimeError"
        assert body["error"]["detail"] == "unexpected"
        assert body["stack"]

    async def test_empty_flow_returns_ctx(self) -> None:
        resp = await _get(_make_app(Flow()))
        assert resp.status_code == 200
        assert resp.json() == {"user": None, "order": []}
