"""User routes: authentication, the current user's account and admin CRUD."""

import logging
from typing import Any

from fastapi import APIRouter, Body, Depends, Path
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.requests import Request
from starlette.responses import Response

from natours_api.components.authentication import USER_GONE
from natours_api.config import Settings
from natours_api.context import RequestContext
from natours_api.database import as_utc, get_session, utcnow
from natours_api.dependency import flow_dependency
from natours_api.exceptions import (
    AppError,
    AuthenticationFailed,
    NotFound,
    ValidationFailed,
)
from natours_api.factory import (
    Handler,
    Resource,
    delete_one,
    get_all,
    get_one,
    update_one,
)
from natours_api.flow import Flow
from natours_api.models import User
from natours_api.routers.common import ApiFlows, query_components
from natours_api.sanitize import sanitize_payload
from natours_api.schemas import (
    ForgotPassword,
    ResetPassword,
    UpdateMe,
    UpdatePassword,
    UserAdminUpdate,
    UserLogin,
    UserProfile,
    UserSignup,
)
from natours_api.security import TokenService, digest_reset_token
from natours_api.wrappers import catch_async

logger = logging.getLogger(__name__)

LOGGED_OUT = "loggedout"
SECONDS_PER_DAY = 24 * 60 * 60


def set_token_cookie(response: Response, token: str, settings: Settings) -> None:
    response.set_cookie(
        settings.jwt_cookie_name,
        token,
        max_age=settings.jwt_cookie_expires_in * SECONDS_PER_DAY,
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
    )


def send_token(
    user: User, status_code: int, settings: Settings, tokens: TokenService
) -> JSONResponse:
    """Issue a credential for ``user``; body and ``jwt`` cookie both carry it."""
    token = tokens.issue(str(user.id))
    body = {"status": "success", "token": token, "data": {"user": user.to_dict()}}
    response = JSONResponse(jsonable_encoder(body), status_code=status_code)
    set_token_cookie(response, token, settings)
    return response


async def _active_user_by_email(session: AsyncSession, email: str) -> User | None:
    result = await session.scalars(
        select(User).where(User.email == email.lower(), User.active.is_(True))
    )
    return result.one_or_none()


async def _own_record(session: AsyncSession, ctx: RequestContext) -> User:
    """The caller's row, loaded in this request's session."""
    user = await session.get(User, ctx.user.id)
    if user is None or not user.active:
        raise AuthenticationFailed(USER_GONE)
    return user


class AuthHandlers:
    """Signup, login, logout and password flows."""

    def __init__(self, flows: ApiFlows) -> None:
        self.settings = flows.settings
        self.tokens = flows.tokens

    def signup(self, flow: Flow) -> Handler:
        dependency = flow_dependency(flow)

        @catch_async
        async def handler(
            body: dict[str, Any] = Body(...),
            ctx: RequestContext = Depends(dependency),
            session: AsyncSession = Depends(get_session),
        ) -> JSONResponse:
            payload = UserSignup.model_validate(sanitize_payload(body))
            user = User(name=payload.name, email=payload.email)
            user.set_password(
                payload.password, rounds=self.settings.bcrypt_rounds, initial=True
            )
            session.add(user)
            await session.flush()
            logger.info("user %s signed up", user.id)
            return send_token(user, 201, self.settings, self.tokens)

        return handler

    def login(self, flow: Flow) -> Handler:
        dependency = flow_dependency(flow)

        @catch_async
        async def handler(
            body: dict[str, Any] = Body(...),
            ctx: RequestContext = Depends(dependency),
            session: AsyncSession = Depends(get_session),
        ) -> JSONResponse:
            payload = UserLogin.model_validate(sanitize_payload(body))
            if not payload.email or not payload.password:
                raise ValidationFailed("Please provide email and password!")
            user = await _active_user_by_email(session, payload.email)
            if user is None or not user.check_password(payload.password):
                raise AuthenticationFailed("Incorrect email or password")
            return send_token(user, 200, self.settings, self.tokens)

        return handler

    def logout(self, flow: Flow) -> Handler:
        dependency = flow_dependency(flow)

        async def handler(ctx: RequestContext = Depends(dependency)) -> JSONResponse:
            response = JSONResponse({"status": "success"})
            response.set_cookie(
                self.settings.jwt_cookie_name, LOGGED_OUT, max_age=10, httponly=True
            )
            return response

        return handler

    def forgot_password(self, flow: Flow) -> Handler:
        dependency = flow_dependency(flow)

        @catch_async
        async def handler(
            request: Request,
            body: dict[str, Any] = Body(...),
            ctx: RequestContext = Depends(dependency),
            session: AsyncSession = Depends(get_session),
        ) -> dict[str, Any]:
            payload = ForgotPassword.model_validate(sanitize_payload(body))
            user = await _active_user_by_email(session, payload.email)
            if user is None:
                raise NotFound("There is no user with that email address.")

            plain = user.create_password_reset_token(
                self.settings.password_reset_expires
            )
            await session.flush()
            reset_url = str(request.url_for("reset_password", token=plain))
            try:
                await request.app.state.notifier.send_reset(user.email, reset_url)
            except Exception as exc:
                user.clear_password_reset()
                await session.flush()
                logger.error("reset notification for %s failed: %s", user.id, exc)
                raise AppError(
                    "There was an error sending the email. Try again later!",
                    status_code=500,
                ) from exc
            return {"status": "success", "message": "Token sent to email!"}

        return handler

    def reset_password(self, flow: Flow) -> Handler:
        dependency = flow_dependency(flow)

        @catch_async
        async def handler(
            token: str = Path(...),
            body: dict[str, Any] = Body(...),
            ctx: RequestContext = Depends(dependency),
            session: AsyncSession = Depends(get_session),
        ) -> JSONResponse:
            result = await session.scalars(
                select(User).where(
                    User.password_reset_token == digest_reset_token(token),
                    User.active.is_(True),
                )
            )
            user = result.one_or_none()
            if (
                user is None
                or user.password_reset_expires is None
                or as_utc(user.password_reset_expires) <= utcnow()
            ):
                raise ValidationFailed("Token is invalid or has expired")

            payload = ResetPassword.model_validate(sanitize_payload(body))
            user.set_password(payload.password, rounds=self.settings.bcrypt_rounds)
            user.clear_password_reset()
            await session.flush()
            return send_token(user, 200, self.settings, self.tokens)

        return handler

    def update_password(self, flow: Flow) -> Handler:
        dependency = flow_dependency(flow)

        @catch_async
        async def handler(
            body: dict[str, Any] = Body(...),
            ctx: RequestContext = Depends(dependency),
            session: AsyncSession = Depends(get_session),
        ) -> JSONResponse:
            user = await _own_record(session, ctx)
            payload = UpdatePassword.model_validate(sanitize_payload(body))
            if not user.check_password(payload.password_current):
                raise AuthenticationFailed("Your current password is wrong.")
            user.set_password(payload.password, rounds=self.settings.bcrypt_rounds)
            await session.flush()
            return send_token(user, 200, self.settings, self.tokens)

        return handler


def get_me(flow: Flow) -> Handler:
    dependency = flow_dependency(flow)

    @catch_async
    async def handler(
        ctx: RequestContext = Depends(dependency),
        session: AsyncSession = Depends(get_session),
    ) -> dict[str, Any]:
        user = await _own_record(session, ctx)
        return {"status": "success", "data": {"data": user.to_dict()}}

    return handler


def update_me(flow: Flow) -> Handler:
    dependency = flow_dependency(flow)

    @catch_async
    async def handler(
        body: dict[str, Any] = Body(...),
        ctx: RequestContext = Depends(dependency),
        session: AsyncSession = Depends(get_session),
    ) -> dict[str, Any]:
        if "password" in body or "password_confirm" in body:
            raise ValidationFailed(
                "This route is not for password updates. "
                "Please use /update-password."
            )
        changes = UpdateMe.model_validate(sanitize_payload(body)).model_dump(
            exclude_unset=True
        )
        user = await _own_record(session, ctx)
        for name, value in changes.items():
            setattr(user, name, value)
        await session.flush()
        return {"status": "success", "data": {"user": user.to_dict()}}

    return handler


def delete_me(flow: Flow) -> Handler:
    """Deactivates the account; inactive users disappear from every query."""
    dependency = flow_dependency(flow)

    @catch_async
    async def handler(
        ctx: RequestContext = Depends(dependency),
        session: AsyncSession = Depends(get_session),
    ) -> Response:
        user = await _own_record(session, ctx)
        user.active = False
        await session.flush()
        return Response(status_code=204)

    return handler


def current_session(flow: Flow) -> Handler:
    """Who is visiting, if anyone. Never fails on a bad or missing cookie."""
    dependency = flow_dependency(flow)

    async def handler(ctx: RequestContext = Depends(dependency)) -> dict[str, Any]:
        user = ctx.user.to_dict() if ctx.user is not None else None
        return {"status": "success", "data": {"user": user}}

    return handler


def not_defined(flow: Flow) -> Handler:
    dependency = flow_dependency(flow)

    async def handler(ctx: RequestContext = Depends(dependency)) -> None:
        raise AppError(
            "This route is not defined! Please use /signup instead.", status_code=500
        )

    return handler


def build_router(flows: ApiFlows) -> APIRouter:
    router = APIRouter(prefix="/users", tags=["users"])
    auth = AuthHandlers(flows)
    public = flows.public()
    me = flows.protected()
    admin = flows.protected(roles=("admin",))
    users = Resource(
        User,
        UserProfile,
        UserAdminUpdate,
        flow=admin,
        scope=(User.active.is_(True),),
    )

    router.add_api_route(
        "/signup", auth.signup(public), methods=["POST"], status_code=201
    )
    router.add_api_route("/login", auth.login(public), methods=["POST"])
    router.add_api_route("/logout", auth.logout(public), methods=["GET"])
    router.add_api_route(
        "/forgot-password", auth.forgot_password(public), methods=["POST"]
    )
    router.add_api_route(
        "/reset-password/{token}",
        auth.reset_password(public),
        methods=["PATCH"],
        name="reset_password",
    )
    router.add_api_route("/session", current_session(flows.soft()), methods=["GET"])

    router.add_api_route(
        "/update-password", auth.update_password(me), methods=["PATCH"]
    )
    router.add_api_route("/me", get_me(me), methods=["GET"])
    router.add_api_route("/update-me", update_me(me), methods=["PATCH"])
    router.add_api_route(
        "/delete-me", delete_me(me), methods=["DELETE"], status_code=204
    )

    router.add_api_route(
        "",
        get_all(users, flows.protected(*query_components(), roles=("admin",))),
        methods=["GET"],
    )
    router.add_api_route("", not_defined(admin), methods=["POST"])
    router.add_api_route("/{id}", get_one(users), methods=["GET"])
    router.add_api_route("/{id}", update_one(users), methods=["PATCH"])
    router.add_api_route(
        "/{id}", delete_one(users), methods=["DELETE"], status_code=204
    )
    return router
