"""Shared pytest fixtures for natours-api tests."""

from __future__ import annotations

import itertools
from collections.abc import AsyncIterator
from typing import Any

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from starlette.requests import Request

from natours_api.app import create_app
from natours_api.config import Settings
from natours_api.models import Tour, User

TEST_SECRET = "test-secret-key-that-is-at-least-32-bytes-long"
PASSWORD = "pass1234"


class RecordingNotifier:
    """Reset notifier that keeps sent links, or fails when asked to."""

    def __init__(self) -> None:
        self.sent: list[tuple[str, str]] = []
        self.fail = False

    async def send_reset(self, email: str, reset_url: str) -> None:
        if self.fail:
            raise ConnectionError("smtp unavailable")
        self.sent.append((email, reset_url))


def make_settings(**overrides: Any) -> Settings:
    values: dict[str, Any] = {
        "environment": "development",
        "database_url": "sqlite+aiosqlite://",
        "jwt_secret": TEST_SECRET,
        "bcrypt_rounds": 4,
        "rate_limit_max": 1000,
        "log_level": "WARNING",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def make_request() -> Any:
    """Factory for creating mock Starlette Request objects."""

    def _make(
        method: str = "GET",
        path: str = "/",
        headers: dict[str, str] | None = None,
        query_string: str = "",
        path_params: dict[str, Any] | None = None,
        client: tuple[str, int] | None = ("127.0.0.1", 5000),
    ) -> Request:
        scope: dict[str, Any] = {
            "type": "http",
            "method": method,
            "path": path,
            "query_string": query_string.encode(),
            "headers": [
                (k.lower().encode(), v.encode()) for k, v in (headers or {}).items()
            ],
            "root_path": "",
            "path_params": path_params or {},
            "client": client,
            "scheme": "http",
            "server": ("test", 80),
        }
        return Request(scope)

    return _make


@pytest.fixture
def settings_factory() -> Any:
    return make_settings


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


async def _started(app: FastAPI) -> FastAPI:
    # ASGITransport does not run the lifespan
    await app.state.db.create_all()
    return app


@pytest.fixture
async def app(
    settings: Settings, notifier: RecordingNotifier
) -> AsyncIterator[FastAPI]:
    application = await _started(create_app(settings, notifier=notifier))
    yield application
    await application.state.db.dispose()


@pytest.fixture
async def client(app: FastAPI) -> AsyncIterator[AsyncClient]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
async def build_client() -> AsyncIterator[Any]:
    """Factory for an (app, client) pair built from custom settings."""
    opened: list[tuple[FastAPI, AsyncClient]] = []

    async def _build(**overrides: Any) -> tuple[FastAPI, AsyncClient]:
        application = await _started(
            create_app(make_settings(**overrides), notifier=RecordingNotifier())
        )
        ac = AsyncClient(
            transport=ASGITransport(app=application), base_url="http://test"
        )
        opened.append((application, ac))
        return application, ac

    yield _build
    for application, ac in opened:
        await ac.aclose()
        await application.state.db.dispose()


@pytest.fixture
def create_user(app: FastAPI) -> Any:
    counter = itertools.count(1)

    async def _create(
        *,
        name: str = "Test User",
        email: str | None = None,
        password: str = PASSWORD,
        role: str = "user",
        active: bool = True,
    ) -> User:
        user = User(
            name=name,
            email=email or f"user{next(counter)}@example.com",
            role=role,
            active=active,
        )
        user.set_password(password, rounds=4, initial=True)
        async with app.state.db.session() as session:
            session.add(user)
            await session.commit()
        return user

    return _create


@pytest.fixture
def create_tour(app: FastAPI) -> Any:
    counter = itertools.count(1)

    async def _create(**overrides: Any) -> Tour:
        n = next(counter)
        values: dict[str, Any] = {
            "name": f"The Test Tour Number {n}",
            "duration": 5,
            "max_group_size": 10,
            "difficulty": "easy",
            "price": 100.0 * n,
            "summary": "A tour used in tests",
            "image_cover": "cover.jpg",
        }
        values.update(overrides)
        tour = Tour(**values)
        async with app.state.db.session() as session:
            session.add(tour)
            await session.commit()
        return tour

    return _create


@pytest.fixture
def auth_headers(app: FastAPI) -> Any:
    def _headers(user: User) -> dict[str, str]:
        token = app.state.tokens.issue(str(user.id))
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture
def tour_payload() -> Any:
    def _payload(**overrides: Any) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "name": "The Forest Hiker",
            "duration": 5,
            "max_group_size": 25,
            "difficulty": "easy",
            "price": 397,
            "summary": "Breathtaking hike through the Canadian Banff National Park",
            "image_cover": "tour-1-cover.jpg",
        }
        payload.update(overrides)
        return payload

    return _payload
