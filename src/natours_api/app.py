"""Application factory."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import APIRouter, FastAPI
from starlette.middleware.cors import CORSMiddleware
from starlette.middleware.gzip import GZipMiddleware

from natours_api import __version__
from natours_api.config import Settings
from natours_api.database import Database
from natours_api.errors import install_error_handlers
from natours_api.identity import UserDirectory
from natours_api.log import configure_logging
from natours_api.mail import LoggingNotifier, ResetNotifier
from natours_api.middleware import (
    BodySizeLimitMiddleware,
    RequestLoggingMiddleware,
    SecurityHeadersMiddleware,
)
from natours_api.openapi import enrich_openapi
from natours_api.routers import bookings, reviews, tours, users
from natours_api.routers.common import ApiFlows
from natours_api.security import TokenService

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"


def create_app(
    settings: Settings | None = None, *, notifier: ResetNotifier | None = None
) -> FastAPI:
    """Build the application from explicit settings.

    Shared services live on ``app.state``: ``settings``, ``db``, ``tokens``,
    ``notifier`` and ``error_handler``.
    """
    settings = settings or Settings()
    configure_logging(settings)

    db = Database(settings.database_url)
    tokens = TokenService(settings.jwt_secret, settings.jwt_expires_in)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        await db.create_all()
        logger.info("natours api started (%s)", settings.environment)
        yield
        await db.dispose()

    app = FastAPI(title="Natours API", version=__version__, lifespan=lifespan)
    app.state.settings = settings
    app.state.db = db
    app.state.tokens = tokens
    app.state.notifier = notifier or LoggingNotifier()

    install_error_handlers(app, settings)

    # added innermost first; the last one added wraps all others
    if settings.is_development:
        app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(BodySizeLimitMiddleware, max_size=settings.body_limit)
    app.add_middleware(GZipMiddleware, minimum_size=1000)
    origins = settings.cors_origins_list
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials="*" not in origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(SecurityHeadersMiddleware)

    flows = ApiFlows(settings, tokens, UserDirectory(db))
    api = APIRouter(prefix=API_PREFIX)
    for module in (tours, users, reviews, bookings):
        api.include_router(module.build_router(flows))
    app.include_router(api)

    enrich_openapi(app)
    return app
