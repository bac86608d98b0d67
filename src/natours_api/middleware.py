"""HTTP middleware: security headers, body size limit and access logging."""

from __future__ import annotations

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from natours_api.exceptions import AppError, PayloadTooLarge, ValidationFailed

access_logger = logging.getLogger("natours_api.access")


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Sets the usual hardening headers on every response."""

    DEFAULT_HEADERS = {
        "X-Content-Type-Options": "nosniff",
        "X-Frame-Options": "SAMEORIGIN",
        "X-DNS-Prefetch-Control": "off",
        "X-Download-Options": "noopen",
        "X-Permitted-Cross-Domain-Policies": "none",
        "Referrer-Policy": "no-referrer",
        "Cross-Origin-Opener-Policy": "same-origin",
        "Cross-Origin-Resource-Policy": "same-origin",
        "Content-Security-Policy": "default-src 'self'; frame-ancestors 'self'",
        "Strict-Transport-Security": "max-age=15552000; includeSubDomains",
    }

    def __init__(self, app: ASGIApp, headers: dict[str, str] | None = None) -> None:
        super().__init__(app)
        self.headers = {**self.DEFAULT_HEADERS, **(headers or {})}

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        response = await call_next(request)
        for name, value in self.headers.items():
            if name == "Strict-Transport-Security" and request.url.scheme != "https":
                continue
            response.headers.setdefault(name, value)
        if "server" in response.headers:
            del response.headers["server"]
        return response


class BodySizeLimitMiddleware:
    """Rejects requests whose body exceeds ``max_size`` bytes.

    A declared ``Content-Length`` is checked up front. A body sent without
    one is read ahead and counted before the application sees it, then
    replayed. The rejection is rendered by the application's error handler,
    so it has the same envelope as every other error.
    """

    def __init__(self, app: ASGIApp, max_size: int = 10 * 1024) -> None:
        self.app = app
        self.max_size = max_size

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        request = Request(scope)
        content_length = request.headers.get("content-length")
        if content_length is not None:
            error = self._check_declared(content_length)
        else:
            buffered, error = await self._read_ahead(receive)
            receive = _replay(buffered, receive)

        if error is not None:
            response = request.app.state.error_handler.render(request, error)
            await response(scope, receive, send)
            return
        await self.app(scope, receive, send)

    def _too_large(self) -> PayloadTooLarge:
        return PayloadTooLarge(
            f"Request body too large. Maximum size is {self.max_size} bytes"
        )

    def _check_declared(self, content_length: str) -> AppError | None:
        try:
            size = int(content_length)
        except ValueError:
            return ValidationFailed("Invalid Content-Length header")
        return self._too_large() if size > self.max_size else None

    async def _read_ahead(
        self, receive: Receive
    ) -> tuple[list[Message], AppError | None]:
        buffered: list[Message] = []
        received = 0
        while True:
            message = await receive()
            buffered.append(message)
            if message["type"] != "http.request":
                return buffered, None
            received += len(message.get("body", b""))
            if received > self.max_size:
                return buffered, self._too_large()
            if not message.get("more_body", False):
                return buffered, None


def _replay(buffered: list[Message], receive: Receive) -> Receive:
    """A ``receive`` that yields ``buffered`` first, then defers to ``receive``."""
    pending = list(buffered)

    async def replay() -> Message:
        if pending:
            return pending.pop(0)
        return await receive()

    return replay


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """One access log line per request."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        start = time.perf_counter()
        response = await call_next(request)
        access_logger.info(
            "%s %s %d %.1fms",
            request.method,
            request.url.path,
            response.status_code,
            (time.perf_counter() - start) * 1000,
        )
        return response
