"""Global error handler: translation rules and environment-specific rendering.

Every failure in the application ends up here, whether raised by a flow
component, a CRUD handler, FastAPI's request validation or Starlette's
router. The handler

1. translates known lower-layer failures (bad identifiers, unique
   constraint violations, schema validation, bad or expired credentials)
   into operational ``AppError`` instances,
2. renders the result verbosely in development (message, error details and
   traceback) or tersely in production, where non-operational errors are
   logged and replaced by a generic message.
"""

from __future__ import annotations

import logging
import re
import traceback
from collections.abc import Callable, Iterable, Mapping
from typing import Any

import jwt
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.requests import Request

from natours_api.components.authentication import TOKEN_EXPIRED, TOKEN_INVALID
from natours_api.config import Settings
from natours_api.exceptions import (
    AppError,
    AuthenticationFailed,
    CastError,
    NotFound,
    Throttled,
    UnhandledError,
    ValidationFailed,
)

logger = logging.getLogger(__name__)

GENERIC_MESSAGE = "Something went wrong!"

_SQLITE_UNIQUE = re.compile(r"UNIQUE constraint failed: (?P<columns>[\w., ]+)")
_PG_UNIQUE = re.compile(r"Key \((?P<columns>[^)]+)\)=\((?P<value>[^)]*)\)")
_PG_FOREIGN_KEY = re.compile(
    r"Key \((?P<columns>[^)]+)\)=\((?P<value>[^)]*)\) is not present"
)
_SQLITE_FOREIGN_KEY = "FOREIGN KEY constraint failed"


def validation_message(errors: Iterable[Mapping[str, Any]]) -> str:
    parts = []
    for error in errors:
        loc = ".".join(str(p) for p in error.get("loc", ()) if p != "body")
        msg = error.get("msg", "invalid value")
        parts.append(f"{loc}: {msg}" if loc else msg)
    return "Invalid input data. " + ". ".join(parts)


def _missing_reference_message(exc: IntegrityError) -> str | None:
    text = str(exc.orig)
    match = _PG_FOREIGN_KEY.search(text)
    if match:
        return f"Invalid {match.group('columns')}: {match.group('value')}."
    if _SQLITE_FOREIGN_KEY in text:
        return "Invalid reference: the related document does not exist."
    return None


def _duplicate_message(exc: IntegrityError) -> str | None:
    text = str(exc.orig)
    match = _PG_UNIQUE.search(text)
    if match:
        return (
            f"Duplicate field value: {match.group('value')}. "
            "Please use another value!"
        )
    match = _SQLITE_UNIQUE.search(text)
    if match:
        columns = ", ".join(
            c.strip().rsplit(".", 1)[-1] for c in match.group("columns").split(",")
        )
        return f"Duplicate field value: {columns}. Please use another value!"
    return None


def _translate_cast(exc: CastError) -> AppError:
    return ValidationFailed(f"Invalid {exc.path}: {exc.value}.")


def _translate_integrity(exc: IntegrityError) -> AppError | None:
    message = _missing_reference_message(exc) or _duplicate_message(exc)
    return ValidationFailed(message) if message else None


def _translate_validation(exc: ValidationError | RequestValidationError) -> AppError:
    return ValidationFailed(validation_message(exc.errors()))


def _translate_expired(exc: jwt.ExpiredSignatureError) -> AppError:
    return AuthenticationFailed(TOKEN_EXPIRED)


def _translate_invalid_token(exc: jwt.InvalidTokenError) -> AppError:
    return AuthenticationFailed(TOKEN_INVALID)


Rule = tuple[type[BaseException], Callable[[Any], AppError | None]]

# Checked in order; the first matching type wins.
TRANSLATIONS: tuple[Rule, ...] = (
    (CastError, _translate_cast),
    (IntegrityError, _translate_integrity),
    (ValidationError, _translate_validation),
    (RequestValidationError, _translate_validation),
    (jwt.ExpiredSignatureError, _translate_expired),
    (jwt.InvalidTokenError, _translate_invalid_token),
)


def translate(exc: BaseException, request: Request | None = None) -> AppError:
    """Turn any exception into the ``AppError`` that will be rendered."""
    original = exc.cause if isinstance(exc, UnhandledError) else exc
    if original is not None:
        for exc_type, rule in TRANSLATIONS:
            if isinstance(original, exc_type):
                translated = rule(original)
                if translated is not None:
                    return translated
                break

    if isinstance(exc, AppError):
        return exc

    if isinstance(exc, StarletteHTTPException):
        if exc.status_code == 404 and request is not None:
            return NotFound(f"Can't find {request.url.path} on this server!")
        return AppError(str(exc.detail), status_code=exc.status_code)

    status_code = getattr(exc, "status_code", None)
    if isinstance(status_code, int) and 400 <= status_code < 500:
        return AppError(str(exc), status_code=status_code)
    return UnhandledError(str(exc) or type(exc).__name__, cause=exc)


class ErrorHandler:
    """Terminal stage rendering every forwarded error as a JSON response."""

    def __init__(self, settings: Settings) -> None:
        self._verbose = settings.is_development

    @property
    def verbose(self) -> bool:
        return self._verbose

    async def __call__(self, request: Request, exc: Exception) -> JSONResponse:
        return self.render(request, exc)

    def render(self, request: Request, exc: BaseException) -> JSONResponse:
        error = translate(exc, request)
        original = getattr(error, "cause", None) or (
            exc.cause if isinstance(exc, UnhandledError) and exc.cause else exc
        )

        if not error.is_operational:
            logger.error(
                "Unhandled error on %s %s",
                request.method,
                request.url.path,
                exc_info=(type(original), original, original.__traceback__),
            )

        status_code = error.status_code or 500
        status = error.status or "error"

        if self._verbose:
            body: dict[str, Any] = {
                "status": status,
                "error": {
                    "type": type(original).__name__,
                    "detail": str(original),
                    "status_code": status_code,
                    "is_operational": error.is_operational,
                },
                "message": error.message,
                "stack": traceback.format_exception(original),
            }
        elif error.is_operational:
            body = {"status": status, "message": error.message}
        else:
            status_code = 500
            body = {"status": "error", "message": GENERIC_MESSAGE}

        headers = None
        if isinstance(error, Throttled) and error.retry_after is not None:
            headers = {"Retry-After": str(error.retry_after)}
        return JSONResponse(body, status_code=status_code, headers=headers)


def install_error_handlers(app: FastAPI, settings: Settings) -> ErrorHandler:
    """Route every failure, including unknown routes, through one handler."""
    handler = ErrorHandler(settings)
    app.state.error_handler = handler
    app.add_exception_handler(AppError, handler)
    app.add_exception_handler(RequestValidationError, handler)
    app.add_exception_handler(StarletteHTTPException, handler)
    app.add_exception_handler(Exception, handler)
    return handler
