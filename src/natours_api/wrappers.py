"""catch_async: forward endpoint failures to the global error handler."""

from __future__ import annotations

import functools
from collections.abc import Awaitable, Callable
from typing import ParamSpec, TypeVar

from natours_api.exceptions import AppError, UnhandledError

P = ParamSpec("P")
R = TypeVar("R")


def catch_async(fn: Callable[P, Awaitable[R]]) -> Callable[P, Awaitable[R]]:
    """Wrap an async endpoint so every failure surfaces as an ``AppError``.

    ``AppError`` passes through untouched; any other exception becomes a
    non-operational ``UnhandledError`` whose ``cause`` the error handler
    inspects for known signatures (constraint violations, validation, ...).
    The wrapper keeps the endpoint's signature for FastAPI's dependency
    resolution.
    """

    @functools.wraps(fn)
    async def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
        try:
            return await fn(*args, **kwargs)
        except AppError:
            raise
        except Exception as exc:
            raise UnhandledError(str(exc) or type(exc).__name__, cause=exc) from exc

    return wrapper
