"""Throttling components: RateLimit, ThrottleBackend, InMemoryThrottleBackend."""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import Any, Protocol, runtime_checkable

from natours_api.component import ComponentCategory, FlowComponent
from natours_api.context import RequestContext
from natours_api.exceptions import Throttled


@runtime_checkable
class ThrottleBackend(Protocol):
    """Pluggable storage interface for rate limit counters."""

    async def increment(self, key: str, window_seconds: int) -> tuple[int, int]: ...
    async def reset(self, key: str) -> None: ...


class InMemoryThrottleBackend:
    """Fixed-window counters kept in process memory. Single worker only."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._counters: dict[str, tuple[int, float]] = {}
        self._clock = clock

    async def increment(self, key: str, window_seconds: int) -> tuple[int, int]:
        """Count one hit; return ``(hits_in_window, seconds_until_reset)``."""
        now = self._clock()
        count, window_start = self._counters.get(key, (0, now))
        elapsed = now - window_start
        if elapsed >= window_seconds:
            count, window_start, elapsed = 0, now, 0.0
        self._counters[key] = (count + 1, window_start)
        return count + 1, max(int(window_seconds - elapsed), 1)

    async def reset(self, key: str) -> None:
        self._counters.pop(key, None)


def client_ip(ctx: RequestContext) -> str:
    """Client address, honouring the first X-Forwarded-For hop behind a proxy."""
    forwarded = ctx.request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    client = ctx.request.client
    if client is not None:
        return client.host
    return "unknown"


def _default_key_func(ctx: RequestContext) -> str:
    return f"ip:{client_ip(ctx)}"


class RateLimit(FlowComponent):
    """Rejects a client after ``rate`` requests within ``window_seconds``.

    One instance shared by every flow that includes it gives a single budget
    across those routes.
    """

    category = ComponentCategory.THROTTLING

    def __init__(
        self,
        rate: int,
        window_seconds: int = 3600,
        *,
        key_func: Callable[[RequestContext], str] | None = None,
        backend: ThrottleBackend | None = None,
    ) -> None:
        self._rate = rate
        self._window_seconds = window_seconds
        self._key_func = key_func or _default_key_func
        self._backend: ThrottleBackend = backend or InMemoryThrottleBackend()

    async def resolve(self, ctx: RequestContext) -> None:
        key = self._key_func(ctx)
        count, ttl = await self._backend.increment(key, self._window_seconds)
        ctx.state["rate_limit"] = {
            "limit": self._rate,
            "remaining": max(self._rate - count, 0),
            "reset": ttl,
        }
        if count > self._rate:
            raise Throttled(retry_after=ttl)

    def openapi_spec(self) -> dict[str, Any] | None:
        return {
            "responses": {
                "429": {
                    "description": "Rate limit exceeded",
                    "headers": {
                        "Retry-After": {
                            "description": "Seconds until rate limit resets",
                            "schema": {"type": "integer"},
                        }
                    },
                }
            },
        }
