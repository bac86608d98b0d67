"""flow_dependency(): factory producing FastAPI-compatible dependency callables."""

from __future__ import annotations

from collections.abc import Awaitable, Callable

from starlette.requests import Request

from natours_api.context import RequestContext
from natours_api.flow import Flow
from natours_api.openapi import collect_openapi_metadata


def flow_dependency(flow: Flow) -> Callable[..., Awaitable[RequestContext]]:
    """Return a FastAPI dependency that runs ``flow`` and yields its context.

    Errors raised by the flow are not converted here: they reach the global
    error handler as ``AppError`` instances.
    """
    resolved = flow.resolve()

    async def dependency(request: Request) -> RequestContext:
        return await resolved.run(RequestContext(request=request))

    # Attach metadata for OpenAPI enrichment
    metadata = collect_openapi_metadata(resolved)
    dependency._flow_openapi_metadata = metadata  # type: ignore[attr-defined]
    dependency._flow_resolved = resolved  # type: ignore[attr-defined]

    return dependency
