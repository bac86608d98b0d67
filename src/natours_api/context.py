"""RequestContext: per-request state container."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from starlette.datastructures import QueryParams
from starlette.requests import Request


@dataclass
class RequestContext:
    """Lightweight per-request state container mutated by flow components.

    ``user`` stays ``None`` until an authentication component attaches the
    resolved identity. ``state`` holds the query spec, debug trace and any
    other per-request data.
    """

    request: Request
    user: Any | None = None
    state: dict[str, Any] = field(default_factory=dict)

    @property
    def query_params(self) -> QueryParams:
        return self.request.query_params

    @property
    def path_params(self) -> dict[str, Any]:
        return self.request.path_params
