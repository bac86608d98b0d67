"""Pagination components: PagePagination."""

from __future__ import annotations

from dataclasses import replace
from typing import Any

from natours_api.component import ComponentCategory, FlowComponent
from natours_api.components.filters import query_items
from natours_api.context import RequestContext
from natours_api.query import DEFAULT_LIMIT, MAX_LIMIT, QuerySpec, parse_page


class PagePagination(FlowComponent):
    """Parses page/limit from query params into the query spec.

    Pages past the end of the data are not an error; the list is empty.
    """

    category = ComponentCategory.PAGINATION

    def __init__(
        self,
        *,
        max_limit: int = MAX_LIMIT,
        default_limit: int = DEFAULT_LIMIT,
        state_key: str = "query",
    ) -> None:
        self._max_limit = max_limit
        self._default_limit = default_limit
        self._state_key = state_key

    async def resolve(self, ctx: RequestContext) -> None:
        last = dict(query_items(ctx))
        page, limit = parse_page(
            last.get("page"),
            last.get("limit"),
            default_limit=self._default_limit,
            max_limit=self._max_limit,
        )
        spec = ctx.state.get(self._state_key) or QuerySpec()
        ctx.state[self._state_key] = replace(spec, page=page, limit=limit)

    def openapi_spec(self) -> dict[str, Any] | None:
        return {
            "parameters": [
                {
                    "name": "page",
                    "in": "query",
                    "required": False,
                    "schema": {"type": "integer", "default": 1, "minimum": 1},
                    "description": "Page number, starting at 1",
                },
                {
                    "name": "limit",
                    "in": "query",
                    "required": False,
                    "schema": {
                        "type": "integer",
                        "default": self._default_limit,
                        "maximum": self._max_limit,
                    },
                    "description": (
                        f"Items per page"
                        f" (default: {self._default_limit},"
                        f" max: {self._max_limit})"
                    ),
                },
            ],
        }
