"""Filter components: QueryPreset, QueryFeatures."""

from __future__ import annotations

from dataclasses import replace
from typing import Any

from natours_api.component import ComponentCategory, FlowComponent
from natours_api.context import RequestContext
from natours_api.query import (
    QuerySpec,
    apply_overrides,
    parse_fields,
    parse_filters,
    parse_sort,
)


def query_items(ctx: RequestContext) -> list[tuple[str, str]]:
    """Raw query pairs with any preset from ``QueryPreset`` applied."""
    items = ctx.query_params.multi_items()
    overrides = ctx.state.get("query_preset")
    if overrides:
        return apply_overrides(items, overrides)
    return list(items)


class QueryPreset(FlowComponent):
    """Forces query parameters for alias routes (e.g. top-5-cheap).

    Register it before ``QueryFeatures``; both share the FILTERS category
    and keep registration order.
    """

    category = ComponentCategory.FILTERS

    def __init__(self, **params: str) -> None:
        self._params = params

    async def resolve(self, ctx: RequestContext) -> None:
        ctx.state["query_preset"] = dict(self._params)


class QueryFeatures(FlowComponent):
    """Builds filter, sort and field selection into ``ctx.state[state_key]``."""

    category = ComponentCategory.FILTERS

    def __init__(
        self,
        *,
        whitelist: frozenset[str] | set[str] = frozenset(),
        state_key: str = "query",
    ) -> None:
        self._whitelist = frozenset(whitelist)
        self._state_key = state_key

    async def resolve(self, ctx: RequestContext) -> None:
        items = query_items(ctx)
        last = dict(items)
        fields, excluded = parse_fields(last.get("fields"))
        spec = ctx.state.get(self._state_key) or QuerySpec()
        ctx.state[self._state_key] = replace(
            spec,
            filters=parse_filters(items, whitelist=self._whitelist),
            sort=parse_sort(last.get("sort")),
            fields=fields,
            excluded=excluded,
        )

    def openapi_spec(self) -> dict[str, Any] | None:
        return {
            "parameters": [
                {
                    "name": "sort",
                    "in": "query",
                    "required": False,
                    "schema": {"type": "string"},
                    "description": "Comma separated fields, '-' for descending",
                },
                {
                    "name": "fields",
                    "in": "query",
                    "required": False,
                    "schema": {"type": "string"},
                    "description": "Comma separated fields to return",
                },
            ],
            "responses": {"400": {"description": "Invalid query parameter"}},
        }
