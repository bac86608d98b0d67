"""Flows shared by every API router."""

from __future__ import annotations

from collections.abc import Mapping

from natours_api.component import FlowComponent
from natours_api.components import (
    IsLoggedIn,
    PagePagination,
    Protect,
    QueryFeatures,
    QueryPreset,
    RateLimit,
    RestrictTo,
)
from natours_api.config import Settings
from natours_api.flow import Flow, merge_flows
from natours_api.hooks import LogOutcomes
from natours_api.identity import UserDirectory
from natours_api.security import TokenService


def query_components(
    whitelist: frozenset[str] = frozenset(),
    *,
    preset: Mapping[str, str] | None = None,
) -> tuple[FlowComponent, ...]:
    """Filter/sort/projection and pagination, optionally behind a preset."""
    components: list[FlowComponent] = []
    if preset:
        components.append(QueryPreset(**preset))
    components.append(QueryFeatures(whitelist=whitelist))
    components.append(PagePagination())
    return tuple(components)


class ApiFlows:
    """Builds route flows on top of the ``/api`` base flow.

    The base flow holds one ``RateLimit`` instance, so every API route draws
    from the same per-client budget.
    """

    def __init__(
        self, settings: Settings, tokens: TokenService, directory: UserDirectory
    ) -> None:
        self.settings = settings
        self.tokens = tokens
        self.directory = directory
        self.base = Flow(
            RateLimit(settings.rate_limit_max, settings.rate_limit_window),
            hooks=(LogOutcomes(),),
            debug=settings.is_development,
        )
        self._protect = Protect(
            tokens, directory.get_active, cookie_name=settings.jwt_cookie_name
        )
        self._soft = IsLoggedIn(
            tokens, directory.get_active, cookie_name=settings.jwt_cookie_name
        )

    def public(self, *components: FlowComponent) -> Flow:
        return merge_flows(self.base, Flow(*components))

    def soft(self, *components: FlowComponent) -> Flow:
        return merge_flows(self.base, Flow(self._soft, *components))

    def protected(
        self, *components: FlowComponent, roles: tuple[str, ...] = ()
    ) -> Flow:
        guards: list[FlowComponent] = [self._protect]
        if roles:
            guards.append(RestrictTo(*roles))
        return merge_flows(self.base, Flow(*guards, *components))
