"""FlowHook base and the logging hook installed on every API flow."""

from __future__ import annotations

import logging

from natours_api.component import FlowComponent
from natours_api.context import RequestContext
from natours_api.exceptions import AppError

logger = logging.getLogger(__name__)


class FlowHook:
    """Base abstraction for lifecycle hooks. All methods are no-op by default."""

    async def on_flow_start(self, ctx: RequestContext) -> None:
        pass

    async def on_flow_end(self, ctx: RequestContext) -> None:
        pass

    async def on_component(
        self,
        ctx: RequestContext,
        component: FlowComponent,
        error: AppError | None,
    ) -> None:
        pass


class LogOutcomes(FlowHook):
    """Logs guard short-circuits and, in debug flows, the execution trace."""

    def __init__(self, log: logging.Logger | None = None) -> None:
        self._log = log or logger

    async def on_component(
        self,
        ctx: RequestContext,
        component: FlowComponent,
        error: AppError | None,
    ) -> None:
        if error is None:
            return
        self._log.debug(
            "%s rejected %s %s: %s (%d)",
            type(component).__name__,
            ctx.request.method,
            ctx.request.url.path,
            error.message,
            error.status_code,
        )

    async def on_flow_end(self, ctx: RequestContext) -> None:
        trace = ctx.state.get("trace")
        if trace is not None:
            self._log.debug(
                "flow %s %s: %s",
                ctx.request.method,
                ctx.request.url.path,
                trace.summary(),
            )
