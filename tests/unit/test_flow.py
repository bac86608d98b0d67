"""Tests for Flow and ResolvedFlow."""

from __future__ import annotations

from typing import Any

import pytest

from natours_api.component import ComponentCategory, FlowComponent
from natours_api.context import RequestContext
from natours_api.exceptions import AppError, AuthenticationFailed, UnhandledError
from natours_api.flow import Flow, ResolvedFlow
from natours_api.trace import FlowTrace


class _ThrottleStub(FlowComponent):
    category = ComponentCategory.THROTTLING

    async def resolve(self, ctx: RequestContext) -> None:
        ctx.state.setdefault("order", []).append("throttle")


class _AuthStub(FlowComponent):
    category = ComponentCategory.AUTHENTICATION

    async def resolve(self, ctx: RequestContext) -> None:
        ctx.state.setdefault("order", []).append("auth")
        ctx.user = {"role": "user"}


class _PermStub(FlowComponent):
    category = ComponentCategory.PERMISSION

    async def resolve(self, ctx: RequestContext) -> None:
        ctx.state.setdefault("order", []).append("perm")


class _CustomStub(FlowComponent):
    category = ComponentCategory.CUSTOM

    async def resolve(self, ctx: RequestContext) -> None:
        ctx.state.setdefault("order", []).append("custom")


class _Reject(FlowComponent):
    category = ComponentCategory.AUTHENTICATION

    async def resolve(self, ctx: RequestContext) -> None:
        raise AuthenticationFailed("no")


class _Broken(FlowComponent):
    category = ComponentCategory.CUSTOM

    async def resolve(self, ctx: RequestContext) -> None:
        raise RuntimeError("boom")


class TestFlowResolve:
    def test_components_sorted_by_category_order(self) -> None:
        flow = Flow(_CustomStub(), _AuthStub(), _ThrottleStub(), _PermStub())
        categories = [c.category for c in flow.resolve().components]
        assert categories == [
            ComponentCategory.THROTTLING,
            ComponentCategory.AUTHENTICATION,
            ComponentCategory.PERMISSION,
            ComponentCategory.CUSTOM,
        ]

    def test_preserves_registration_order_within_category(self) -> None:
        p1, p2 = _PermStub(), _PermStub()
        assert Flow(p1, p2).resolve().components == (p1, p2)

    def test_nested_flow_flattening(self) -> None:
        outer = Flow(_AuthStub(), Flow(Flow(_PermStub())), _CustomStub())
        assert len(outer.resolve().components) == 3

    def test_resolve_returns_frozen_resolved_flow(self) -> None:
        resolved = Flow(_AuthStub()).resolve()
        assert isinstance(resolved, ResolvedFlow)
        assert isinstance(resolved.components, tuple)

    def test_resolve_caches_result(self) -> None:
        flow = Flow(_AuthStub())
        assert flow.resolve() is flow.resolve()

    def test_add_invalidates_resolve_cache(self) -> None:
        flow = Flow(_AuthStub())
        r1 = flow.resolve()
        r2 = flow.add(_CustomStub()).resolve()
        assert r1 is not r2
        assert len(r2.components) == 2

    def test_debug_flag_propagated(self) -> None:
        assert Flow(debug=True).resolve().debug is True
        assert Flow().resolve().debug is False


class TestResolvedFlowRun:
    async def test_runs_in_category_order(self, make_request: Any) -> None:
        flow = Flow(_CustomStub(), _PermStub(), _AuthStub(), _ThrottleStub())
        ctx = await flow.resolve().run(RequestContext(request=make_request()))
        assert ctx.state["order"] == ["throttle", "auth", "perm", "custom"]
        assert ctx.user == {"role": "user"}

    async def test_empty_flow_is_noop(self, make_request: Any) -> None:
        ctx = await Flow().resolve().run(RequestContext(request=make_request()))
        assert ctx.state == {}

    async def test_app_error_propagates_and_stops(self, make_request: Any) -> None:
        flow = Flow(_Reject(), _CustomStub())
        ctx = RequestContext(request=make_request())
        with pytest.raises(AuthenticationFailed):
            await flow.resolve().run(ctx)
        assert "order" not in ctx.state

    async def test_other_exception_wrapped(self, make_request: Any) -> None:
        flow = Flow(_Broken())
        with pytest.raises(UnhandledError) as exc_info:
            await flow.resolve().run(RequestContext(request=make_request()))
        assert isinstance(exc_info.value, AppError)
        assert exc_info.value.is_operational is False
        assert isinstance(exc_info.value.cause, RuntimeError)

    async def test_debug_records_trace(self, make_request: Any) -> None:
        flow = Flow(_AuthStub(), _CustomStub(), debug=True)
        ctx = await flow.resolve().run(RequestContext(request=make_request()))
        trace = ctx.state["trace"]
        assert isinstance(trace, FlowTrace)
        assert [e.component_name for e in trace.entries] == ["_AuthStub", "_CustomStub"]
        assert trace.outcome == "OK"

    async def test_no_trace_without_debug(self, make_request: Any) -> None:
        ctx = await Flow(_AuthStub()).resolve().run(
            RequestContext(request=make_request())
        )
        assert "trace" not in ctx.state
