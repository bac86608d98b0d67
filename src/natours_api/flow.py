"""Flow: ordered container, composition directives and execution engine."""

from __future__ import annotations

import time
from dataclasses import dataclass

from natours_api.component import ComponentCategory, FlowComponent
from natours_api.context import RequestContext
from natours_api.exceptions import AppError, UnhandledError
from natours_api.hooks import FlowHook
from natours_api.trace import FlowTrace, TraceEntry


class OverrideFlow:
    """Composition directive that replaces all components of a given category."""

    def __init__(self, component: FlowComponent) -> None:
        self.component = component
        self.category = component.category


class DisableFlow:
    """Composition directive that removes all components of a given category."""

    def __init__(self, category: ComponentCategory) -> None:
        self.category = category


@dataclass(frozen=True)
class ResolvedFlow:
    """Immutable, pre-computed execution plan."""

    components: tuple[FlowComponent, ...]
    hooks: tuple[FlowHook, ...] = ()
    debug: bool = False

    async def run(self, ctx: RequestContext) -> RequestContext:
        """Execute every component in order against ``ctx``.

        ``AppError`` propagates unchanged; anything else is wrapped into a
        non-operational ``UnhandledError`` carrying the original exception.
        """
        trace = FlowTrace() if self.debug else None
        flow_start = time.perf_counter()

        for hook in self.hooks:
            await hook.on_flow_start(ctx)

        try:
            for component in self.components:
                comp_start = time.perf_counter()
                try:
                    await component.resolve(ctx)
                except AppError as exc:
                    self._record(trace, component, comp_start, "FAILED", exc.message)
                    if trace is not None:
                        trace.outcome = "ABORTED"
                        trace.error = exc
                    for hook in self.hooks:
                        await hook.on_component(ctx, component, exc)
                    raise
                except Exception as exc:
                    self._record(trace, component, comp_start, "FAILED", str(exc))
                    wrapped = UnhandledError("Internal flow error", cause=exc)
                    if trace is not None:
                        trace.outcome = "ERROR"
                        trace.error = wrapped
                    for hook in self.hooks:
                        await hook.on_component(ctx, component, wrapped)
                    raise wrapped from exc
                else:
                    self._record(trace, component, comp_start, "OK", None)
                    for hook in self.hooks:
                        await hook.on_component(ctx, component, None)
        finally:
            if trace is not None:
                trace.total_duration_ms = (time.perf_counter() - flow_start) * 1000
                ctx.state["trace"] = trace
            for hook in self.hooks:
                await hook.on_flow_end(ctx)

        return ctx

    @staticmethod
    def _record(
        trace: FlowTrace | None,
        component: FlowComponent,
        started: float,
        outcome: str,
        reason: str | None,
    ) -> None:
        if trace is None:
            return
        trace.entries.append(
            TraceEntry(
                component_name=type(component).__name__,
                category=component.category,
                duration_ms=(time.perf_counter() - started) * 1000,
                outcome=outcome,  # type: ignore[arg-type]
                reason=reason,
            )
        )


class Flow:
    """Ordered container of FlowComponent instances."""

    def __init__(
        self,
        *components: FlowComponent | Flow | OverrideFlow | DisableFlow,
        hooks: tuple[FlowHook, ...] | list[FlowHook] = (),
        debug: bool = False,
    ) -> None:
        self._items: list[FlowComponent | Flow | OverrideFlow | DisableFlow] = list(
            components
        )
        self._hooks: list[FlowHook] = list(hooks)
        self._debug = debug
        self._resolved: ResolvedFlow | None = None

    def add(
        self, *components: FlowComponent | Flow | OverrideFlow | DisableFlow
    ) -> Flow:
        self._items.extend(components)
        self._resolved = None
        return self

    def add_hook(self, hook: FlowHook) -> Flow:
        self._hooks.append(hook)
        self._resolved = None
        return self

    def resolve(self) -> ResolvedFlow:
        if self._resolved is not None:
            return self._resolved

        flat: list[FlowComponent] = []
        self._flatten(self._items, flat)

        # sorted() is stable: registration order holds within a category
        sorted_components = sorted(flat, key=lambda c: c.category.order)

        self._resolved = ResolvedFlow(
            components=tuple(sorted_components),
            hooks=tuple(self._hooks),
            debug=self._debug,
        )
        return self._resolved

    @staticmethod
    def _flatten(
        items: list[FlowComponent | Flow | OverrideFlow | DisableFlow],
        out: list[FlowComponent],
    ) -> None:
        for item in items:
            if isinstance(item, Flow):
                Flow._flatten(item._items, out)
            elif isinstance(item, FlowComponent):
                out.append(item)
            # OverrideFlow and DisableFlow are handled by merge_flows, not here


def merge_flows(*flows: Flow) -> Flow:
    """Merge flows with last-writer-wins by category.

    A later flow's components for a category replace the earlier flows'
    components for that category. OverrideFlow and DisableFlow directives
    are applied after the flow's own components. Hooks of every flow are
    kept in order, without duplicates.
    """
    category_groups: dict[ComponentCategory, list[FlowComponent]] = {}
    hooks: list[FlowHook] = []
    debug = False

    for flow in flows:
        debug = debug or flow._debug
        for hook in flow._hooks:
            if hook not in hooks:
                hooks.append(hook)

        flow_categories: dict[ComponentCategory, list[FlowComponent]] = {}
        directives: list[OverrideFlow | DisableFlow] = []

        for item in flow._items:
            if isinstance(item, (OverrideFlow, DisableFlow)):
                directives.append(item)
            else:
                flat: list[FlowComponent] = []
                Flow._flatten([item], flat)
                for comp in flat:
                    flow_categories.setdefault(comp.category, []).append(comp)

        for cat, comps in flow_categories.items():
            category_groups[cat] = comps

        for directive in directives:
            if isinstance(directive, OverrideFlow):
                category_groups[directive.category] = [directive.component]
            else:
                category_groups.pop(directive.category, None)

    all_components: list[FlowComponent] = []
    for cat in sorted(category_groups, key=lambda c: c.order):
        all_components.extend(category_groups[cat])

    return Flow(*all_components, hooks=hooks, debug=debug)
