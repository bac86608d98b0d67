"""FlowTrace and TraceEntry: debug execution recording."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

from natours_api.component import ComponentCategory
from natours_api.exceptions import AppError


@dataclass(frozen=True)
class TraceEntry:
    """Single component execution record."""

    component_name: str
    category: ComponentCategory
    duration_ms: float
    outcome: Literal["OK", "FAILED"]
    reason: str | None = None


@dataclass
class FlowTrace:
    """Structured record of a single flow execution.

    Stored in ``ctx.state["trace"]`` when the flow runs in debug mode.
    """

    entries: list[TraceEntry] = field(default_factory=list)
    total_duration_ms: float = 0.0
    outcome: Literal["OK", "ABORTED", "ERROR"] = "OK"
    error: AppError | None = None

    def summary(self) -> str:
        steps = " -> ".join(
            f"{e.component_name}:{e.outcome}({e.duration_ms:.2f}ms)"
            for e in self.entries
        )
        return f"{self.outcome} in {self.total_duration_ms:.2f}ms [{steps}]"
