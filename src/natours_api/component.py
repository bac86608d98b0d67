"""FlowComponent abstract base class and ComponentCategory enum."""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, ClassVar

from natours_api.context import RequestContext


class ComponentCategory(Enum):
    """Processing component categories, defining strict execution order."""

    THROTTLING = "throttling"
    AUTHENTICATION = "authentication"
    PERMISSION = "permission"
    FILTERS = "filters"
    PAGINATION = "pagination"
    CUSTOM = "custom"

    @property
    def order(self) -> int:
        _ORDER = {
            "throttling": 1,
            "authentication": 2,
            "permission": 3,
            "filters": 4,
            "pagination": 5,
            "custom": 6,
        }
        return _ORDER[self.value]


class FlowComponent(ABC):
    """Base abstraction for all processing units in a flow."""

    category: ClassVar[ComponentCategory]

    @abstractmethod
    async def resolve(self, ctx: RequestContext) -> None: ...

    def openapi_spec(self) -> dict[str, Any] | None:
        return None
