"""Built-in flow components."""

from natours_api.components.authentication import (
    AllowAnonymous,
    IsLoggedIn,
    Protect,
)
from natours_api.components.filters import QueryFeatures, QueryPreset
from natours_api.components.pagination import PagePagination
from natours_api.components.permissions import RestrictTo
from natours_api.components.throttling import (
    InMemoryThrottleBackend,
    RateLimit,
    ThrottleBackend,
)

__all__ = [
    "AllowAnonymous",
    "InMemoryThrottleBackend",
    "IsLoggedIn",
    "PagePagination",
    "Protect",
    "QueryFeatures",
    "QueryPreset",
    "RateLimit",
    "RestrictTo",
    "ThrottleBackend",
]
