"""Natours API - tours, users, reviews and bookings over composable request flows."""

__version__ = "0.1.0"

from natours_api.app import create_app
from natours_api.component import ComponentCategory, FlowComponent
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
from natours_api.config import Settings
from natours_api.context import RequestContext
from natours_api.dependency import flow_dependency
from natours_api.errors import ErrorHandler, install_error_handlers
from natours_api.exceptions import (
    AppError,
    AuthenticationFailed,
    CastError,
    NotFound,
    PayloadTooLarge,
    PermissionDenied,
    Throttled,
    UnhandledError,
    ValidationFailed,
)
from natours_api.factory import (
    Populate,
    Resource,
    create_one,
    delete_one,
    get_all,
    get_one,
    update_one,
)
from natours_api.flow import DisableFlow, Flow, OverrideFlow, merge_flows
from natours_api.hooks import FlowHook, LogOutcomes
from natours_api.openapi import enrich_openapi
from natours_api.query import APIFeatures, QuerySpec, parse_query
from natours_api.security import TokenService
from natours_api.trace import FlowTrace, TraceEntry
from natours_api.wrappers import catch_async

__all__ = [
    "APIFeatures",
    "AllowAnonymous",
    "AppError",
    "AuthenticationFailed",
    "CastError",
    "ComponentCategory",
    "DisableFlow",
    "ErrorHandler",
    "Flow",
    "FlowComponent",
    "FlowHook",
    "FlowTrace",
    "InMemoryThrottleBackend",
    "IsLoggedIn",
    "LogOutcomes",
    "NotFound",
    "OverrideFlow",
    "PagePagination",
    "PayloadTooLarge",
    "PermissionDenied",
    "Populate",
    "Protect",
    "QueryFeatures",
    "QueryPreset",
    "QuerySpec",
    "RateLimit",
    "RequestContext",
    "Resource",
    "RestrictTo",
    "Settings",
    "ThrottleBackend",
    "Throttled",
    "TokenService",
    "TraceEntry",
    "UnhandledError",
    "ValidationFailed",
    "catch_async",
    "create_app",
    "create_one",
    "delete_one",
    "enrich_openapi",
    "flow_dependency",
    "get_all",
    "get_one",
    "install_error_handlers",
    "merge_flows",
    "parse_query",
    "update_one",
]
