"""OpenAPI schema enrichment from flow component metadata."""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI
from fastapi.routing import APIRoute

from natours_api.flow import ResolvedFlow


def collect_openapi_metadata(resolved: ResolvedFlow) -> dict[str, Any]:
    """Collect and merge OpenAPI metadata from all resolved components."""
    security_schemes: dict[str, Any] = {}
    security: list[dict[str, list[str]]] = []
    responses: dict[str, Any] = {}
    parameters: list[dict[str, Any]] = []
    roles: list[str] = []

    for component in resolved.components:
        spec = component.openapi_spec()
        if spec is None:
            continue

        security_schemes.update(spec.get("security_schemes", {}))
        for sec in spec.get("security", []):
            if sec not in security:
                security.append(sec)
        responses.update(spec.get("responses", {}))
        parameters.extend(spec.get("parameters", []))
        roles.extend(r for r in spec.get("x-roles", []) if r not in roles)

    result: dict[str, Any] = {}
    if security_schemes:
        result["security_schemes"] = security_schemes
    if security:
        result["security"] = security
    if responses:
        result["responses"] = responses
    if parameters:
        result["parameters"] = parameters
    if roles:
        result["x-roles"] = roles
    return result


def _find_flow_metadata(dependant: Any) -> dict[str, Any] | None:
    """Depth-first search for the first flow dependency under ``dependant``."""
    for dep in dependant.dependencies:
        meta = getattr(dep.call, "_flow_openapi_metadata", None)
        if meta is None:
            meta = _find_flow_metadata(dep)
        if meta is not None:
            return meta
    return None


def enrich_openapi(app: FastAPI) -> None:
    """Inject security, responses, parameters and role lists into routes.

    Call after all routers are included.
    """
    all_schemes: dict[str, Any] = {}

    for route in app.routes:
        if not isinstance(route, APIRoute):
            continue
        metadata = _find_flow_metadata(route.dependant)
        if not metadata:
            continue

        extra = route.openapi_extra or {}
        if "security" in metadata:
            extra["security"] = metadata["security"]
        if "parameters" in metadata:
            extra["parameters"] = metadata["parameters"]
        if "x-roles" in metadata:
            extra["x-roles"] = metadata["x-roles"]
        route.openapi_extra = extra or None

        if "responses" in metadata:
            existing = route.responses or {}
            for code, resp in metadata["responses"].items():
                existing[int(code)] = resp
            route.responses = existing

        all_schemes.update(metadata.get("security_schemes", {}))

    if not all_schemes:
        return

    original_schema = app.openapi

    def custom_openapi() -> dict[str, Any]:
        schema: dict[str, Any] = original_schema()
        components = schema.setdefault("components", {})
        components.setdefault("securitySchemes", {}).update(all_schemes)
        return schema

    app.openapi = custom_openapi  # type: ignore[method-assign]
