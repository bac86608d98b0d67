"""CRUD handler factory.

A :class:`Resource` binds an entity to its schemas and flow; ``get_all``,
``get_one``, ``create_one``, ``update_one`` and ``delete_one`` turn it into
FastAPI endpoints. Every endpoint runs its flow as a dependency, works in the
request's session and is wrapped with ``catch_async`` so any failure reaches
the global error handler.

    tours = Resource(Tour, TourCreate, TourUpdate, flow=read_flow)
    router.add_api_route("/", get_all(tours), methods=["GET"])
    router.add_api_route("/", create_one(tours, write_flow), methods=["POST"],
                         status_code=201)

This module deliberately does not use postponed annotations: FastAPI reads
the endpoint annotations through the ``catch_async`` wrapper.
"""

import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from fastapi import Body, Depends, Path
from pydantic import BaseModel
from sqlalchemy import Select, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload, undefer
from starlette.responses import Response

from natours_api.context import RequestContext
from natours_api.database import Base, get_session
from natours_api.dependency import flow_dependency
from natours_api.exceptions import CastError, NotFound
from natours_api.flow import Flow
from natours_api.query import APIFeatures, QuerySpec
from natours_api.sanitize import sanitize_payload
from natours_api.wrappers import catch_async

Handler = Callable[..., Awaitable[Any]]
BeforeCreate = Callable[[RequestContext, dict[str, Any]], None]
AfterWrite = Callable[[AsyncSession, Any], Awaitable[None]]


@dataclass(frozen=True)
class Populate:
    """A relationship embedded in read responses.

    ``fields`` limits the embedded columns, ``nested`` embeds relationships
    of the related records in turn.
    """

    relation: str
    fields: tuple[str, ...] | None = None
    nested: tuple["Populate", ...] = ()


@dataclass(frozen=True)
class Resource:
    """Binding of one entity to the generic handlers.

    ``parent`` maps a path parameter to a foreign-key column for nested
    listings (``("tour_id", "tour_id")`` under ``/tours/{tour_id}/reviews``).
    ``scope`` holds criteria added to every read, e.g. active users only.
    ``populate`` lists relationships loaded and embedded by ``get_all`` and
    ``get_one``.
    """

    model: type[Base]
    create_schema: type[BaseModel]
    update_schema: type[BaseModel]
    flow: Flow = field(default_factory=Flow)
    parent: tuple[str, str] | None = None
    scope: tuple[Any, ...] = ()
    before_create: BeforeCreate | None = None
    after_write: AfterWrite | None = None
    populate: tuple[Populate, ...] = ()


def parse_id(raw: Any, path: str = "id") -> uuid.UUID:
    if isinstance(raw, uuid.UUID):
        return raw
    try:
        return uuid.UUID(str(raw))
    except ValueError:
        raise CastError(path, raw) from None


def not_found(record_id: Any) -> NotFound:
    return NotFound(f"No document found with ID '{record_id}'")


def _scoped(resource: Resource, ctx: RequestContext) -> Select[Any]:
    model = resource.model
    statement = select(model).where(*resource.scope)
    if resource.parent is not None:
        param, column = resource.parent
        raw = ctx.path_params.get(param)
        if raw is not None:
            statement = statement.where(getattr(model, column) == parse_id(raw, param))
    return statement


def _loader(model: type[Base], populate: Populate) -> Any:
    attr = getattr(model, populate.relation)
    option = selectinload(attr)
    if populate.nested:
        target = attr.property.mapper.class_
        option = option.options(*(_loader(target, p) for p in populate.nested))
    return option


def with_populate(statement: Select[Any], resource: Resource) -> Select[Any]:
    options = []
    for populate in resource.populate:
        options.append(_loader(resource.model, populate))
        # the join columns must be loaded even under a field projection
        relation = getattr(resource.model, populate.relation).property
        options.extend(
            undefer(getattr(resource.model, c.key)) for c in relation.local_columns
        )
    return statement.options(*options) if options else statement


def serialize(
    record: Any,
    populate: tuple[Populate, ...] = (),
    fields: tuple[str, ...] | None = None,
) -> dict[str, Any]:
    """``record.to_dict`` plus the populated relationships."""
    data = record.to_dict(fields)
    for item in populate:
        related = getattr(record, item.relation)
        if isinstance(related, list):
            data[item.relation] = [
                serialize(r, item.nested, item.fields) for r in related
            ]
        elif related is not None:
            data[item.relation] = serialize(related, item.nested, item.fields)
        else:
            data[item.relation] = None
    return data


async def fetch_one(
    session: AsyncSession,
    resource: Resource,
    ctx: RequestContext,
    record_id: str,
    *,
    populated: bool = False,
) -> Any:
    """Load one record through the resource's scope or raise ``NotFound``."""
    model = resource.model
    statement = _scoped(resource, ctx).where(model.id == parse_id(record_id))
    if populated:
        statement = with_populate(statement, resource)
    record = (await session.scalars(statement)).one_or_none()
    if record is None:
        raise not_found(record_id)
    return record


def get_all(resource: Resource, flow: Flow | None = None) -> Handler:
    """List records; the flow supplies the ``QuerySpec`` in ``ctx.state``."""
    dependency = flow_dependency(flow or resource.flow)

    @catch_async
    async def handler(
        ctx: RequestContext = Depends(dependency),
        session: AsyncSession = Depends(get_session),
    ) -> dict[str, Any]:
        spec = ctx.state.get("query") or QuerySpec()
        features = (
            APIFeatures(_scoped(resource, ctx), resource.model, spec)
            .filter()
            .sort()
            .limit_fields()
            .paginate()
        )
        statement = with_populate(features.statement, resource)
        records = (await session.scalars(statement)).all()
        data = [serialize(r, resource.populate, features.projection) for r in records]
        return {"status": "success", "results": len(records), "data": {"data": data}}

    return handler


def get_one(resource: Resource, flow: Flow | None = None) -> Handler:
    dependency = flow_dependency(flow or resource.flow)

    @catch_async
    async def handler(
        record_id: str = Path(alias="id"),
        ctx: RequestContext = Depends(dependency),
        session: AsyncSession = Depends(get_session),
    ) -> dict[str, Any]:
        record = await fetch_one(session, resource, ctx, record_id, populated=True)
        data = serialize(record, resource.populate)
        return {"status": "success", "data": {"data": data}}

    return handler


def create_one(resource: Resource, flow: Flow | None = None) -> Handler:
    dependency = flow_dependency(flow or resource.flow)

    @catch_async
    async def handler(
        body: dict[str, Any] = Body(...),
        ctx: RequestContext = Depends(dependency),
        session: AsyncSession = Depends(get_session),
    ) -> dict[str, Any]:
        data = sanitize_payload(body)
        if resource.before_create is not None:
            resource.before_create(ctx, data)
        payload = resource.create_schema.model_validate(data)
        record = resource.model(**payload.model_dump())
        session.add(record)
        await session.flush()
        if resource.after_write is not None:
            await resource.after_write(session, record)
        return {"status": "success", "data": {"data": record.to_dict()}}

    return handler


def update_one(resource: Resource, flow: Flow | None = None) -> Handler:
    """Partial update; the merged record is re-validated by the create schema."""
    dependency = flow_dependency(flow or resource.flow)

    @catch_async
    async def handler(
        record_id: str = Path(alias="id"),
        body: dict[str, Any] = Body(...),
        ctx: RequestContext = Depends(dependency),
        session: AsyncSession = Depends(get_session),
    ) -> dict[str, Any]:
        record = await fetch_one(session, resource, ctx, record_id)
        changes = resource.update_schema.model_validate(
            sanitize_payload(body)
        ).model_dump(exclude_unset=True)
        merged = resource.create_schema.model_validate({**record.to_dict(), **changes})
        for name, value in merged.model_dump().items():
            setattr(record, name, value)
        await session.flush()
        if resource.after_write is not None:
            await resource.after_write(session, record)
        return {"status": "success", "data": {"data": record.to_dict()}}

    return handler


def delete_one(resource: Resource, flow: Flow | None = None) -> Handler:
    dependency = flow_dependency(flow or resource.flow)

    @catch_async
    async def handler(
        record_id: str = Path(alias="id"),
        ctx: RequestContext = Depends(dependency),
        session: AsyncSession = Depends(get_session),
    ) -> Response:
        record = await fetch_one(session, resource, ctx, record_id)
        await session.delete(record)
        await session.flush()
        if resource.after_write is not None:
            await resource.after_write(session, record)
        return Response(status_code=204)

    return handler
