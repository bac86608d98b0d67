"""Tour routes."""

from collections import defaultdict
from dataclasses import replace
from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends, Path
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from natours_api.context import RequestContext
from natours_api.database import as_utc, get_session
from natours_api.dependency import flow_dependency
from natours_api.factory import (
    Handler,
    Populate,
    Resource,
    create_one,
    delete_one,
    get_all,
    get_one,
    update_one,
)
from natours_api.flow import Flow
from natours_api.models import Tour
from natours_api.routers import reviews
from natours_api.routers.reviews import AUTHOR
from natours_api.routers.common import ApiFlows, query_components
from natours_api.schemas import TourCreate, TourUpdate
from natours_api.wrappers import catch_async

# Repeating one of these keys filters on all of the given values.
WHITELIST = frozenset(
    {
        "duration",
        "ratings_quantity",
        "ratings_average",
        "max_group_size",
        "difficulty",
        "price",
    }
)

TOP_CHEAP = {
    "limit": "5",
    "sort": "-ratings_average,price",
    "fields": "name,price,ratings_average,summary,difficulty",
}

STAFF = ("lead-guide", "admin")
PLANNERS = ("guide", "lead-guide", "admin")

WITH_REVIEWS = (Populate("reviews", nested=(AUTHOR,)),)


def tour_stats(flow: Flow) -> Handler:
    """Aggregates over well-rated tours, grouped by difficulty."""
    dependency = flow_dependency(flow)

    @catch_async
    async def handler(
        ctx: RequestContext = Depends(dependency),
        session: AsyncSession = Depends(get_session),
    ) -> dict[str, Any]:
        difficulty = func.upper(Tour.difficulty).label("difficulty")
        avg_price = func.avg(Tour.price).label("avg_price")
        statement = (
            select(
                difficulty,
                func.count(Tour.id).label("num_tours"),
                func.sum(Tour.ratings_quantity).label("num_ratings"),
                func.avg(Tour.ratings_average).label("avg_rating"),
                avg_price,
                func.min(Tour.price).label("min_price"),
                func.max(Tour.price).label("max_price"),
            )
            .where(Tour.ratings_average >= 4.5, Tour.secret_tour.is_(False))
            .group_by(func.upper(Tour.difficulty))
            .order_by(avg_price)
        )
        rows = (await session.execute(statement)).mappings().all()
        return {"status": "success", "data": {"stats": [dict(r) for r in rows]}}

    return handler


def monthly_plan(flow: Flow) -> Handler:
    """Tour starts per month of one year, busiest month first."""
    dependency = flow_dependency(flow)

    @catch_async
    async def handler(
        year: int = Path(ge=1, le=9999),
        ctx: RequestContext = Depends(dependency),
        session: AsyncSession = Depends(get_session),
    ) -> dict[str, Any]:
        rows = await session.execute(
            select(Tour.name, Tour.start_dates).where(Tour.secret_tour.is_(False))
        )
        months: dict[int, list[str]] = defaultdict(list)
        for name, start_dates in rows:
            for raw in start_dates or ():
                starts = as_utc(datetime.fromisoformat(raw))
                if starts.year == year:
                    months[starts.month].append(name)
        plan = [
            {"month": month, "num_tour_starts": len(names), "tours": names}
            for month, names in months.items()
        ]
        plan.sort(key=lambda p: (-p["num_tour_starts"], p["month"]))
        return {"status": "success", "results": len(plan), "data": {"plan": plan}}

    return handler


def build_router(flows: ApiFlows) -> APIRouter:
    router = APIRouter(prefix="/tours", tags=["tours"])
    tours = Resource(
        Tour,
        TourCreate,
        TourUpdate,
        flow=flows.public(),
        scope=(Tour.secret_tour.is_(False),),
    )
    staff = flows.protected(roles=STAFF)

    router.add_api_route(
        "", get_all(tours, flows.public(*query_components(WHITELIST))), methods=["GET"]
    )
    router.add_api_route(
        "/top-5-cheap",
        get_all(tours, flows.public(*query_components(WHITELIST, preset=TOP_CHEAP))),
        methods=["GET"],
    )
    router.add_api_route("/tour-stats", tour_stats(flows.public()), methods=["GET"])
    router.add_api_route(
        "/monthly-plan/{year}",
        monthly_plan(flows.protected(roles=PLANNERS)),
        methods=["GET"],
    )
    router.add_api_route(
        "", create_one(tours, staff), methods=["POST"], status_code=201
    )
    router.add_api_route(
        "/{id}", get_one(replace(tours, populate=WITH_REVIEWS)), methods=["GET"]
    )
    router.add_api_route("/{id}", update_one(tours, staff), methods=["PATCH"])
    router.add_api_route(
        "/{id}", delete_one(tours, staff), methods=["DELETE"], status_code=204
    )

    router.include_router(
        reviews.build_nested_router(flows), prefix="/{tour_id}/reviews"
    )
    return router
