"""Review routes, top-level and nested under a tour."""

from typing import Any

from fastapi import APIRouter
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from natours_api.context import RequestContext
from natours_api.factory import (
    Populate,
    Resource,
    create_one,
    delete_one,
    get_all,
    get_one,
    update_one,
)
from natours_api.models import Review, Tour
from natours_api.routers.common import ApiFlows, query_components
from natours_api.schemas import ReviewCreate, ReviewUpdate

DEFAULT_RATING = 4.5

AUTHOR = Populate("user", fields=("id", "name", "photo"))


def fill_tour_and_author(ctx: RequestContext, data: dict[str, Any]) -> None:
    """Default the tour to the path parameter and the author to the identity."""
    tour_id = ctx.path_params.get("tour_id")
    if tour_id is not None and not data.get("tour_id"):
        data["tour_id"] = tour_id
    if not data.get("user_id") and ctx.user is not None:
        data["user_id"] = str(ctx.user.id)


async def recalculate_ratings(session: AsyncSession, review: Review) -> None:
    """Refresh the reviewed tour's rating count and average."""
    count, average = (
        await session.execute(
            select(func.count(Review.id), func.avg(Review.rating)).where(
                Review.tour_id == review.tour_id
            )
        )
    ).one()
    tour = await session.get(Tour, review.tour_id)
    if tour is None:
        return
    if count:
        tour.ratings_quantity = count
        tour.ratings_average = round(float(average), 1)
    else:
        tour.ratings_quantity = 0
        tour.ratings_average = DEFAULT_RATING
    await session.flush()


def review_resource(flows: ApiFlows, *, nested: bool = False) -> Resource:
    return Resource(
        Review,
        ReviewCreate,
        ReviewUpdate,
        flow=flows.protected(),
        parent=("tour_id", "tour_id") if nested else None,
        before_create=fill_tour_and_author,
        after_write=recalculate_ratings,
        populate=(AUTHOR,),
    )


def build_nested_router(flows: ApiFlows) -> APIRouter:
    """``/tours/{tour_id}/reviews``: list and create reviews of one tour."""
    router = APIRouter(tags=["reviews"])
    reviews = review_resource(flows, nested=True)
    router.add_api_route(
        "", get_all(reviews, flows.protected(*query_components())), methods=["GET"]
    )
    router.add_api_route(
        "",
        create_one(reviews, flows.protected(roles=("user",))),
        methods=["POST"],
        status_code=201,
    )
    return router


def build_router(flows: ApiFlows) -> APIRouter:
    router = APIRouter(prefix="/reviews", tags=["reviews"])
    reviews = review_resource(flows)
    owners = flows.protected(roles=("user", "admin"))

    router.add_api_route(
        "", get_all(reviews, flows.protected(*query_components())), methods=["GET"]
    )
    router.add_api_route(
        "",
        create_one(reviews, flows.protected(roles=("user",))),
        methods=["POST"],
        status_code=201,
    )
    router.add_api_route("/{id}", get_one(reviews), methods=["GET"])
    router.add_api_route("/{id}", update_one(reviews, owners), methods=["PATCH"])
    router.add_api_route(
        "/{id}", delete_one(reviews, owners), methods=["DELETE"], status_code=204
    )
    return router
