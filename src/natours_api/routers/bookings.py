"""Booking routes; staff only."""

from fastapi import APIRouter

from natours_api.factory import (
    Resource,
    create_one,
    delete_one,
    get_all,
    get_one,
    update_one,
)
from natours_api.models import Booking
from natours_api.routers.common import ApiFlows, query_components
from natours_api.schemas import BookingCreate, BookingUpdate

STAFF = ("lead-guide", "admin")


def build_router(flows: ApiFlows) -> APIRouter:
    router = APIRouter(prefix="/bookings", tags=["bookings"])
    staff = flows.protected(roles=STAFF)
    bookings = Resource(Booking, BookingCreate, BookingUpdate, flow=staff)

    router.add_api_route(
        "",
        get_all(bookings, flows.protected(*query_components(), roles=STAFF)),
        methods=["GET"],
    )
    router.add_api_route("", create_one(bookings), methods=["POST"], status_code=201)
    router.add_api_route("/{id}", get_one(bookings), methods=["GET"])
    router.add_api_route("/{id}", update_one(bookings), methods=["PATCH"])
    router.add_api_route(
        "/{id}", delete_one(bookings), methods=["DELETE"], status_code=204
    )
    return router
