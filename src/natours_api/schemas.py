"""Pydantic request schemas.

Create schemas hold the full set of field rules; ``update_one`` re-runs them
on the merged record, so cross-field checks (discount below price, slug
derived from name) hold after partial updates too. Update schemas only
describe which fields a PATCH may touch.
"""

from __future__ import annotations

import re
import uuid
from datetime import datetime
from typing import Literal

from pydantic import (
    BaseModel,
    ConfigDict,
    EmailStr,
    Field,
    field_serializer,
    field_validator,
    model_validator,
)

Difficulty = Literal["easy", "medium", "difficult"]
Role = Literal["user", "guide", "lead-guide", "admin"]

_NON_SLUG = re.compile(r"[^a-z0-9]+")


def slugify(value: str) -> str:
    return _NON_SLUG.sub("-", value.lower()).strip("-")


class _Schema(BaseModel):
    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)


# -- tours -------------------------------------------------------------------


class TourCreate(_Schema):
    name: str = Field(..., min_length=10, max_length=40)
    slug: str | None = None
    duration: int = Field(..., gt=0)
    max_group_size: int = Field(..., gt=0)
    difficulty: Difficulty
    ratings_average: float = Field(default=4.5, ge=1, le=5)
    ratings_quantity: int = Field(default=0, ge=0)
    price: float = Field(..., gt=0)
    price_discount: float | None = Field(default=None, ge=0)
    summary: str = Field(..., min_length=1)
    description: str | None = None
    image_cover: str = Field(..., min_length=1)
    start_dates: list[datetime] = Field(default_factory=list)
    secret_tour: bool = False

    @field_validator("ratings_average")
    @classmethod
    def round_rating(cls, v: float) -> float:
        return round(v, 1)

    @field_serializer("start_dates")
    def store_start_dates(self, v: list[datetime]) -> list[str]:
        return [d.isoformat() for d in v]

    @model_validator(mode="after")
    def check_discount_and_slug(self) -> TourCreate:
        if self.price_discount is not None and self.price_discount >= self.price:
            raise ValueError(
                f"Discount price ({self.price_discount}) should be below regular price"
            )
        self.slug = slugify(self.name)
        return self


class TourUpdate(_Schema):
    name: str | None = Field(default=None, min_length=10, max_length=40)
    duration: int | None = Field(default=None, gt=0)
    max_group_size: int | None = Field(default=None, gt=0)
    difficulty: Difficulty | None = None
    price: float | None = Field(default=None, gt=0)
    price_discount: float | None = Field(default=None, ge=0)
    summary: str | None = None
    description: str | None = None
    image_cover: str | None = None
    start_dates: list[datetime] | None = None
    secret_tour: bool | None = None


# -- users -------------------------------------------------------------------


class _LowerEmail(_Schema):
    @field_validator("email", check_fields=False)
    @classmethod
    def normalise_email(cls, v: str | None) -> str | None:
        return v.lower() if v is not None else v


class _PasswordPair(_Schema):
    password: str = Field(..., min_length=8)
    password_confirm: str

    @model_validator(mode="after")
    def passwords_match(self) -> _PasswordPair:
        if self.password != self.password_confirm:
            raise ValueError("Passwords are not the same!")
        return self


class UserSignup(_PasswordPair, _LowerEmail):
    name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr


class UserLogin(_Schema):
    """Both fields optional so a missing one gets the login-specific message."""

    email: str | None = None
    password: str | None = None


class ForgotPassword(_LowerEmail):
    email: EmailStr


class ResetPassword(_PasswordPair):
    pass


class UpdatePassword(_PasswordPair):
    password_current: str = Field(..., min_length=1)


class UpdateMe(_LowerEmail):
    """Only these fields can be changed through update-me."""

    name: str | None = Field(default=None, min_length=1, max_length=100)
    email: EmailStr | None = None


class UserProfile(_LowerEmail):
    """Full rule set for a stored user, used to re-validate admin updates."""

    name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    photo: str = "default.jpg"
    role: Role = "user"


class UserAdminUpdate(_LowerEmail):
    name: str | None = Field(default=None, min_length=1, max_length=100)
    email: EmailStr | None = None
    photo: str | None = None
    role: Role | None = None


# -- reviews -----------------------------------------------------------------


class ReviewCreate(_Schema):
    review: str = Field(..., min_length=1)
    rating: int = Field(..., ge=1, le=5)
    tour_id: uuid.UUID
    user_id: uuid.UUID


class ReviewUpdate(_Schema):
    review: str | None = Field(default=None, min_length=1)
    rating: int | None = Field(default=None, ge=1, le=5)


# -- bookings ----------------------------------------------------------------


class BookingCreate(_Schema):
    tour_id: uuid.UUID
    user_id: uuid.UUID
    price: float = Field(..., gt=0)
    paid: bool = True


class BookingUpdate(_Schema):
    price: float | None = Field(default=None, gt=0)
    paid: bool | None = None
