"""Tour, User, Review and Booking entities."""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta

from sqlalchemy import (
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    JSON,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from natours_api.database import Base, as_utc, utcnow
from natours_api.security import (
    hash_password,
    new_reset_token,
    verify_password,
)

ROLES = ("user", "guide", "lead-guide", "admin")
DIFFICULTIES = ("easy", "medium", "difficult")


class Tour(Base):
    __tablename__ = "tours"

    name: Mapped[str] = mapped_column(String(40), unique=True)
    slug: Mapped[str | None] = mapped_column(String(60), index=True)
    duration: Mapped[int] = mapped_column(Integer)
    max_group_size: Mapped[int] = mapped_column(Integer)
    difficulty: Mapped[str] = mapped_column(String(20))
    ratings_average: Mapped[float] = mapped_column(Float, default=4.5)
    ratings_quantity: Mapped[int] = mapped_column(Integer, default=0)
    price: Mapped[float] = mapped_column(Float, index=True)
    price_discount: Mapped[float | None] = mapped_column(Float)
    summary: Mapped[str] = mapped_column(Text)
    description: Mapped[str | None] = mapped_column(Text)
    image_cover: Mapped[str] = mapped_column(String(255))
    # ISO-8601 strings
    start_dates: Mapped[list[str]] = mapped_column(JSON, default=list)
    secret_tour: Mapped[bool] = mapped_column(Boolean, default=False)

    reviews: Mapped[list[Review]] = relationship(
        back_populates="tour",
        cascade="all",
        passive_deletes=True,
        order_by="Review.created_at",
    )


class User(Base):
    __tablename__ = "users"
    __hidden__ = frozenset(
        {"password", "password_reset_token", "password_reset_expires", "active"}
    )

    name: Mapped[str] = mapped_column(String(100))
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    photo: Mapped[str] = mapped_column(String(255), default="default.jpg")
    role: Mapped[str] = mapped_column(String(20), default="user")
    password: Mapped[str] = mapped_column(String(100))
    password_changed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True)
    )
    password_reset_token: Mapped[str | None] = mapped_column(String(64), index=True)
    password_reset_expires: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True)
    )
    active: Mapped[bool] = mapped_column(Boolean, default=True)

    def set_password(self, raw: str, *, rounds: int, initial: bool = False) -> None:
        self.password = hash_password(raw, rounds)
        if not initial:
            # backdated so a credential issued right after the change stays valid
            self.password_changed_at = utcnow() - timedelta(seconds=1)

    def check_password(self, candidate: str) -> bool:
        return verify_password(candidate, self.password)

    def changed_password_after(self, issued_at: int) -> bool:
        """True when a credential issued at ``issued_at`` predates a password change."""
        if self.password_changed_at is None:
            return False
        changed = int(as_utc(self.password_changed_at).timestamp())
        return issued_at < changed

    def create_password_reset_token(self, expires_in: timedelta) -> str:
        plain, digest = new_reset_token()
        self.password_reset_token = digest
        self.password_reset_expires = utcnow() + expires_in
        return plain

    def clear_password_reset(self) -> None:
        self.password_reset_token = None
        self.password_reset_expires = None


class Review(Base):
    __tablename__ = "reviews"
    __table_args__ = (UniqueConstraint("tour_id", "user_id"),)

    review: Mapped[str] = mapped_column(Text)
    rating: Mapped[int | None] = mapped_column(Integer)
    tour_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("tours.id", ondelete="CASCADE"), index=True
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), index=True
    )

    tour: Mapped[Tour] = relationship(back_populates="reviews")
    user: Mapped[User] = relationship()


class Booking(Base):
    __tablename__ = "bookings"

    tour_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("tours.id", ondelete="CASCADE"), index=True
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), index=True
    )
    price: Mapped[float] = mapped_column(Float)
    paid: Mapped[bool] = mapped_column(Boolean, default=True)
