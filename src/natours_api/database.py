"""Async SQLAlchemy engine, session handling and the declarative base."""

from __future__ import annotations

import uuid
from collections.abc import AsyncIterator
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import DateTime, Uuid, event, inspect
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.pool import StaticPool
from starlette.requests import Request


def utcnow() -> datetime:
    return datetime.now(UTC)


def _enable_foreign_keys(dbapi_connection: Any, connection_record: Any) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def as_utc(value: datetime) -> datetime:
    """SQLite drops tzinfo on the way back; stored values are always UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


class Base(DeclarativeBase):
    """Declarative base shared by all entities.

    Every entity has a UUID ``id`` and a ``created_at`` timestamp. Column
    names listed in ``__hidden__`` are never serialised or projected.
    """

    __hidden__ = frozenset()

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow
    )

    @classmethod
    def column_names(cls) -> list[str]:
        return [attr.key for attr in inspect(cls).column_attrs]

    @classmethod
    def visible_columns(cls) -> list[str]:
        return [name for name in cls.column_names() if name not in cls.__hidden__]

    def to_dict(self, fields: tuple[str, ...] | None = None) -> dict[str, Any]:
        """Serialise loaded, visible columns, optionally restricted to ``fields``."""
        unloaded = inspect(self).unloaded
        out: dict[str, Any] = {}
        for name in self.visible_columns():
            if name in unloaded:
                continue
            if fields is not None and name not in fields:
                continue
            out[name] = getattr(self, name)
        return out


class Database:
    """Owns the engine and the session factory for one application."""

    def __init__(self, url: str, *, echo: bool = False) -> None:
        kwargs: dict[str, Any] = {"echo": echo}
        parsed = make_url(url)
        sqlite = parsed.get_backend_name() == "sqlite"
        if sqlite and parsed.database in (
            None,
            "",
            ":memory:",
        ):
            # one shared connection, otherwise every session gets its own empty DB
            kwargs["poolclass"] = StaticPool
            kwargs["connect_args"] = {"check_same_thread": False}

        self.url = url
        self.engine = create_async_engine(url, **kwargs)
        if sqlite:
            # SQLite ignores foreign keys, and their ON DELETE actions, unless asked
            event.listen(self.engine.sync_engine, "connect", _enable_foreign_keys)
        self.session_factory = async_sessionmaker(
            self.engine, class_=AsyncSession, expire_on_commit=False
        )

    def session(self) -> AsyncSession:
        return self.session_factory()

    async def create_all(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def drop_all(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)

    async def dispose(self) -> None:
        await self.engine.dispose()


async def get_session(request: Request) -> AsyncIterator[AsyncSession]:
    """One session per request: commit on success, roll back on error."""
    db: Database = request.app.state.db
    async with db.session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
