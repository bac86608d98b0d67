"""Lookup of the live user behind a verified credential."""

from __future__ import annotations

import uuid

from sqlalchemy import select

from natours_api.database import Database
from natours_api.models import User


class UserDirectory:
    """Resolves credential subjects to active users.

    Used as the ``lookup`` callback of the authentication components. The
    returned row is detached; handlers that change it must load it again in
    their own session.
    """

    def __init__(self, db: Database) -> None:
        self._db = db

    async def get_active(self, subject: str) -> User | None:
        try:
            user_id = uuid.UUID(subject)
        except ValueError:
            return None
        async with self._db.session() as session:
            result = await session.execute(
                select(User).where(User.id == user_id, User.active.is_(True))
            )
            return result.scalar_one_or_none()
