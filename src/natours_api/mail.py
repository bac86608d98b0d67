"""Password reset notification."""

from __future__ import annotations

import logging
from typing import Protocol, runtime_checkable

logger = logging.getLogger(__name__)


@runtime_checkable
class ResetNotifier(Protocol):
    """Delivers a password reset link. Raising aborts the reset."""

    async def send_reset(self, email: str, reset_url: str) -> None: ...


class LoggingNotifier:
    """Writes the reset link to the log instead of sending mail."""

    def __init__(self, log: logging.Logger | None = None) -> None:
        self._log = log or logger

    async def send_reset(self, email: str, reset_url: str) -> None:
        self._log.info("password reset for %s: %s", email, reset_url)
