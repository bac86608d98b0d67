"""Shared type aliases."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any

# Resolves a credential subject to a live user, or None when it no longer exists
LookupCallback = Callable[[str], Awaitable[Any | None]]
