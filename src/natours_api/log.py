"""Logging setup."""

from __future__ import annotations

import logging

from natours_api.config import Settings

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(settings: Settings) -> None:
    """Route all records through one stream handler at the configured level."""
    root = logging.getLogger()
    root.setLevel(settings.log_level)
    if not any(getattr(h, "_natours", False) for h in root.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._natours = True  # type: ignore[attr-defined]
        root.addHandler(handler)

    # SQL echo only when explicitly debugging
    logging.getLogger("sqlalchemy.engine").setLevel(
        logging.INFO if settings.log_level == "DEBUG" else logging.WARNING
    )
