"""Process entry point: ``python -m natours_api.main`` or ``natours-api``."""

from __future__ import annotations

import uvicorn

from natours_api.app import create_app
from natours_api.config import get_settings

settings = get_settings()
app = create_app(settings)


def run() -> None:
    uvicorn.run(app, host=settings.host, port=settings.port, log_config=None)


if __name__ == "__main__":
    run()
