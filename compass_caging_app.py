"""Uvicorn entry point for the Compass Caging API."""

from __future__ import annotations

import uvicorn

from compass_caging.api import create_app
from compass_caging.config import Settings

settings = Settings()
app = create_app(settings)


if __name__ == "__main__":
    uvicorn.run(
        "compass_caging_app:app",
        host=settings.HOST,
        port=settings.PORT,
        log_level=settings.LOG_LEVEL.lower(),
        reload=settings.DEBUG,
    )
