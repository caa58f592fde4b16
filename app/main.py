"""
ASGI entrypoint for the whiteboard document integration.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from app.api.routes import router as api_router
from app.core.config import get_settings
from app.core.logging import configure_logging
from app.dependencies import get_auth_storage, get_settings_cache, get_settings_storage

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncIterator[None]:
    # Schemas are created at startup rather than on the first request.
    get_auth_storage()
    get_settings_storage()
    get_settings_cache()
    logger.info("Storage ready at %s", get_settings().storage.database_path)
    yield


def create_app() -> FastAPI:
    settings = get_settings()
    configure_logging(settings.log_level)

    application = FastAPI(
        title="Miro Document Integration",
        version="0.1.0",
        description="OAuth installation, board sessions and document server settings.",
        lifespan=lifespan,
    )
    application.include_router(api_router, prefix="/api")
    return application


app = create_app()

__all__ = ["app", "create_app"]
