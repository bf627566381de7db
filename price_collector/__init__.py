from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from .config import configure_logging, get_settings
from .routes.alerts import router as alerts_router
from .routes.assets import router as assets_router
from .routes.health import router as health_router
from .routes.history import router as history_router
from .routes.sync import router as sync_router
from .services import start_background_sync, stop_background_sync


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncIterator[None]:
    configure_logging()
    task = await start_background_sync()
    try:
        yield
    finally:
        await stop_background_sync(task)


def create_app() -> FastAPI:
    settings = get_settings()
    application = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )
    application.include_router(health_router, tags=["health"])
    application.include_router(sync_router, prefix="/api", tags=["sync"])
    application.include_router(assets_router, prefix="/api", tags=["assets"])
    application.include_router(history_router, prefix="/api", tags=["history"])
    application.include_router(alerts_router, prefix="/api", tags=["alerts"])
    return application
