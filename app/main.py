from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from app.core.config import get_settings
from app.services_container import init_services, shutdown_services

from .api.errors import register_error_handlers
from .api.routes import brainstorm, images, meta


def create_app() -> FastAPI:
    settings = get_settings()

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        await init_services(settings=settings)
        try:
            yield
        finally:
            await shutdown_services()

    app = FastAPI(title=settings.app_name, version=settings.version, lifespan=lifespan)
    register_error_handlers(app)

    app.include_router(meta.health_router)
    app.include_router(meta.router, prefix=settings.api_prefix)
    app.include_router(images.router, prefix=settings.api_prefix)
    app.include_router(brainstorm.router, prefix=settings.api_prefix)

    return app


app = create_app()
