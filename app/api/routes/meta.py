from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse

from app import services_container
from app.services.models import HealthResponse, HelpResponse, StorageHealth

logger = logging.getLogger(__name__)

router = APIRouter(tags=["meta"])
health_router = APIRouter(tags=["meta"])


@router.get("/help", response_model=HelpResponse)
async def help_endpoint() -> HelpResponse:
    return HelpResponse(
        description="Dream Machine image generation API",
        endpoints=[
            "GET /healthz",
            "POST /api/images",
            "GET /api/images/user/{user_id}",
            "GET /api/images/{image_id}",
            "GET /api/brainstorm/categories",
            "GET /api/brainstorm/{category}?count=",
        ],
    )


async def _check_storage_health() -> StorageHealth:
    provider = services_container.get_storage_provider_instance()
    if provider is None:
        if services_container.get_repository_instance() is None:
            logger.error("Image store unavailable during health check")
            return StorageHealth(backend="memory", connected=False, message="Image store unavailable")
        return StorageHealth(backend="memory", connected=True)

    try:
        await provider.ping()
    except Exception as exc:  # pragma: no cover - defensive logging for observability
        logger.exception("Redis health check failed")
        return StorageHealth(backend="redis", connected=False, message=str(exc))

    return StorageHealth(backend="redis", connected=True)


@health_router.get("/healthz", response_model=HealthResponse, response_model_exclude_none=True)
async def health_endpoint() -> HealthResponse:
    storage = await _check_storage_health()
    health = HealthResponse(
        status="ok" if storage.connected else "error",
        storage=storage,
        timestamp=datetime.now(timezone.utc),
    )
    if not storage.connected:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content=health.model_dump(mode="json", exclude_none=True),
        )
    return health
