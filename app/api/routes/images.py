from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import APIRouter, Depends, Query, Request, status

from app.services.images import ImageService
from app.services.models import ApiResponse, GeneratedImage, GenerateImageRequest, ImageView, ListResponse

from ..dependencies import get_image_service
from ..errors import AppError

logger = logging.getLogger(__name__)

router = APIRouter(tags=["images"], prefix="/images")

DISCONNECT_CHECK_INTERVAL_SECONDS = 1.0


@asynccontextmanager
async def cancel_on_disconnect(request: Request) -> AsyncIterator[asyncio.Event]:
    """Yield an event that is set once the client goes away."""

    cancelled = asyncio.Event()

    async def _watch() -> None:
        while not cancelled.is_set():
            if await request.is_disconnected():
                logger.info("Client disconnected, cancelling image generation")
                cancelled.set()
                return
            await asyncio.sleep(DISCONNECT_CHECK_INTERVAL_SECONDS)

    watcher = asyncio.create_task(_watch())
    try:
        yield cancelled
    finally:
        watcher.cancel()
        await asyncio.gather(watcher, return_exceptions=True)


@router.post("", response_model=ApiResponse[GeneratedImage], status_code=status.HTTP_201_CREATED)
async def create_image(
    body: GenerateImageRequest,
    request: Request,
    image_service: ImageService = Depends(get_image_service),
) -> ApiResponse[GeneratedImage]:
    async with cancel_on_disconnect(request) as cancelled:
        record = await image_service.generate(body, cancel_event=cancelled)
    return ApiResponse[GeneratedImage](
        data=GeneratedImage(
            id=record.id,
            prompt=record.prompt,
            optimized_prompt=record.optimized_prompt,
            images=record.image_urls,
            board_name=record.board_name,
        )
    )


@router.get("/user/{user_id}", response_model=ListResponse[ImageView])
async def list_user_images(
    user_id: str,
    limit: int = Query(20, ge=1, le=100),
    image_service: ImageService = Depends(get_image_service),
) -> ListResponse[ImageView]:
    records = await image_service.list_user_images(user_id, limit=limit)
    images = [ImageView.from_record(record) for record in records]
    return ListResponse[ImageView](count=len(images), data=images)


@router.get("/{image_id}", response_model=ApiResponse[ImageView])
async def get_image(image_id: str, image_service: ImageService = Depends(get_image_service)) -> ApiResponse[ImageView]:
    record = await image_service.get_image(image_id)
    if not record:
        raise AppError("Image not found", status.HTTP_404_NOT_FOUND)
    return ApiResponse[ImageView](data=ImageView.from_record(record))
