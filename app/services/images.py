from __future__ import annotations

import asyncio
import logging
from typing import List, Optional, Sequence

from app.storage import ImageMetadata, ImageRecord, ImageRepository
from task_poller import AsyncTaskPoller, PollerError, TaskCancelledError, TaskRequest

from .models import ASPECT_RATIO_SIZES, DEFAULT_ASPECT_RATIO, GenerateImageRequest, size_for_aspect_ratio
from .prompts import PromptOptimizer

logger = logging.getLogger(__name__)

ANONYMOUS_USER = "anonymous"


def default_board_name(prompt: str) -> str:
    return " ".join(prompt.split()[:2]).upper() or "New Board"


class ImageService:
    """Application service turning a user prompt into generated images."""

    def __init__(
        self,
        optimizer: PromptOptimizer,
        poller: AsyncTaskPoller,
        repository: ImageRepository,
        *,
        image_count: int = 4,
        fallback_image_urls: Optional[Sequence[str]] = None,
    ) -> None:
        self._optimizer = optimizer
        self._poller = poller
        self._repository = repository
        self._image_count = image_count
        self._fallback_image_urls = list(fallback_image_urls) if fallback_image_urls else None

    async def generate(
        self, request: GenerateImageRequest, *, cancel_event: Optional[asyncio.Event] = None
    ) -> ImageRecord:
        aspect_ratio = request.aspect_ratio or DEFAULT_ASPECT_RATIO
        logger.info("Image generation requested", extra={"user_id": request.user_id, "aspect_ratio": aspect_ratio})

        optimized_prompt = await self._optimizer.optimize(request.prompt)
        task_request = TaskRequest(
            prompt=optimized_prompt,
            count=self._image_count,
            parameters={"size": size_for_aspect_ratio(aspect_ratio)},
        )
        images = await self._synthesize(task_request, cancel_event)

        width, height = ASPECT_RATIO_SIZES[aspect_ratio]
        record = ImageRecord(
            user_id=request.user_id or ANONYMOUS_USER,
            prompt=request.prompt,
            optimized_prompt=optimized_prompt,
            image_urls=images,
            board_name=request.board_name or default_board_name(request.prompt),
            aspect_ratio=aspect_ratio,
            metadata=ImageMetadata(width=width, height=height, format="png"),
        )
        try:
            await self._repository.save(record)
        except Exception:
            logger.exception("Failed to store generated images", extra={"image_id": record.id})
        else:
            logger.info("Generated images stored", extra={"image_id": record.id, "images": len(images)})
        return record

    async def _synthesize(self, task_request: TaskRequest, cancel_event: Optional[asyncio.Event]) -> List[str]:
        try:
            return await self._poller.run(task_request, cancel_event=cancel_event)
        except PollerError as exc:
            if self._fallback_image_urls is None or isinstance(exc, TaskCancelledError):
                raise
            logger.warning(
                "Image synthesis failed, returning placeholder images",
                extra={"error": str(exc), "error_type": type(exc).__name__},
            )
            return list(self._fallback_image_urls)

    async def get_image(self, image_id: str) -> ImageRecord | None:
        return await self._repository.get(image_id)

    async def list_user_images(self, user_id: str, *, limit: int = 20) -> List[ImageRecord]:
        return await self._repository.list_by_user(user_id, limit=limit)
