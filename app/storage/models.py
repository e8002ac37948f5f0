"""Records persisted for generated images."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import List

from pydantic import BaseModel, Field, field_serializer


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return uuid.uuid4().hex


class ImageMetadata(BaseModel):
    width: int = 1024
    height: int = 1024
    format: str = "png"


class ImageRecord(BaseModel):
    """Serializable representation of one generation request and its images."""

    id: str = Field(default_factory=_new_id)
    user_id: str
    prompt: str
    optimized_prompt: str
    image_urls: List[str] = Field(default_factory=list)
    board_name: str = "New Board"
    aspect_ratio: str = "1:1"
    metadata: ImageMetadata = Field(default_factory=ImageMetadata)
    created_at: datetime = Field(default_factory=_utcnow)

    @field_serializer("created_at")
    def serialize_datetimes(self, value: datetime) -> str:
        return value.isoformat()
