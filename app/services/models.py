from __future__ import annotations

from datetime import datetime
from typing import Dict, Generic, Iterable, List, Literal, Optional, Tuple, TypeVar

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel

from app.storage import ImageMetadata, ImageRecord

ASPECT_RATIO_SIZES: Dict[str, Tuple[int, int]] = {
    "1:1": (1024, 1024),
    "16:9": (1280, 720),
    "9:16": (720, 1280),
    "4:3": (1024, 768),
    "3:4": (768, 1024),
}
DEFAULT_ASPECT_RATIO = "1:1"

T = TypeVar("T")


def size_for_aspect_ratio(aspect_ratio: str) -> str:
    width, height = ASPECT_RATIO_SIZES[aspect_ratio]
    return f"{width}*{height}"


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class GenerateImageRequest(CamelModel):
    prompt: str
    aspect_ratio: Optional[str] = None
    user_id: Optional[str] = None
    board_name: Optional[str] = None

    @field_validator("prompt")
    @classmethod
    def _require_prompt(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("prompt must not be empty")
        return value.strip()

    @field_validator("aspect_ratio")
    @classmethod
    def _known_aspect_ratio(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and value not in ASPECT_RATIO_SIZES:
            supported = ", ".join(ASPECT_RATIO_SIZES)
            raise ValueError(f"unsupported aspect ratio {value!r}, expected one of {supported}")
        return value


class GeneratedImage(CamelModel):
    id: str
    prompt: str
    optimized_prompt: str
    images: List[str]
    board_name: str


class ImageView(CamelModel):
    id: str
    user_id: str
    prompt: str
    optimized_prompt: str
    image_urls: List[str]
    board_name: str
    aspect_ratio: str
    metadata: ImageMetadata
    created_at: datetime

    @classmethod
    def from_record(cls, record: ImageRecord) -> "ImageView":
        return cls.model_validate(record.model_dump())


class BrainstormPrompt(CamelModel):
    description: str
    preview_prompt: Optional[str] = None


class CategoryView(CamelModel):
    id: str
    name: str
    display_name: str


class ApiResponse(BaseModel, Generic[T]):
    success: bool = True
    data: T


class ListResponse(BaseModel, Generic[T]):
    success: bool = True
    count: int
    data: List[T]


class ErrorResponse(BaseModel):
    success: Literal[False] = False
    message: str
    error: Optional[str] = None


class HelpResponse(BaseModel):
    endpoints: Iterable[str]
    description: Optional[str] = None


class StorageHealth(BaseModel):
    backend: Literal["redis", "memory"]
    connected: bool
    message: Optional[str] = None


class HealthResponse(BaseModel):
    status: Literal["ok", "error"]
    storage: StorageHealth
    timestamp: datetime
