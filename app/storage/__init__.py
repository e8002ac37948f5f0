"""Storage for generated image records."""

from .models import ImageMetadata, ImageRecord
from .redis import RedisStorageProvider, RedisStorageSettings
from .repository import ImageRepository, InMemoryImageRepository, RedisImageRepository

__all__ = [
    "ImageMetadata",
    "ImageRecord",
    "ImageRepository",
    "InMemoryImageRepository",
    "RedisImageRepository",
    "RedisStorageProvider",
    "RedisStorageSettings",
]
