"""Redis connection helpers for the image repository."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from redis.asyncio import Redis

from .repository import RedisImageRepository

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class RedisStorageSettings:
    """Configuration required to build a Redis-backed repository."""

    url: str
    ttl_seconds: int
    decode_responses: bool = True


class RedisStorageProvider:
    """Manage the Redis client and expose a ready-to-use repository instance."""

    def __init__(self, settings: RedisStorageSettings) -> None:
        self._settings = settings
        self._client: Optional[Redis] = None
        self._repository: Optional[RedisImageRepository] = None

    @property
    def client(self) -> Optional[Redis]:
        return self._client

    async def get_repository(self) -> RedisImageRepository:
        """Create (or return) the Redis-backed repository."""

        if self._repository is None:
            client = Redis.from_url(self._settings.url, decode_responses=self._settings.decode_responses)
            try:
                await client.ping()
            except Exception:
                await client.aclose()
                raise
            self._client = client
            self._repository = RedisImageRepository(client, ttl_seconds=self._settings.ttl_seconds)
            logger.debug("Redis image repository ready", extra={"ttl_seconds": self._settings.ttl_seconds})
        return self._repository

    async def ping(self) -> None:
        await self.get_repository()
        if self._client:
            await self._client.ping()

    async def close(self) -> None:
        """Close the Redis client created by the provider."""

        if self._client:
            await self._client.aclose()
        self._client = None
        self._repository = None
