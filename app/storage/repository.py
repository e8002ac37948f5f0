"""Image record repositories."""

from __future__ import annotations

import abc
import inspect
from collections import defaultdict
from typing import Awaitable, Dict, List, TypeVar, cast

from redis.asyncio import Redis

from .models import ImageRecord


class ImageRepository(abc.ABC):
    """Abstract image repository interface."""

    @abc.abstractmethod
    async def save(self, record: ImageRecord) -> None: ...

    @abc.abstractmethod
    async def get(self, image_id: str) -> ImageRecord | None: ...

    @abc.abstractmethod
    async def list_by_user(self, user_id: str, *, limit: int = 20) -> List[ImageRecord]: ...


_T = TypeVar("_T")


class RedisImageRepository(ImageRepository):
    """Image repository backed by Redis.

    Each record is stored as JSON under ``image:<id>`` with a TTL, and a sorted
    set per user indexes record ids by creation time.
    """

    def __init__(self, client: Redis, *, ttl_seconds: int) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be a positive integer")
        self._client = client
        self._ttl_seconds = int(ttl_seconds)

    async def _execute(self, command: Awaitable[_T] | _T) -> _T:
        if inspect.isawaitable(command):
            return await cast(Awaitable[_T], command)
        return cast(_T, command)

    async def save(self, record: ImageRecord) -> None:
        user_index = self._user_index(record.user_id)
        async with self._client.pipeline(transaction=True) as pipe:
            pipe.set(self._image_key(record.id), record.model_dump_json(), ex=self._ttl_seconds)
            pipe.zadd(user_index, {record.id: record.created_at.timestamp()})
            pipe.expire(user_index, self._ttl_seconds)
            await pipe.execute()

    async def get(self, image_id: str) -> ImageRecord | None:
        raw = await self._execute(self._client.get(self._image_key(image_id)))
        if not raw:
            return None
        return ImageRecord.model_validate_json(raw)

    async def list_by_user(self, user_id: str, *, limit: int = 20) -> List[ImageRecord]:
        if limit <= 0:
            return []
        user_index = self._user_index(user_id)
        ids = await self._execute(self._client.zrevrange(user_index, 0, limit - 1))
        ids = [value.decode() if isinstance(value, bytes) else str(value) for value in ids]
        if not ids:
            return []
        raw_values = await self._execute(self._client.mget([self._image_key(image_id) for image_id in ids]))
        records: List[ImageRecord] = []
        expired: List[str] = []
        for image_id, raw in zip(ids, raw_values):
            if raw:
                records.append(ImageRecord.model_validate_json(raw))
            else:
                expired.append(image_id)
        if expired:
            await self._execute(self._client.zrem(user_index, *expired))
        return records

    @staticmethod
    def _image_key(image_id: str) -> str:
        return f"image:{image_id}"

    @staticmethod
    def _user_index(user_id: str) -> str:
        return f"index:user:{user_id}:images"


class InMemoryImageRepository(ImageRepository):
    """Process local repository used for development and tests."""

    def __init__(self) -> None:
        self._store: Dict[str, ImageRecord] = {}
        self._user_index: defaultdict[str, list[str]] = defaultdict(list)

    async def save(self, record: ImageRecord) -> None:
        if record.id not in self._store:
            self._user_index[record.user_id].append(record.id)
        self._store[record.id] = record

    async def get(self, image_id: str) -> ImageRecord | None:
        return self._store.get(image_id)

    async def list_by_user(self, user_id: str, *, limit: int = 20) -> List[ImageRecord]:
        records = [self._store[image_id] for image_id in self._user_index.get(user_id, [])]
        records.sort(key=lambda record: record.created_at, reverse=True)
        return records[: max(0, limit)]
