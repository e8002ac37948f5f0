from __future__ import annotations

import logging
from typing import Optional

from openai import AsyncOpenAI

from app.core.config import Settings, get_settings, validate_settings
from app.core.logging import configure_logging
from app.services.brainstorm import BrainstormService
from app.services.dashscope import DashScopeImageProvider
from app.services.images import ImageService
from app.services.prompts import PromptOptimizer, build_completion_client
from app.storage import ImageRepository, InMemoryImageRepository, RedisStorageProvider, RedisStorageSettings
from task_poller import AsyncTaskPoller, FixedBackoff, RetryPolicy, TaskProvider

logger = logging.getLogger(__name__)

_settings: Optional[Settings] = None
_image_service: Optional[ImageService] = None
_brainstorm_service: Optional[BrainstormService] = None
_image_provider: Optional[TaskProvider] = None
_completion_client: Optional[AsyncOpenAI] = None
_storage_provider: Optional[RedisStorageProvider] = None
_repository: Optional[ImageRepository] = None


def build_poller(settings: Settings, provider: TaskProvider) -> AsyncTaskPoller:
    return AsyncTaskPoller(
        provider,
        poll_interval=settings.poll_interval_seconds,
        max_attempts=settings.poll_max_attempts,
        submit_policy=RetryPolicy(
            max_attempts=settings.submit_max_attempts,
            backoff=FixedBackoff(settings.submit_retry_delay_seconds),
        ),
        logger=logging.getLogger("app.images.poller"),
    )


async def init_services(
    settings: Optional[Settings] = None,
    repository: Optional[ImageRepository] = None,
    provider: Optional[TaskProvider] = None,
    completion_client: Optional[AsyncOpenAI] = None,
) -> None:
    global _settings, _image_service, _brainstorm_service, _image_provider
    global _completion_client, _storage_provider, _repository

    _settings = settings or get_settings()
    configure_logging(_settings)
    for warning in validate_settings(_settings):
        logger.warning("Configuration warning: %s", warning)

    if repository is None and _settings.use_in_memory_store:
        repository = InMemoryImageRepository()
        logger.info("Using in-memory image store")
        _storage_provider = None
    elif repository is None:
        _storage_provider = RedisStorageProvider(
            RedisStorageSettings(url=_settings.redis_url, ttl_seconds=_settings.image_ttl_seconds)
        )
        try:
            repository = await _storage_provider.get_repository()
        except Exception:
            logger.exception("Failed to connect to Redis during startup")
            _storage_provider = None
            raise
        else:
            logger.info("Successfully connected to Redis image store")
    else:
        _storage_provider = None

    _repository = repository
    _image_provider = provider or DashScopeImageProvider(_settings)
    _completion_client = completion_client or build_completion_client(_settings)
    _brainstorm_service = BrainstormService(_completion_client, model=_settings.completion_model)
    _image_service = ImageService(
        PromptOptimizer(_completion_client, model=_settings.completion_model),
        build_poller(_settings, _image_provider),
        repository,
        image_count=_settings.image_count,
        fallback_image_urls=_settings.fallback_image_urls if _settings.use_fallback_images else None,
    )


async def shutdown_services() -> None:
    global _image_service, _brainstorm_service, _image_provider
    global _completion_client, _storage_provider, _repository

    aclose = getattr(_image_provider, "aclose", None)
    if aclose is not None:
        await aclose()
    if _completion_client:
        await _completion_client.close()
    if _storage_provider:
        await _storage_provider.close()
    _image_service = None
    _brainstorm_service = None
    _image_provider = None
    _completion_client = None
    _storage_provider = None
    _repository = None


def get_image_service_instance() -> ImageService:
    if not _image_service:
        raise RuntimeError("Image service not initialised")
    return _image_service


def get_brainstorm_service_instance() -> BrainstormService:
    if not _brainstorm_service:
        raise RuntimeError("Brainstorm service not initialised")
    return _brainstorm_service


def get_storage_provider_instance() -> Optional[RedisStorageProvider]:
    return _storage_provider


def get_repository_instance() -> Optional[ImageRepository]:
    return _repository
