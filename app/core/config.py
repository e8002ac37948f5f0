from __future__ import annotations

from functools import lru_cache
from typing import Any, List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    model_config = SettingsConfigDict(env_prefix="dream_", case_sensitive=False)

    app_name: str = "dream-machine"
    version: str = "0.1.0"
    api_prefix: str = "/api"

    dashscope_base_url: str = "https://dashscope.aliyuncs.com/api/v1"
    dashscope_api_key: str = ""
    dashscope_image_endpoint: str = "/services/aigc/text2image/image-synthesis"
    dashscope_task_endpoint: str = "/tasks"
    image_model: str = "wanx2.1-t2i-turbo"
    image_count: int = 4
    image_prompt_extend: bool = True
    image_watermark: bool = False

    completion_base_url: str = "https://dashscope.aliyuncs.com/compatible-mode/v1"
    completion_api_key: str = ""
    completion_model: str = "qwq-32b"

    poll_interval_seconds: float = 2.0
    poll_max_attempts: int = 30
    submit_max_attempts: int = 1
    submit_retry_delay_seconds: float = 1.0

    request_timeout_seconds: float = 30.0

    redis_url: str = "redis://localhost:6379/0"
    image_ttl_seconds: int = 30 * 24 * 60 * 60
    use_in_memory_store: bool = False

    use_fallback_images: bool = False
    fallback_image_urls: List[str] = [
        "https://picsum.photos/seed/fallback1/512/512",
        "https://picsum.photos/seed/fallback2/512/512",
        "https://picsum.photos/seed/fallback3/512/512",
        "https://picsum.photos/seed/fallback4/512/512",
    ]

    log_level: str = "INFO"
    log_json: bool = True
    access_log_excluded_paths: tuple[str, ...] = ("/healthz",)

    cli_default_host: str = "0.0.0.0"
    cli_default_port: int = 5001
    cli_reload: bool = False

    def dashscope_url(self, endpoint: str) -> str:
        base = self.dashscope_base_url.rstrip("/")
        path = endpoint if endpoint.startswith("/") else f"/{endpoint}"
        return f"{base}{path}"


@lru_cache
def get_settings() -> Settings:
    """Return cached settings instance."""

    return Settings()  # type: ignore[call-arg]


def settings_from_overrides(**overrides: Any) -> Settings:
    """Utility used in tests to build a settings object from overrides."""

    return Settings(**overrides)


def validate_settings(settings: Settings) -> list[str]:
    """Return human readable warnings about suspicious configuration."""

    warnings: list[str] = []
    for field in ("dashscope_api_key", "completion_api_key"):
        value = getattr(settings, field)
        if not value:
            warnings.append(f"{field} is not set, calls to the provider will be rejected")
        elif not value.startswith("sk-"):
            warnings.append(f"{field} does not look like a DashScope key (expected 'sk-' prefix)")
    if settings.use_fallback_images:
        warnings.append("use_fallback_images is enabled, provider failures will return placeholder images")
    return warnings
