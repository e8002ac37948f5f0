from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any
from unittest.mock import AsyncMock

import httpx
import pytest
from asgi_lifespan import LifespanManager
from httpx import ASGITransport, AsyncClient
from starlette.requests import Request

from app import services_container
from app.core.config import Settings, get_settings
from app.main import create_app
from app.services.brainstorm import FALLBACK_PROMPTS, PromptCategory
from app.services.dashscope import DashScopeImageProvider
from app.storage import InMemoryImageRepository
from cli.local_provider import create_app as create_stub_app

BASE_ENV = {
    "DREAM_USE_IN_MEMORY_STORE": "true",
    "DREAM_POLL_INTERVAL_SECONDS": "0",
    "DREAM_DASHSCOPE_BASE_URL": "http://dashscope.stub",
    "DREAM_DASHSCOPE_API_KEY": "sk-dashscope-test",
    "DREAM_COMPLETION_API_KEY": "sk-completion-test",
    "DREAM_LOG_JSON": "false",
}


@asynccontextmanager
async def _api_client(
    monkeypatch: pytest.MonkeyPatch,
    completion_client: Any,
    *,
    raise_app_exceptions: bool = True,
    **env: str,
) -> AsyncIterator[AsyncClient]:
    for key, value in {**BASE_ENV, **env}.items():
        monkeypatch.setenv(key, value)
    get_settings.cache_clear()  # type: ignore[attr-defined]

    stub_app = create_stub_app(checks_until_done=2)

    def _provider_factory(settings: Settings) -> DashScopeImageProvider:
        client = httpx.AsyncClient(transport=ASGITransport(app=stub_app))
        return DashScopeImageProvider(settings, client=client)

    monkeypatch.setattr(services_container, "configure_logging", lambda settings: None)
    monkeypatch.setattr(services_container, "DashScopeImageProvider", _provider_factory)
    monkeypatch.setattr(services_container, "build_completion_client", lambda settings: completion_client)

    app = create_app()

    async with LifespanManager(app):
        transport = ASGITransport(app=app, raise_app_exceptions=raise_app_exceptions)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            yield client

    get_settings.cache_clear()  # type: ignore[attr-defined]


@pytest.fixture
async def test_app(monkeypatch: pytest.MonkeyPatch, completion_client: Any) -> AsyncIterator[AsyncClient]:
    async with _api_client(monkeypatch, completion_client) as client:
        yield client


@pytest.mark.asyncio
async def test_create_image_returns_generated_images(test_app: AsyncClient) -> None:
    response = await test_app.post(
        "/api/images",
        json={"prompt": "misty lake at dawn", "aspectRatio": "16:9", "userId": "alice"},
    )

    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    data = body["data"]
    assert data["prompt"] == "misty lake at dawn"
    assert data["optimizedPrompt"] == "A vivid, detailed scene"
    assert data["boardName"] == "MISTY LAKE"
    assert len(data["images"]) == 4
    assert all(url.startswith("https://stub.local/") for url in data["images"])

    stored = await test_app.get(f"/api/images/{data['id']}")
    assert stored.status_code == 200
    record = stored.json()["data"]
    assert record["userId"] == "alice"
    assert record["aspectRatio"] == "16:9"
    assert record["imageUrls"] == data["images"]
    assert record["metadata"] == {"width": 1280, "height": 720, "format": "png"}


@pytest.mark.asyncio
async def test_list_user_images_newest_first(test_app: AsyncClient) -> None:
    first = await test_app.post("/api/images", json={"prompt": "first", "userId": "bob"})
    second = await test_app.post("/api/images", json={"prompt": "second", "userId": "bob"})
    await test_app.post("/api/images", json={"prompt": "elsewhere"})

    response = await test_app.get("/api/images/user/bob")

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["count"] == 2
    assert [item["id"] for item in body["data"]] == [second.json()["data"]["id"], first.json()["data"]["id"]]

    anonymous = await test_app.get("/api/images/user/anonymous", params={"limit": 1})
    assert anonymous.json()["count"] == 1


@pytest.mark.asyncio
async def test_get_unknown_image_returns_404(test_app: AsyncClient) -> None:
    response = await test_app.get("/api/images/does-not-exist")

    assert response.status_code == 404
    assert response.json() == {"success": False, "message": "Image not found", "error": None}


@pytest.mark.asyncio
async def test_create_image_requires_prompt(test_app: AsyncClient) -> None:
    response = await test_app.post("/api/images", json={"aspectRatio": "1:1"})

    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert body["message"] == "Missing required fields: prompt"
    assert body["error"] == "ValidationError"


@pytest.mark.asyncio
@pytest.mark.parametrize("payload", [{"prompt": "   "}, {"prompt": "cat", "aspectRatio": "2:1"}])
async def test_create_image_rejects_invalid_input(test_app: AsyncClient, payload: dict) -> None:
    response = await test_app.post("/api/images", json=payload)

    assert response.status_code == 400
    assert response.json()["error"] == "ValidationError"


@pytest.mark.asyncio
async def test_provider_failure_maps_to_bad_gateway(test_app: AsyncClient, completion_client: Any) -> None:
    completion_client.completions.chunks = ["please fail this one"]

    response = await test_app.post("/api/images", json={"prompt": "anything", "userId": "carol"})

    assert response.status_code == 502
    assert response.json() == {
        "success": False,
        "message": "Image generation failed",
        "error": "TaskFailedError",
    }
    listed = await test_app.get("/api/images/user/carol")
    assert listed.json()["count"] == 0


@pytest.mark.asyncio
async def test_empty_result_maps_to_bad_gateway(test_app: AsyncClient, completion_client: Any) -> None:
    completion_client.completions.chunks = ["an empty canvas"]

    response = await test_app.post("/api/images", json={"prompt": "anything"})

    assert response.status_code == 502
    assert response.json()["error"] == "EmptyResultError"


@pytest.mark.asyncio
async def test_polling_timeout_maps_to_gateway_timeout(
    monkeypatch: pytest.MonkeyPatch, completion_client: Any
) -> None:
    async with _api_client(monkeypatch, completion_client, DREAM_POLL_MAX_ATTEMPTS="1") as client:
        response = await client.post("/api/images", json={"prompt": "slow"})

    assert response.status_code == 504
    assert response.json()["error"] == "TaskTimeoutError"


@pytest.mark.asyncio
async def test_fallback_images_when_enabled(monkeypatch: pytest.MonkeyPatch, completion_client: Any) -> None:
    completion_client.completions.chunks = ["please fail"]

    async with _api_client(monkeypatch, completion_client, DREAM_USE_FALLBACK_IMAGES="true") as client:
        response = await client.post("/api/images", json={"prompt": "anything"})

    assert response.status_code == 201
    images = response.json()["data"]["images"]
    assert len(images) == 4
    assert all(url.startswith("https://picsum.photos/") for url in images)


@pytest.mark.asyncio
async def test_optimizer_failure_still_generates(test_app: AsyncClient, completion_client: Any) -> None:
    from openai import OpenAIError

    completion_client.completions.error = OpenAIError("quota")

    response = await test_app.post("/api/images", json={"prompt": "red fox"})

    assert response.status_code == 201
    assert response.json()["data"]["optimizedPrompt"].startswith("High quality image: red fox")


@pytest.mark.asyncio
async def test_brainstorm_categories(test_app: AsyncClient) -> None:
    response = await test_app.get("/api/brainstorm/categories")

    assert response.status_code == 200
    data = response.json()["data"]
    assert [item["id"] for item in data] == [category.value for category in PromptCategory]
    assert data[-1] == {"id": "scifi", "name": "scifi", "displayName": "Sci-fi"}


@pytest.mark.asyncio
async def test_brainstorm_returns_model_prompts(test_app: AsyncClient) -> None:
    response = await test_app.get("/api/brainstorm/landscapes", params={"count": 2})

    assert response.status_code == 200
    assert response.json()["data"] == [
        {"description": "A quiet harbour at dawn. Soft pastel light", "previewPrompt": "A quiet harbour at dawn"}
    ]


@pytest.mark.asyncio
async def test_brainstorm_falls_back_when_model_output_is_unusable(
    test_app: AsyncClient, completion_client: Any
) -> None:
    completion_client.completions.content = "sorry"

    response = await test_app.get("/api/brainstorm/animals")

    descriptions = [item["description"] for item in response.json()["data"]]
    assert descriptions == FALLBACK_PROMPTS[PromptCategory.ANIMALS][:4]


@pytest.mark.asyncio
async def test_brainstorm_rejects_unknown_category(test_app: AsyncClient) -> None:
    response = await test_app.get("/api/brainstorm/cars")

    assert response.status_code == 400
    assert response.json()["message"] == "Invalid category: cars"


@pytest.mark.asyncio
@pytest.mark.parametrize("count", ["0", "11", "many"])
async def test_brainstorm_rejects_out_of_range_count(test_app: AsyncClient, count: str) -> None:
    response = await test_app.get("/api/brainstorm/fantasy", params={"count": count})

    assert response.status_code == 400
    assert response.json()["success"] is False


@pytest.mark.asyncio
async def test_healthcheck_reports_memory_store(test_app: AsyncClient) -> None:
    response = await test_app.get("/healthz")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "ok"
    assert body["storage"] == {"backend": "memory", "connected": True}


@pytest.mark.asyncio
async def test_help_lists_endpoints(test_app: AsyncClient) -> None:
    response = await test_app.get("/api/help")

    assert response.status_code == 200
    assert "POST /api/images" in response.json()["endpoints"]


@pytest.mark.asyncio
async def test_unknown_path_uses_error_envelope(test_app: AsyncClient) -> None:
    response = await test_app.get("/api/nothing-here")

    assert response.status_code == 404
    assert response.json() == {"success": False, "message": "Path not found: /api/nothing-here", "error": None}


@pytest.mark.asyncio
async def test_unexpected_errors_use_error_envelope(monkeypatch: pytest.MonkeyPatch, completion_client: Any) -> None:
    monkeypatch.setattr(InMemoryImageRepository, "list_by_user", AsyncMock(side_effect=ConnectionError("redis down")))
    monkeypatch.setattr(InMemoryImageRepository, "get", AsyncMock(side_effect=ConnectionError("redis down")))

    async with _api_client(monkeypatch, completion_client, raise_app_exceptions=False) as client:
        listed = await client.get("/api/images/user/alice")
        single = await client.get("/api/images/some-id")

    expected = {"success": False, "message": "Internal server error", "error": "ConnectionError"}
    assert listed.status_code == 500
    assert listed.json() == expected
    assert single.status_code == 500
    assert single.json() == expected


@pytest.mark.asyncio
async def test_client_disconnect_cancels_generation(monkeypatch: pytest.MonkeyPatch, test_app: AsyncClient) -> None:
    async def _disconnected(self: Request) -> bool:
        return True

    with monkeypatch.context() as patch:
        patch.setattr(Request, "is_disconnected", _disconnected)
        response = await test_app.post("/api/images", json={"prompt": "never mind", "userId": "dave"})

    assert response.status_code == 503
    assert response.json() == {
        "success": False,
        "message": "Image generation failed",
        "error": "TaskCancelledError",
    }
    listed = await test_app.get("/api/images/user/dave")
    assert listed.json()["count"] == 0
