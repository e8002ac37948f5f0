from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional

import httpx

from app.core.config import Settings
from task_poller import (
    ProviderUnavailableError,
    StatusSnapshot,
    SubmissionError,
    TaskProvider,
    TaskRequest,
    TaskStatus,
)

logger = logging.getLogger(__name__)

DEFAULT_IMAGE_SIZE = "1024*1024"


def _is_retryable_status(status_code: int) -> bool:
    return status_code == 429 or status_code >= 500


class DashScopeImageProvider(TaskProvider):
    """Client for the DashScope asynchronous text-to-image API."""

    status_aliases: Mapping[str, TaskStatus] = {
        "SUSPENDED": TaskStatus.RUNNING,
        "CANCELED": TaskStatus.FAILED,
    }

    def __init__(self, settings: Settings, client: Optional[httpx.AsyncClient] = None) -> None:
        self._settings = settings
        self._client = client or httpx.AsyncClient(timeout=settings.request_timeout_seconds)

    def _headers(self, *, asynchronous: bool = False) -> Dict[str, str]:
        headers = {
            "Authorization": f"Bearer {self._settings.dashscope_api_key}",
            "Content-Type": "application/json",
        }
        if asynchronous:
            headers["X-DashScope-Async"] = "enable"
        return headers

    def build_payload(self, request: TaskRequest) -> Dict[str, Any]:
        parameters: Dict[str, Any] = {
            "size": request.parameters.get("size", DEFAULT_IMAGE_SIZE),
            "n": request.count,
            "prompt_extend": self._settings.image_prompt_extend,
            "watermark": self._settings.image_watermark,
        }
        extra = {key: value for key, value in request.parameters.items() if key != "size"}
        parameters.update(extra)
        return {
            "model": self._settings.image_model,
            "input": {"prompt": request.prompt},
            "parameters": parameters,
        }

    async def create_task(self, request: TaskRequest) -> str:
        url = self._settings.dashscope_url(self._settings.dashscope_image_endpoint)
        payload = self.build_payload(request)
        logger.debug("Creating image synthesis task", extra={"url": url, "payload": payload})
        try:
            response = await self._client.post(url, json=payload, headers=self._headers(asynchronous=True))
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            response_text = exc.response.text
            status_code = exc.response.status_code
            logger.error(
                "DashScope rejected task creation",
                extra={"url": url, "status_code": status_code, "response": response_text},
            )
            raise SubmissionError(
                f"DashScope responded with {status_code}: {response_text}",
                status_code=status_code,
                response_text=response_text,
                retryable=_is_retryable_status(status_code),
                original=exc,
            ) from exc
        except httpx.RequestError as exc:
            logger.error("DashScope unreachable", extra={"url": url, "error": str(exc)})
            raise SubmissionError(
                f"DashScope at {url} is unreachable: {exc}", retryable=True, original=exc
            ) from exc

        try:
            body = response.json()
        except ValueError as exc:
            raise SubmissionError(
                "DashScope returned a non-JSON task creation response",
                status_code=response.status_code,
                response_text=response.text,
                original=exc,
            ) from exc

        output = body.get("output") if isinstance(body, dict) else None
        task_id = output.get("task_id") if isinstance(output, dict) else None
        if not task_id:
            logger.error("DashScope did not return a task id", extra={"url": url, "response": body})
            raise SubmissionError(
                "DashScope did not return a task id",
                status_code=response.status_code,
                response_text=response.text,
            )
        return str(task_id)

    async def fetch_status(self, task_id: str) -> StatusSnapshot:
        endpoint = self._settings.dashscope_task_endpoint.rstrip("/")
        url = self._settings.dashscope_url(f"{endpoint}/{task_id}")
        try:
            response = await self._client.get(url, headers=self._headers())
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPStatusError as exc:
            status_code = exc.response.status_code
            logger.error(
                "DashScope status check failed",
                extra={"url": url, "task_id": task_id, "status_code": status_code, "response": exc.response.text},
            )
            raise ProviderUnavailableError(
                f"DashScope status check responded with {status_code}",
                task_id=task_id,
                url=url,
                original=exc,
            ) from exc
        except httpx.RequestError as exc:
            logger.error("DashScope unreachable", extra={"url": url, "task_id": task_id, "error": str(exc)})
            raise ProviderUnavailableError(
                f"DashScope at {url} is unreachable: {exc}", task_id=task_id, url=url, original=exc
            ) from exc
        except ValueError as exc:
            raise ProviderUnavailableError(
                "DashScope returned a non-JSON status response", task_id=task_id, url=url, original=exc
            ) from exc

        output = body.get("output") if isinstance(body, dict) else None
        if not isinstance(output, dict):
            raise ProviderUnavailableError(
                "DashScope status response has no output section", task_id=task_id, url=url
            )

        results = output.get("results") or []
        urls = [item["url"] for item in results if isinstance(item, dict) and item.get("url")]
        detail = {key: value for key, value in output.items() if key not in {"task_id", "task_status", "results"}}
        return StatusSnapshot(status_code=str(output.get("task_status") or ""), results=urls, detail=detail)

    async def aclose(self) -> None:
        await self._client.aclose()
