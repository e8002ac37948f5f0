"""Local stand-in for the DashScope image synthesis API, for development and manual testing."""
from __future__ import annotations

import logging
import signal
import uuid
from contextlib import asynccontextmanager
from typing import Any, Dict

from fastapi import FastAPI, Header, HTTPException
from fastapi.responses import JSONResponse

logger = logging.getLogger("dream-machine.local-provider")


class _State:
    def __init__(self) -> None:
        self.tasks: dict[str, Dict[str, Any]] = {}


def create_app(*, checks_until_done: int = 2) -> FastAPI:
    """Build the stub app.

    A task answers ``PENDING`` on its first check and ``RUNNING`` until
    ``checks_until_done`` checks have been made, then ``SUCCEEDED``. Prompts
    containing ``fail`` end in ``FAILED`` and prompts containing ``empty``
    succeed without results.
    """

    state = _State()

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        logger.info("Starting local DashScope stub")
        try:
            yield
        finally:
            state.tasks.clear()
            logger.info("Stopping local DashScope stub")

    app = FastAPI(title="DashScope Stub", version="0.1.0", lifespan=lifespan)

    def _require_auth(authorization: str | None) -> None:
        if not authorization or not authorization.removeprefix("Bearer").strip():
            raise HTTPException(status_code=401, detail="Invalid API key")

    @app.post("/services/aigc/text2image/image-synthesis")
    async def create_task(
        payload: Dict[str, Any],
        authorization: str | None = Header(None),
        x_dashscope_async: str | None = Header(None),
    ) -> JSONResponse:
        _require_auth(authorization)
        if x_dashscope_async != "enable":
            raise HTTPException(status_code=403, detail="Synchronous calls are not supported")
        prompt = (payload.get("input") or {}).get("prompt")
        if not prompt:
            raise HTTPException(status_code=400, detail="input.prompt is required")
        task_id = uuid.uuid4().hex
        count = int((payload.get("parameters") or {}).get("n", 1))
        state.tasks[task_id] = {"prompt": prompt, "count": count, "checks": 0}
        logger.info("Accepted task", extra={"task_id": task_id})
        return JSONResponse({"output": {"task_id": task_id, "task_status": "PENDING"}, "request_id": uuid.uuid4().hex})

    @app.get("/tasks/{task_id}")
    async def get_task(task_id: str, authorization: str | None = Header(None)) -> JSONResponse:
        _require_auth(authorization)
        task = state.tasks.get(task_id)
        if task is None:
            return JSONResponse({"output": {"task_id": task_id, "task_status": "UNKNOWN"}})
        task["checks"] += 1
        output: Dict[str, Any] = {"task_id": task_id}
        if task["checks"] == 1 and checks_until_done > 1:
            output["task_status"] = "PENDING"
        elif task["checks"] < checks_until_done:
            output["task_status"] = "RUNNING"
        elif "fail" in task["prompt"]:
            output.update(task_status="FAILED", code="DataInspectionFailed", message="Input data may contain inappropriate content.")
        elif "empty" in task["prompt"]:
            output.update(task_status="SUCCEEDED", results=[])
        else:
            output.update(
                task_status="SUCCEEDED",
                results=[
                    {"url": f"https://stub.local/{task_id}/{index}.png"} for index in range(task["count"])
                ],
            )
        return JSONResponse({"output": output})

    return app


def run(host: str = "127.0.0.1", port: int = 9000, checks_until_done: int = 2) -> None:
    """Entrypoint to run the DashScope stub with Uvicorn."""
    import uvicorn

    config = uvicorn.Config(create_app(checks_until_done=checks_until_done), host=host, port=port, log_level="info")
    server = uvicorn.Server(config)

    def _handle_signal(*_: Any) -> None:
        server.should_exit = True

    signal.signal(signal.SIGTERM, _handle_signal)
    signal.signal(signal.SIGINT, _handle_signal)

    logger.info("Local DashScope stub listening", extra={"host": host, "port": port})
    try:
        server.run()
    except Exception:  # pragma: no cover - defensive logging hook
        logger.exception("Local DashScope stub crashed")
        raise


if __name__ == "__main__":
    run()
