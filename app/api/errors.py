from __future__ import annotations

import logging
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.services.models import ErrorResponse
from task_poller import (
    PollerError,
    ProviderUnavailableError,
    SubmissionError,
    TaskCancelledError,
    TaskFailedError,
    TaskTimeoutError,
)

logger = logging.getLogger(__name__)


class AppError(Exception):
    """Request level error rendered with the standard error envelope."""

    def __init__(self, message: str, status_code: int, *, error: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.error = error


def _envelope(status_code: int, message: str, error: Optional[str] = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(message=message, error=error).model_dump(),
    )


def poller_error_status(exc: PollerError) -> int:
    if isinstance(exc, TaskTimeoutError):
        return status.HTTP_504_GATEWAY_TIMEOUT
    if isinstance(exc, (ProviderUnavailableError, TaskCancelledError)):
        return status.HTTP_503_SERVICE_UNAVAILABLE
    if isinstance(exc, (SubmissionError, TaskFailedError)):
        return status.HTTP_502_BAD_GATEWAY
    return status.HTTP_500_INTERNAL_SERVER_ERROR


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    logger.warning("Request failed", extra={"path": request.url.path, "status_code": exc.status_code, "error": exc.message})
    return _envelope(exc.status_code, exc.message, exc.error)


async def poller_error_handler(request: Request, exc: PollerError) -> JSONResponse:
    status_code = poller_error_status(exc)
    logger.error(
        "Image generation failed",
        extra={"path": request.url.path, "status_code": status_code, "error_type": type(exc).__name__, "error": str(exc)},
    )
    return _envelope(status_code, "Image generation failed", type(exc).__name__)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    missing = [str(error["loc"][-1]) for error in exc.errors() if error.get("type") == "missing"]
    if missing:
        message = f"Missing required fields: {', '.join(missing)}"
    else:
        message = "; ".join(str(error.get("msg")) for error in exc.errors()) or "Invalid request"
    return _envelope(status.HTTP_400_BAD_REQUEST, message, "ValidationError")


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if exc.status_code == status.HTTP_404_NOT_FOUND and exc.detail == "Not Found":
        message = f"Path not found: {request.url.path}"
    else:
        message = str(exc.detail)
    return _envelope(exc.status_code, message)


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error", extra={"path": request.url.path, "error_type": type(exc).__name__})
    return _envelope(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error", type(exc).__name__)


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, app_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(PollerError, poller_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, validation_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(StarletteHTTPException, http_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, unhandled_error_handler)
