from __future__ import annotations

import logging
import sys
from typing import Any, Dict, Iterable

from pythonjsonlogger.json import JsonFormatter

from .config import Settings

SENSITIVE_FIELDS = ("authorization", "api_key", "apikey", "dashscope_api_key", "completion_api_key")

QUIET_LOGGERS = ("httpx", "httpcore", "openai")


def mask_secret(value: str) -> str:
    """Keep the first five characters of a secret and hide the rest."""

    if not value:
        return ""
    if len(value) <= 5:
        return "*" * len(value)
    return value[:5] + "*" * min(10, len(value) - 5)


class ServiceJSONFormatter(JsonFormatter):
    """JSON formatter that tags every record with severity, logger and service name."""

    def __init__(self, *args: Any, service: str = "dream-machine", **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.service = service

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:  # noqa: D401 - documented in base
        super().add_fields(log_record, record, message_dict)
        log_record.setdefault("severity", record.levelname)
        log_record.setdefault("logger", record.name)
        log_record.setdefault("service", self.service)
        if not log_record.get("message"):
            log_record["message"] = record.getMessage()


class SecretMaskingFilter(logging.Filter):
    """Mask API keys and authorization headers passed through ``extra``."""

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: D401 - documented in base
        for key, value in list(record.__dict__.items()):
            if key.lower() in SENSITIVE_FIELDS and isinstance(value, str):
                setattr(record, key, mask_secret(value))
            elif key == "headers" and isinstance(value, dict):
                setattr(record, key, _mask_mapping(value))
        return True


def _mask_mapping(values: Dict[str, Any]) -> Dict[str, Any]:
    return {
        key: mask_secret(value) if key.lower() in SENSITIVE_FIELDS and isinstance(value, str) else value
        for key, value in values.items()
    }


class AccessPathExclusionFilter(logging.Filter):
    """Drop ``uvicorn.access`` records for noisy paths such as health probes."""

    def __init__(self, *, excluded_paths: Iterable[str] = ("/healthz",), match_prefix: bool = True) -> None:
        super().__init__()
        self.excluded_paths = tuple(excluded_paths)
        self.match_prefix = match_prefix

    def _is_excluded(self, path: str) -> bool:
        if self.match_prefix:
            return path.startswith(self.excluded_paths)
        return path in self.excluded_paths

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: D401 - documented in base
        if record.name != "uvicorn.access" or not self.excluded_paths:
            return True
        # request_line looks like "GET /path HTTP/1.1"
        parts = str(getattr(record, "request_line", "")).split(" ", 2)
        if len(parts) < 2:
            return True
        return not self._is_excluded(parts[1])


def _build_formatter(settings: Settings) -> logging.Formatter:
    if settings.log_json:
        return ServiceJSONFormatter("%(asctime)s %(name)s %(levelname)s %(message)s", service=settings.app_name)
    return logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")


def configure_logging(settings: Settings) -> None:
    """Route all logging to stdout with secret masking and access path filtering."""

    access_filter = AccessPathExclusionFilter(excluded_paths=settings.access_log_excluded_paths)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(_build_formatter(settings))
    handler.addFilter(SecretMaskingFilter())
    handler.addFilter(access_filter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(settings.log_level)

    for name in ("uvicorn", "uvicorn.error"):
        logging.getLogger(name).setLevel(settings.log_level)
    uvicorn_access_logger = logging.getLogger("uvicorn.access")
    uvicorn_access_logger.setLevel(settings.log_level)
    uvicorn_access_logger.filters = [
        existing for existing in uvicorn_access_logger.filters if not isinstance(existing, AccessPathExclusionFilter)
    ]
    uvicorn_access_logger.addFilter(access_filter)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
