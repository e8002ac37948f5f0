"""Data models describing remote asynchronous tasks and their lifecycle."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator


class TaskStatus(str, enum.Enum):
    """Lifecycle stages of a task tracked by the poller."""

    PENDING = "PENDING"
    RUNNING = "RUNNING"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"
    TIMED_OUT = "TIMED_OUT"
    CANCELLED = "CANCELLED"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset(
    {TaskStatus.SUCCEEDED, TaskStatus.FAILED, TaskStatus.TIMED_OUT, TaskStatus.CANCELLED}
)


class FailureKind(str, enum.Enum):
    PROVIDER_REPORTED = "provider_reported"
    EMPTY_RESULT = "empty_result"


class TaskRequest(BaseModel):
    """Work description handed to a provider at submission time."""

    prompt: str = Field(min_length=1)
    count: int = Field(default=1, ge=1)
    parameters: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("prompt")
    @classmethod
    def _strip_prompt(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("prompt must not be blank")
        return stripped


@dataclass(slots=True, frozen=True)
class StatusSnapshot:
    """Result of a single status check as reported by the provider."""

    status_code: str
    results: List[str] = field(default_factory=list)
    detail: Any = None


@dataclass(slots=True)
class PollableTask:
    """In-memory handle for one outstanding unit of remote work.

    Instances are created by :meth:`AsyncTaskPoller.submit` and are never
    persisted. ``task_id`` cannot be reassigned once set.
    """

    task_id: str
    status: TaskStatus = TaskStatus.PENDING
    attempt: int = 0
    result: Optional[List[str]] = None
    failure_detail: Any = None
    failure_kind: Optional[FailureKind] = None

    def __setattr__(self, name: str, value: Any) -> None:
        if name == "task_id" and hasattr(self, "task_id"):
            raise AttributeError("task_id is immutable once assigned")
        object.__setattr__(self, name, value)

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def mark_succeeded(self, results: List[str]) -> None:
        self.status = TaskStatus.SUCCEEDED
        self.result = list(results)
        self.failure_detail = None
        self.failure_kind = None

    def mark_failed(self, detail: Any, kind: FailureKind = FailureKind.PROVIDER_REPORTED) -> None:
        self.status = TaskStatus.FAILED
        self.result = None
        self.failure_detail = detail
        self.failure_kind = kind

    def mark(self, status: TaskStatus) -> None:
        """Move to a state that carries neither results nor failure details."""

        self.status = status
        self.result = None
        self.failure_detail = None
        self.failure_kind = None
