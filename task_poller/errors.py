"""Error taxonomy raised by the task poller."""

from __future__ import annotations

from typing import Any, Optional


class PollerError(RuntimeError):
    """Base class for every error surfaced by the poller."""


class SubmissionError(PollerError):
    """Raised when the provider rejects or garbles the task creation call."""

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        response_text: Optional[str] = None,
        retryable: bool = False,
        original: Optional[Exception] = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.response_text = response_text
        self.retryable = retryable
        self.original = original


class ProviderUnavailableError(PollerError):
    """Raised when a status check fails at the transport level or is malformed."""

    def __init__(
        self,
        message: str,
        *,
        task_id: Optional[str] = None,
        url: Optional[str] = None,
        original: Optional[Exception] = None,
    ) -> None:
        super().__init__(message)
        self.task_id = task_id
        self.url = url
        self.original = original


class TaskFailedError(PollerError):
    """Raised when the provider reports that the task failed."""

    def __init__(self, failure_detail: Any, *, task_id: Optional[str] = None) -> None:
        super().__init__(f"Task {task_id} failed: {failure_detail!r}")
        self.failure_detail = failure_detail
        self.task_id = task_id


class EmptyResultError(TaskFailedError):
    """Raised when the provider reports success without any result reference."""

    def __init__(self, *, task_id: Optional[str] = None, failure_detail: Any = None) -> None:
        super().__init__(failure_detail, task_id=task_id)
        self.args = (f"Task {task_id} succeeded without results",)


class TaskTimeoutError(PollerError):
    """Raised when the attempt budget runs out before a terminal state."""

    def __init__(self, attempt: int, task_id: str) -> None:
        super().__init__(f"Task {task_id} did not finish after {attempt} attempts")
        self.attempt = attempt
        self.task_id = task_id


class TaskCancelledError(PollerError):
    """Raised when the caller cancels polling before a terminal state."""

    def __init__(self, attempt: int, task_id: str) -> None:
        super().__init__(f"Polling of task {task_id} cancelled after {attempt} attempts")
        self.attempt = attempt
        self.task_id = task_id


class TaskStateError(PollerError):
    """Raised when an operation is attempted on a task in a terminal state."""
