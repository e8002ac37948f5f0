"""Provider-agnostic helpers for polling remote asynchronous tasks."""

from .errors import (
    EmptyResultError,
    PollerError,
    ProviderUnavailableError,
    SubmissionError,
    TaskCancelledError,
    TaskFailedError,
    TaskStateError,
    TaskTimeoutError,
)
from .models import FailureKind, PollableTask, StatusSnapshot, TaskRequest, TaskStatus
from .poller import DEFAULT_MAX_ATTEMPTS, DEFAULT_POLL_INTERVAL_SECONDS, AsyncTaskPoller
from .provider import TaskProvider
from .retry import ExponentialBackoff, FixedBackoff, RetryPolicy, retry_async
from .status import map_provider_status

__all__ = [
    "AsyncTaskPoller",
    "DEFAULT_MAX_ATTEMPTS",
    "DEFAULT_POLL_INTERVAL_SECONDS",
    "TaskProvider",
    "PollableTask",
    "StatusSnapshot",
    "TaskRequest",
    "TaskStatus",
    "FailureKind",
    "map_provider_status",
    "RetryPolicy",
    "FixedBackoff",
    "ExponentialBackoff",
    "retry_async",
    "PollerError",
    "SubmissionError",
    "ProviderUnavailableError",
    "TaskFailedError",
    "EmptyResultError",
    "TaskTimeoutError",
    "TaskCancelledError",
    "TaskStateError",
]
