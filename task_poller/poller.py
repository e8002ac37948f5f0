"""Submit work to an asynchronous provider and poll it to completion."""

from __future__ import annotations

import asyncio
import logging
from typing import List, NoReturn, Optional

from .errors import (
    EmptyResultError,
    PollerError,
    SubmissionError,
    TaskCancelledError,
    TaskFailedError,
    TaskStateError,
    TaskTimeoutError,
)
from .models import FailureKind, PollableTask, TaskRequest, TaskStatus
from .provider import TaskProvider
from .retry import NO_RETRY, RetryPolicy, SleepFunc, retry_async
from .status import map_provider_status

DEFAULT_POLL_INTERVAL_SECONDS = 2.0
DEFAULT_MAX_ATTEMPTS = 30


class AsyncTaskPoller:
    """Drive remote tasks through ``PENDING/RUNNING`` to a terminal state.

    The poller holds no per-task state, so a single instance can serve any
    number of concurrent polling loops as long as each loop owns its task.
    """

    def __init__(
        self,
        provider: TaskProvider,
        *,
        poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        submit_policy: RetryPolicy = NO_RETRY,
        sleep: SleepFunc = asyncio.sleep,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if poll_interval < 0:
            raise ValueError("poll_interval must not be negative")
        self._provider = provider
        self._poll_interval = poll_interval
        self._max_attempts = max_attempts
        self._submit_policy = submit_policy
        self._sleep = sleep
        self._logger = logger or logging.getLogger(__name__)

    @property
    def max_attempts(self) -> int:
        return self._max_attempts

    @property
    def poll_interval(self) -> float:
        return self._poll_interval

    async def submit(self, request: TaskRequest) -> PollableTask:
        if not request.prompt or not request.prompt.strip():
            raise SubmissionError("Task request requires a non-empty prompt")

        self._logger.info("Submitting task", extra={"count": request.count})
        task_id = await retry_async(
            lambda: self._provider.create_task(request),
            self._submit_policy,
            should_retry=_is_retryable_submission,
            sleep=self._sleep,
            log=self._logger,
        )
        if not task_id:
            raise SubmissionError("Provider did not return a task identifier")

        self._logger.info("Task submitted", extra={"task_id": task_id})
        return PollableTask(task_id=task_id)

    async def poll(self, task: PollableTask, *, max_attempts: Optional[int] = None) -> PollableTask:
        if task.is_terminal:
            raise TaskStateError(f"Task {task.task_id} is already {task.status.value}")

        limit = self._attempt_limit(max_attempts)
        if task.attempt >= limit:
            self._time_out(task)

        task.attempt += 1
        self._logger.debug("Checking task status", extra={"task_id": task.task_id, "attempt": task.attempt})
        snapshot = await self._provider.fetch_status(task.task_id)

        status = map_provider_status(
            snapshot.status_code, aliases=self._provider.status_aliases, log=self._logger
        )
        if status is TaskStatus.SUCCEEDED:
            if snapshot.results:
                task.mark_succeeded(snapshot.results)
                self._logger.info(
                    "Task succeeded",
                    extra={"task_id": task.task_id, "attempt": task.attempt, "results": len(snapshot.results)},
                )
            else:
                task.mark_failed(snapshot.detail, FailureKind.EMPTY_RESULT)
                self._logger.error(
                    "Task succeeded without results", extra={"task_id": task.task_id, "attempt": task.attempt}
                )
        elif status is TaskStatus.FAILED:
            task.mark_failed(snapshot.detail)
            self._logger.error(
                "Task failed",
                extra={"task_id": task.task_id, "attempt": task.attempt, "detail": snapshot.detail},
            )
        elif status is not None:
            task.mark(status)
        return task

    async def await_completion(
        self,
        task: PollableTask,
        *,
        poll_interval: Optional[float] = None,
        max_attempts: Optional[int] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> List[str]:
        """Poll ``task`` until it is terminal and return its result references.

        Each iteration checks ``cancel_event``, sleeps ``poll_interval`` seconds
        and performs one status check. Errors raised by the provider during a
        check propagate without retry.
        """

        interval = self._poll_interval if poll_interval is None else poll_interval
        if interval < 0:
            raise ValueError("poll_interval must not be negative")
        limit = self._attempt_limit(max_attempts)

        while not task.is_terminal:
            self._check_cancelled(task, cancel_event)
            if task.attempt >= limit:
                self._time_out(task)
            await self._sleep(interval)
            self._check_cancelled(task, cancel_event)
            await self.poll(task, max_attempts=limit)
            if not task.is_terminal:
                self._logger.debug(
                    "Task still in progress",
                    extra={"task_id": task.task_id, "attempt": task.attempt, "status": task.status.value},
                )

        return self._outcome(task)

    async def run(
        self,
        request: TaskRequest,
        *,
        poll_interval: Optional[float] = None,
        max_attempts: Optional[int] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> List[str]:
        task = await self.submit(request)
        return await self.await_completion(
            task, poll_interval=poll_interval, max_attempts=max_attempts, cancel_event=cancel_event
        )

    def _attempt_limit(self, max_attempts: Optional[int]) -> int:
        limit = self._max_attempts if max_attempts is None else max_attempts
        if limit < 1:
            raise ValueError("max_attempts must be at least 1")
        return limit

    def _time_out(self, task: PollableTask) -> NoReturn:
        task.mark(TaskStatus.TIMED_OUT)
        self._logger.error("Task polling timed out", extra={"task_id": task.task_id, "attempt": task.attempt})
        raise TaskTimeoutError(task.attempt, task.task_id)

    def _check_cancelled(self, task: PollableTask, cancel_event: Optional[asyncio.Event]) -> None:
        if cancel_event is not None and cancel_event.is_set():
            task.mark(TaskStatus.CANCELLED)
            self._logger.warning("Task polling cancelled", extra={"task_id": task.task_id, "attempt": task.attempt})
            raise TaskCancelledError(task.attempt, task.task_id)

    @staticmethod
    def _outcome(task: PollableTask) -> List[str]:
        if task.status is TaskStatus.SUCCEEDED and task.result:
            return list(task.result)
        if task.status is TaskStatus.FAILED:
            if task.failure_kind is FailureKind.EMPTY_RESULT:
                raise EmptyResultError(task_id=task.task_id, failure_detail=task.failure_detail)
            raise TaskFailedError(task.failure_detail, task_id=task.task_id)
        if task.status is TaskStatus.TIMED_OUT:
            raise TaskTimeoutError(task.attempt, task.task_id)
        if task.status is TaskStatus.CANCELLED:
            raise TaskCancelledError(task.attempt, task.task_id)
        raise TaskStateError(f"Task {task.task_id} ended in unexpected state {task.status.value}")


def _is_retryable_submission(exc: Exception) -> bool:
    return isinstance(exc, SubmissionError) and exc.retryable


__all__ = ["AsyncTaskPoller", "PollerError", "DEFAULT_MAX_ATTEMPTS", "DEFAULT_POLL_INTERVAL_SECONDS"]
