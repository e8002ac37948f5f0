"""Bounded retry helpers with pluggable backoff policies."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Optional, Protocol, TypeVar

logger = logging.getLogger(__name__)

_T = TypeVar("_T")

SleepFunc = Callable[[float], Awaitable[None]]


class BackoffPolicy(Protocol):
    def delay(self, retry_number: int) -> float:
        """Return the delay in seconds before retry number ``retry_number`` (1-based)."""
        ...


@dataclass(slots=True, frozen=True)
class FixedBackoff:
    delay_seconds: float = 0.0

    def delay(self, retry_number: int) -> float:
        return self.delay_seconds


@dataclass(slots=True, frozen=True)
class ExponentialBackoff:
    initial_seconds: float = 0.5
    multiplier: float = 2.0
    maximum_seconds: float = 30.0

    def delay(self, retry_number: int) -> float:
        value = self.initial_seconds * (self.multiplier ** max(0, retry_number - 1))
        return min(value, self.maximum_seconds)


@dataclass(slots=True, frozen=True)
class RetryPolicy:
    """How many times an operation may run and how long to wait in between."""

    max_attempts: int = 1
    backoff: BackoffPolicy = field(default_factory=FixedBackoff)

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")


NO_RETRY = RetryPolicy()


async def retry_async(
    operation: Callable[[], Awaitable[_T]],
    policy: RetryPolicy,
    *,
    should_retry: Callable[[Exception], bool],
    sleep: SleepFunc = asyncio.sleep,
    log: Optional[logging.Logger] = None,
) -> _T:
    """Run ``operation`` until it succeeds or the policy is exhausted.

    Exceptions rejected by ``should_retry`` propagate immediately. The last
    exception is re-raised once ``policy.max_attempts`` runs have failed.
    """

    log = log or logger
    attempt = 1
    while True:
        try:
            return await operation()
        except Exception as exc:
            if attempt >= policy.max_attempts or not should_retry(exc):
                raise
            delay = policy.backoff.delay(attempt)
            log.warning(
                "Operation failed, retrying",
                extra={"attempt": attempt, "max_attempts": policy.max_attempts, "delay": delay, "error": str(exc)},
            )
            await sleep(delay)
            attempt += 1
