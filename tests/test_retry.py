from __future__ import annotations

import pytest

from task_poller import ExponentialBackoff, FixedBackoff, RetryPolicy, retry_async


class _Flaky:
    def __init__(self, failures: list[Exception], value: str = "ok") -> None:
        self.failures = failures
        self.value = value
        self.calls = 0

    async def __call__(self) -> str:
        self.calls += 1
        if self.failures:
            raise self.failures.pop(0)
        return self.value


def test_exponential_backoff_grows_and_caps() -> None:
    backoff = ExponentialBackoff(initial_seconds=1.0, multiplier=2.0, maximum_seconds=5.0)

    assert [backoff.delay(n) for n in range(1, 6)] == [1.0, 2.0, 4.0, 5.0, 5.0]


def test_fixed_backoff_is_constant() -> None:
    backoff = FixedBackoff(0.75)

    assert backoff.delay(1) == backoff.delay(10) == 0.75


def test_retry_policy_requires_one_attempt() -> None:
    with pytest.raises(ValueError):
        RetryPolicy(max_attempts=0)


@pytest.mark.asyncio
async def test_retry_async_returns_after_transient_failures(recording_sleep) -> None:
    operation = _Flaky([ConnectionError("reset"), ConnectionError("reset")])
    policy = RetryPolicy(max_attempts=3, backoff=ExponentialBackoff(initial_seconds=0.5))

    result = await retry_async(operation, policy, should_retry=lambda exc: True, sleep=recording_sleep)

    assert result == "ok"
    assert operation.calls == 3
    assert recording_sleep.calls == [0.5, 1.0]


@pytest.mark.asyncio
async def test_retry_async_reraises_last_error_when_exhausted(recording_sleep) -> None:
    operation = _Flaky([ConnectionError("first"), ConnectionError("second"), ConnectionError("third")])

    with pytest.raises(ConnectionError, match="second"):
        await retry_async(
            operation, RetryPolicy(max_attempts=2), should_retry=lambda exc: True, sleep=recording_sleep
        )

    assert operation.calls == 2
    assert recording_sleep.calls == [0.0]


@pytest.mark.asyncio
async def test_retry_async_does_not_retry_rejected_errors(recording_sleep) -> None:
    operation = _Flaky([ValueError("bad input")])

    with pytest.raises(ValueError):
        await retry_async(
            operation,
            RetryPolicy(max_attempts=5),
            should_retry=lambda exc: isinstance(exc, ConnectionError),
            sleep=recording_sleep,
        )

    assert operation.calls == 1
    assert recording_sleep.calls == []
