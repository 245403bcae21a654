"""Tests for retry helpers."""

import pytest

from journeyflow.utils import retry
from journeyflow.utils.retry import compute_backoff, retry_async


class Flaky:
    def __init__(self, failures: int, exc: Exception = RuntimeError("flaky")) -> None:
        self.failures = failures
        self.exc = exc
        self.calls = 0

    async def __call__(self) -> str:
        self.calls += 1
        if self.calls <= self.failures:
            raise self.exc
        return "ok"


@pytest.fixture
def sleeps():
    recorded = []

    async def fake_sleep(delay: float) -> None:
        recorded.append(delay)

    fake_sleep.recorded = recorded
    return fake_sleep


def test_compute_backoff_grows():
    assert 1.5 <= compute_backoff(1, jitter=0) <= 1.5
    assert compute_backoff(3, jitter=0) > compute_backoff(2, jitter=0)
    assert 2.25 <= compute_backoff(2) <= 2.75


@pytest.mark.asyncio
async def test_retry_succeeds_after_failures(sleeps, monkeypatch):
    monkeypatch.setattr(retry, "compute_backoff", lambda attempt: 0.1 * attempt)
    operation = Flaky(failures=2)

    assert await retry_async(operation, attempts=3, sleep=sleeps) == "ok"
    assert operation.calls == 3
    assert sleeps.recorded == [0.1, 0.2]


@pytest.mark.asyncio
async def test_retry_reraises_last_error(sleeps):
    operation = Flaky(failures=5)
    with pytest.raises(RuntimeError):
        await retry_async(operation, attempts=2, sleep=sleeps)
    assert operation.calls == 2


@pytest.mark.asyncio
async def test_single_attempt_never_sleeps(sleeps):
    operation = Flaky(failures=1)
    with pytest.raises(RuntimeError):
        await retry_async(operation, attempts=1, sleep=sleeps)
    assert sleeps.recorded == []


@pytest.mark.asyncio
async def test_non_retryable_errors_stop_immediately(sleeps):
    operation = Flaky(failures=1, exc=ValueError("fatal"))
    with pytest.raises(ValueError):
        await retry_async(
            operation,
            attempts=5,
            should_retry=lambda exc: not isinstance(exc, ValueError),
            sleep=sleeps,
        )
    assert operation.calls == 1
