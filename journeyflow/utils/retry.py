"""Backoff helpers for retrying failed operations."""

from __future__ import annotations

import asyncio
import logging
import random
from typing import Awaitable, Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


def compute_backoff(attempt: int, base: float = 1.5, jitter: float = 0.5) -> float:
    """Compute exponential backoff with jitter."""
    delay = base ** attempt
    return delay + random.uniform(0, jitter)


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    attempts: int,
    should_retry: Callable[[Exception], bool] = lambda exc: True,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """Run ``operation`` up to ``attempts`` times with exponential backoff.

    The last failure, or any failure rejected by ``should_retry``, is
    re-raised unchanged.
    """
    attempt = 0
    while True:
        attempt += 1
        try:
            return await operation()
        except Exception as exc:
            if attempt >= attempts or not should_retry(exc):
                raise
            delay = compute_backoff(attempt)
            logger.warning(f"Attempt {attempt}/{attempts} failed ({exc}); retrying in {delay:.2f}s")
            await sleep(delay)
