"""Per-customer cancellable delayed tasks."""

from __future__ import annotations

import asyncio
import itertools
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Awaitable, Callable, Dict, Optional

from .contracts import utcnow

logger = logging.getLogger(__name__)

TimerCallback = Callable[[str], Awaitable[None]]


@dataclass
class _Timer:
    generation: int
    task: asyncio.Task
    due_at: datetime


class TimerManager:
    """Keeps at most one pending timer per customer id.

    ``schedule`` and ``cancel`` never suspend, so a reschedule is a single
    atomic step on the event loop. A fired task only runs its callback if it
    is still the registered generation for its customer; once ``cancel``
    returns the callback cannot start.
    """

    def __init__(self) -> None:
        self._timers: Dict[str, _Timer] = {}
        self._generations = itertools.count(1)

    def __len__(self) -> int:
        return len(self._timers)

    def schedule(self, customer_id: str, delay: float, on_fire: TimerCallback) -> int:
        """Arm a timer for ``customer_id``, replacing any existing one.

        Returns the generation number identifying the new timer.
        """
        self.cancel(customer_id)
        generation = next(self._generations)
        task = asyncio.get_running_loop().create_task(
            self._run(customer_id, generation, delay, on_fire),
            name=f"timer:{customer_id}",
        )
        self._timers[customer_id] = _Timer(
            generation=generation,
            task=task,
            due_at=utcnow() + timedelta(seconds=delay),
        )
        logger.info(f"Scheduled reminder check for customer {customer_id} in {delay:g}s")
        return generation

    def cancel(self, customer_id: str) -> bool:
        """Cancel the pending timer for ``customer_id``; no-op when absent."""
        timer = self._timers.pop(customer_id, None)
        if timer is None:
            return False
        timer.task.cancel()
        logger.info(f"Cancelled reminder timer for customer {customer_id}")
        return True

    def has_timer(self, customer_id: str) -> bool:
        return customer_id in self._timers

    def due_at(self, customer_id: str) -> Optional[datetime]:
        timer = self._timers.get(customer_id)
        return timer.due_at if timer else None

    async def shutdown(self) -> None:
        """Cancel every pending timer and wait for the tasks to finish."""
        timers = list(self._timers.values())
        self._timers.clear()
        for timer in timers:
            timer.task.cancel()
        await asyncio.gather(*(t.task for t in timers), return_exceptions=True)

    async def _run(
        self, customer_id: str, generation: int, delay: float, on_fire: TimerCallback
    ) -> None:
        await asyncio.sleep(delay)
        current = self._timers.get(customer_id)
        if current is None or current.generation != generation:
            return
        del self._timers[customer_id]
        try:
            await on_fire(customer_id)
        except Exception:
            logger.exception(f"Timer callback failed for customer {customer_id}")
