"""In-memory transport for tests and degraded single-process mode."""

from __future__ import annotations

import asyncio
from collections import defaultdict
from typing import AsyncIterator, Dict, Optional, Tuple

from ..contracts import Event
from .base import BaseTransport


class InMemoryTransport(BaseTransport[Tuple[str, Event]]):
    """Simple in-process FIFO queue per topic.

    Every published event is delivered exactly once to whichever consumer
    pulls it first. The per-topic FIFO keeps events for the same key in
    publish order, so the ordering key is not needed.
    """

    def __init__(self) -> None:
        self._queues: Dict[str, asyncio.Queue[Tuple[str, Event]]] = defaultdict(
            asyncio.Queue
        )

    def pending(self, topic: str) -> int:
        """Number of undelivered events waiting on ``topic``."""
        return self._queues[topic].qsize()

    async def publish(self, topic: str, event: Event, key: Optional[str] = None) -> None:
        """Publish event to in-memory queue."""
        self._queues[topic].put_nowait((event.to_json(), event))

    async def subscribe(
        self, topic: str, lifespan: Optional[float] = None
    ) -> AsyncIterator[Tuple[Tuple[str, Event], Event]]:
        """Subscribe to events from topic.

        Args:
            topic: The topic to subscribe to
            lifespan: Maximum time in seconds to keep connection open. If None, runs indefinitely.
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + lifespan if lifespan else None
        queue = self._queues[topic]

        while True:
            if deadline is None:
                raw_message = await queue.get()
            else:
                remaining = deadline - loop.time()
                if remaining <= 0:
                    break
                try:
                    raw_message = await asyncio.wait_for(queue.get(), timeout=remaining)
                except asyncio.TimeoutError:
                    break
            yield raw_message, raw_message[1]

    async def ack(self, raw_message: Tuple[str, Event]) -> None:
        """No-op acknowledgment for in-memory transport."""
        pass
