"""Redis transport for cross-process messaging."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, AsyncIterator, Optional, Tuple

try:
    import redis.asyncio as redis
except ImportError:
    redis = None

from pydantic import ValidationError as PayloadValidationError

from ..contracts import Event
from .base import BaseTransport

logger = logging.getLogger(__name__)


class RedisTransport(BaseTransport[str]):
    """Redis-based transport using one list per topic as a FIFO queue."""

    def __init__(
        self,
        host: str = "localhost",
        port: int = 6379,
        db: int = 0,
        password: Optional[str] = None,
    ) -> None:
        if redis is None:
            raise ImportError("redis package is required for RedisTransport")

        self.host = host
        self.port = port
        self.db = db
        self.password = password
        self._redis: Optional[Any] = None

    async def connect(self) -> None:
        """Connect to Redis."""
        self._redis = redis.Redis(
            host=self.host,
            port=self.port,
            db=self.db,
            password=self.password,
            decode_responses=True,
        )
        # Test connection
        await self._redis.ping()

    async def disconnect(self) -> None:
        """Disconnect from Redis."""
        if self._redis:
            await self._redis.aclose()
            self._redis = None

    @staticmethod
    def queue_name(topic: str) -> str:
        return f"journeyflow:{topic}"

    async def publish(self, topic: str, event: Event, key: Optional[str] = None) -> None:
        """Publish event to Redis list (acting as queue)."""
        if not self._redis:
            await self.connect()

        await self._redis.lpush(self.queue_name(topic), event.to_json())

    async def subscribe(
        self, topic: str, lifespan: Optional[float] = None
    ) -> AsyncIterator[Tuple[str, Event]]:
        """Subscribe to events from Redis queue."""
        if not self._redis:
            await self.connect()

        queue_name = self.queue_name(topic)
        start_time = asyncio.get_running_loop().time() if lifespan else None

        while True:
            if lifespan and start_time:
                elapsed = asyncio.get_running_loop().time() - start_time
                if elapsed >= lifespan:
                    break

            # Blocking pop with timeout
            result = await self._redis.brpop(queue_name, timeout=1)
            if not result:
                continue

            _, message_json = result
            try:
                event = Event.from_json(message_json)
            except PayloadValidationError as e:
                logger.warning(f"Failed to parse event from {queue_name}: {e}")
                continue
            yield message_json, event

    async def ack(self, raw_message: str) -> None:
        """No-op acknowledgment for Redis transport (message already consumed)."""
        pass
