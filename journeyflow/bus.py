"""Topic-addressed event bus with per-key ordered delivery."""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Set, Tuple, Union

from pydantic import BaseModel

from .contracts import Event, EventType
from .errors import TransportError
from .transports import BaseTransport

logger = logging.getLogger(__name__)

EventHandler = Callable[[str, Event, Dict[str, Any]], Awaitable[None]]


class EventBus:
    """Publish/subscribe facade over a :class:`BaseTransport`.

    Publishing only hands the event to the transport; handlers run later on
    consumer tasks. Each received event is routed to a lane keyed by customer
    id. A lane is drained by a single worker, so handlers for one customer
    observe events in publish order while different customers proceed
    concurrently. Lanes are shared by every topic this bus consumes, so handlers
    for one customer never overlap even across topics.
    """

    def __init__(self, transport: BaseTransport) -> None:
        self._transport = transport
        self._connected = False
        self._handlers: Dict[str, List[EventHandler]] = defaultdict(list)
        self._consumers: Dict[str, asyncio.Task] = {}
        self._lanes: Dict[str, asyncio.Queue[Tuple[str, Any, Event]]] = {}
        self._lane_tasks: Dict[str, asyncio.Task] = {}
        self._pending: Set[str] = set()
        self._idle = asyncio.Event()
        self._idle.set()

    @property
    def transport(self) -> BaseTransport:
        return self._transport

    @property
    def connected(self) -> bool:
        return self._connected

    async def connect(self) -> None:
        """Connect the underlying transport."""
        try:
            await self._transport.connect()
        except Exception as e:
            logger.error(f"Failed to connect event bus: {e}")
            raise TransportError(f"Event bus connection failed: {e}") from e
        self._connected = True
        logger.info(f"Event bus connected via {type(self._transport).__name__}")

    async def close(self) -> None:
        """Stop consumers and lanes, then disconnect the transport."""
        tasks = list(self._consumers.values()) + list(self._lane_tasks.values())
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._consumers.clear()
        self._lanes.clear()
        self._lane_tasks.clear()
        self._pending.clear()
        self._idle.set()

        if self._connected:
            self._connected = False
            try:
                await self._transport.disconnect()
            except Exception as e:
                logger.error(f"Failed to disconnect event bus: {e}")
        logger.info("Event bus disconnected")

    async def publish(
        self,
        topic: str,
        event_type: EventType,
        payload: Union[BaseModel, Dict[str, Any]],
    ) -> Event:
        """Publish an event and return the constructed envelope.

        Raises:
            TransportError: If the bus is not connected or the transport
                rejects the event.
        """
        if not self._connected:
            raise TransportError("Event bus not connected")

        event = Event.build(event_type, payload)
        tracked = topic in self._handlers
        if tracked:
            self._track(event.id)
        try:
            await self._transport.publish(topic, event, key=event.key)
        except Exception as e:
            if tracked:
                self._settle(event.id)
            logger.error(f"Failed to publish event: {event_type.value} to {topic}: {e}")
            raise TransportError(f"Failed to publish {event_type.value}: {e}") from e

        logger.info(f"Event published: {event_type.value} to {topic}")
        return event

    async def subscribe(self, topics: Iterable[str], handler: EventHandler) -> None:
        """Register ``handler`` for every topic in ``topics``."""
        if not self._connected:
            raise TransportError("Event bus not connected")

        topics = list(topics)
        for topic in topics:
            self._handlers[topic].append(handler)
            if topic not in self._consumers:
                self._consumers[topic] = asyncio.create_task(
                    self._consume(topic), name=f"consume:{topic}"
                )
        logger.info(f"Subscribed to topics: {', '.join(topics)}")

    async def join(self, timeout: Optional[float] = None) -> None:
        """Wait until every locally published, locally consumed event is handled.

        Events published by handlers while handling are included, so this
        returns once the in-process event cascade has settled.
        """
        await asyncio.wait_for(self._wait_idle(), timeout=timeout)

    async def _wait_idle(self) -> None:
        while self._pending:
            await self._idle.wait()

    def _track(self, event_id: str) -> None:
        self._pending.add(event_id)
        self._idle.clear()

    def _settle(self, event_id: str) -> None:
        self._pending.discard(event_id)
        if not self._pending:
            self._idle.set()

    async def _consume(self, topic: str) -> None:
        try:
            async for raw_message, event in self._transport.subscribe(topic):
                logger.debug(f"Received event: {event.type.value} from {topic}")
                self._enqueue(topic, raw_message, event)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception(f"Consumer for topic {topic} stopped unexpectedly")

    def _enqueue(self, topic: str, raw_message: Any, event: Event) -> None:
        key = event.key
        lane = self._lanes.get(key)
        if lane is None:
            lane = asyncio.Queue()
            self._lanes[key] = lane
            self._lane_tasks[key] = asyncio.create_task(
                self._drain_lane(key, lane), name=f"lane:{key}"
            )
        lane.put_nowait((topic, raw_message, event))

    async def _drain_lane(self, key: str, lane: asyncio.Queue) -> None:
        try:
            while not lane.empty():
                topic, raw_message, event = lane.get_nowait()
                await self._deliver(topic, raw_message, event)
        finally:
            # No await between the emptiness check and removal, so a
            # concurrent _enqueue either lands in this lane or opens a new one.
            if self._lanes.get(key) is lane:
                del self._lanes[key]
                del self._lane_tasks[key]

    async def _deliver(self, topic: str, raw_message: Any, event: Event) -> None:
        metadata = {
            "event-type": event.type.value,
            "correlation-id": event.id,
            "key": event.key,
            "topic": topic,
        }
        try:
            for handler in list(self._handlers.get(topic, [])):
                try:
                    await handler(topic, event, metadata)
                except Exception:
                    logger.exception(
                        f"Error processing {event.type.value} event {event.id} from {topic}"
                    )
            try:
                await self._transport.ack(raw_message)
            except Exception as e:
                logger.error(f"Failed to ack event {event.id}: {e}")
        finally:
            self._settle(event.id)
