"""Transport interface the event bus runs on."""

from __future__ import annotations

import abc
from typing import AsyncIterator, Generic, Optional, Tuple, TypeVar

from ..contracts import Event

RawMessageT = TypeVar("RawMessageT")


class BaseTransport(Generic[RawMessageT], metaclass=abc.ABCMeta):
    """Moves journey events between publishers and the bus consumers.

    Implementations must keep events that share a key (the customer id) in
    publish order on a topic. ``RawMessageT`` is whatever the broker hands
    back for acknowledgement: a queue tuple, a JSON string or a Kafka record.
    """

    async def connect(self) -> None:
        """Open connection to broker (no-op by default)."""
        pass

    async def disconnect(self) -> None:
        """Close connection to broker (no-op by default)."""
        pass

    @abc.abstractmethod
    async def publish(self, topic: str, event: Event, key: Optional[str] = None) -> None:
        """Send a journey event to ``topic``.

        Args:
            topic: customer-events, workflow-triggers or email-notifications.
            event: Event envelope to send.
            key: Customer id; partitioned brokers route on it so one
                customer's events stay ordered.
        """
        raise NotImplementedError

    @abc.abstractmethod
    def subscribe(
        self, topic: str, lifespan: Optional[float] = None
    ) -> AsyncIterator[Tuple[RawMessageT, Event]]:
        """Yield ``(raw message, Event)`` pairs from ``topic`` in arrival order.

        Args:
            topic: The topic to consume.
            lifespan: Stop after this many seconds; ``None`` runs until cancelled.
        """
        raise NotImplementedError

    @abc.abstractmethod
    async def ack(self, raw_message: RawMessageT) -> None:
        """Mark an event as handled by every bus handler."""
        raise NotImplementedError

    async def nack(self, raw_message: RawMessageT, requeue: bool = True) -> None:
        """Reject an event the transport could not decode.

        Only the Kafka transport overrides this, to dead-letter malformed
        records; elsewhere it falls back to ``ack``.
        """
        await self.ack(raw_message)
