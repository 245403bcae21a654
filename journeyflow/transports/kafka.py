"""Kafka transport implementation using aiokafka."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, AsyncIterator, Dict, Iterable, Optional, Tuple

try:
    from aiokafka import AIOKafkaConsumer, AIOKafkaProducer
    from aiokafka.structs import TopicPartition
except Exception:  # pragma: no cover - aiokafka not installed
    AIOKafkaConsumer = None  # type: ignore
    AIOKafkaProducer = None  # type: ignore
    TopicPartition = None  # type: ignore

from ..contracts import Event
from .base import BaseTransport

logger = logging.getLogger(__name__)


class KafkaTransport(BaseTransport[Any]):
    """Kafka-based transport partitioned by customer id."""

    def __init__(
        self,
        brokers: Iterable[str] | str = "localhost:9092",
        client_id: str = "journeyflow",
        group_id: str = "customer-journey-workflow",
        dlq_topic: str = "journeyflow.deadletter",
    ) -> None:
        if AIOKafkaProducer is None or AIOKafkaConsumer is None:
            raise ImportError("aiokafka package is required for KafkaTransport")

        self.brokers = [brokers] if isinstance(brokers, str) else list(brokers)
        self.client_id = client_id
        self.group_id = group_id
        self.dlq_topic = dlq_topic
        self._producer: Optional[AIOKafkaProducer] = None
        self._consumers: Dict[str, AIOKafkaConsumer] = {}

    async def connect(self) -> None:
        producer = AIOKafkaProducer(
            bootstrap_servers=self.brokers,
            client_id=self.client_id,
            enable_idempotence=True,
        )
        await producer.start()
        self._producer = producer

    async def disconnect(self) -> None:
        for consumer in self._consumers.values():
            await consumer.stop()
        self._consumers.clear()
        if self._producer:
            await self._producer.stop()
            self._producer = None

    async def publish(self, topic: str, event: Event, key: Optional[str] = None) -> None:
        if not self._producer:
            raise RuntimeError("KafkaTransport not connected")
        await self._producer.send_and_wait(
            topic,
            value=event.to_json().encode(),
            key=(key or event.key).encode(),
            headers=[
                ("event-type", event.type.value.encode()),
                ("correlation-id", event.id.encode()),
            ],
        )

    async def subscribe(
        self, topic: str, lifespan: Optional[float] = None
    ) -> AsyncIterator[Tuple[Any, Event]]:
        if not self._producer:
            raise RuntimeError("KafkaTransport not connected")
        consumer = AIOKafkaConsumer(
            topic,
            bootstrap_servers=self.brokers,
            client_id=self.client_id,
            group_id=self.group_id,
            enable_auto_commit=False,
            auto_offset_reset="latest",
        )
        await consumer.start()
        self._consumers[topic] = consumer
        start_time = asyncio.get_running_loop().time() if lifespan else None

        while True:
            if lifespan and start_time is not None:
                if asyncio.get_running_loop().time() - start_time >= lifespan:
                    break
            msg = await consumer.getone()
            try:
                event = Event.from_json(msg.value.decode())
            except Exception:
                logger.warning(
                    f"Dropping malformed message at {msg.topic}:{msg.partition}:{msg.offset}"
                )
                await self.nack(msg, requeue=False)
                continue
            yield msg, event

    def _consumer_for(self, raw_message: Any) -> AIOKafkaConsumer:
        consumer = self._consumers.get(raw_message.topic)
        if consumer is None:
            raise RuntimeError("KafkaTransport not connected")
        return consumer

    async def ack(self, raw_message: Any) -> None:
        consumer = self._consumer_for(raw_message)
        tp = TopicPartition(raw_message.topic, raw_message.partition)
        await consumer.commit({tp: raw_message.offset + 1})

    async def nack(self, raw_message: Any, requeue: bool = True) -> None:
        consumer = self._consumer_for(raw_message)
        if requeue:
            tp = TopicPartition(raw_message.topic, raw_message.partition)
            consumer.seek(tp, raw_message.offset)
        else:
            if self._producer:
                await self._producer.send_and_wait(self.dlq_topic, value=raw_message.value)
            await self.ack(raw_message)
