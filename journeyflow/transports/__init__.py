"""Transport factory and initialization."""

from __future__ import annotations

import os
from typing import Optional

from ..config import JourneyConfig, load_config
from .base import BaseTransport
from .inmemory import InMemoryTransport


def get_transport(
    backend: Optional[str] = None, config: Optional[JourneyConfig] = None
) -> BaseTransport:
    """Factory function to get the configured transport."""

    config = config or load_config()
    backend = (
        backend
        or os.getenv("JOURNEYFLOW_TRANSPORT")
        or config.transport.backend
    ).lower()

    if backend == "inmemory":
        return InMemoryTransport()
    elif backend == "redis":
        from .redis import RedisTransport

        redis_conf = config.transport.redis
        return RedisTransport(
            host=redis_conf.host,
            port=redis_conf.port,
            db=redis_conf.db,
            password=redis_conf.password,
        )
    elif backend == "kafka":
        from .kafka import KafkaTransport

        kafka_conf = config.transport.kafka
        return KafkaTransport(
            brokers=kafka_conf.brokers,
            client_id=kafka_conf.client_id,
            group_id=kafka_conf.group_id,
            dlq_topic=kafka_conf.dlq_topic,
        )
    else:
        raise ValueError(f"Unsupported transport backend: {backend}")


__all__ = ["BaseTransport", "InMemoryTransport", "get_transport"]
