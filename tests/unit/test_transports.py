"""Transport tests."""

import pytest

from journeyflow.contracts import CustomerInactivePayload, Event, EventType
from journeyflow.transports.inmemory import InMemoryTransport


def _event(customer_id: str) -> Event:
    return Event.build(
        EventType.CUSTOMER_INACTIVE, CustomerInactivePayload(customer_id=customer_id)
    )


@pytest.mark.asyncio
async def test_inmemory_transport_basic():
    """Test basic InMemoryTransport publish/subscribe."""
    transport = InMemoryTransport()
    event = _event("cust-1")

    await transport.publish("test_topic", event)
    assert transport.pending("test_topic") == 1

    message_received = False
    async for raw_msg, received in transport.subscribe("test_topic"):
        assert received.id == event.id
        assert received.customer_id == "cust-1"
        await transport.ack(raw_msg)
        message_received = True
        break

    assert message_received
    assert transport.pending("test_topic") == 0


@pytest.mark.asyncio
async def test_inmemory_transport_preserves_order_and_honours_lifespan():
    transport = InMemoryTransport()
    published = [_event("cust-1") for _ in range(3)]
    for event in published:
        await transport.publish("ordered", event, key="cust-1")

    received = [event.id async for _, event in transport.subscribe("ordered", lifespan=0.2)]
    assert received == [event.id for event in published]


@pytest.mark.asyncio
async def test_inmemory_topics_are_isolated():
    transport = InMemoryTransport()
    await transport.publish("a", _event("cust-1"))

    received = [event async for _, event in transport.subscribe("b", lifespan=0.05)]
    assert received == []
    assert transport.pending("a") == 1


def test_redis_transport_import():
    """Redis transport can be imported and instantiated without a server."""
    from journeyflow.transports.redis import RedisTransport

    transport = RedisTransport()
    assert transport.host == "localhost"
    assert transport.port == 6379
    assert RedisTransport.queue_name("customer-events") == "journeyflow:customer-events"


class FakeRedis:
    """Just enough of redis.asyncio.Redis for list-queue round trips."""

    def __init__(self) -> None:
        self.lists = {}

    async def lpush(self, name, value):
        self.lists.setdefault(name, []).insert(0, value)

    async def brpop(self, name, timeout=0):
        items = self.lists.get(name)
        if not items:
            return None
        return name, items.pop()


@pytest.mark.asyncio
async def test_redis_transport_delivers_in_publish_order():
    from journeyflow.transports.redis import RedisTransport

    transport = RedisTransport()
    transport._redis = FakeRedis()
    first, second = _event("cust-1"), _event("cust-1")
    await transport.publish("customer-events", first)
    await transport.publish("customer-events", second)

    stream = transport.subscribe("customer-events")
    raw, received = await stream.__anext__()
    assert received.id == first.id
    assert Event.from_json(raw).id == first.id
    assert transport._redis.lists["journeyflow:customer-events"] == [second.to_json()]
    _, received = await stream.__anext__()
    assert received.id == second.id
    await stream.aclose()
