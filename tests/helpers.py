"""Test doubles shared across journeyflow tests."""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple

from journeyflow.bus import EventBus
from journeyflow.config import JourneyConfig
from journeyflow.contracts import Event
from journeyflow.engine import WorkflowEngine
from journeyflow.errors import DispatchError
from journeyflow.models import Customer
from journeyflow.notifications import NotificationDispatcher
from journeyflow.registry import CustomerRegistry
from journeyflow.timers import TimerManager
from journeyflow.transports import InMemoryTransport


def make_config(quiet_period: float = 60.0, **workflow) -> JourneyConfig:
    """Config with instant delivery and a controllable quiet period."""
    config = JourneyConfig()
    config.notifications.min_delivery_delay = 0.0
    config.notifications.max_delivery_delay = 0.0
    config.workflow.reminder_delay = quiet_period
    config.workflow.demo_mode = False
    for key, value in workflow.items():
        setattr(config.workflow, key, value)
    return config


class RecordingDispatcher(NotificationDispatcher):
    """Dispatcher that records every attempt and can fail on demand."""

    def __init__(self, *args, failures: int = 0, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.calls: List[Tuple[str, str]] = []
        self.failures = failures

    async def dispatch(self, action, customer: Customer, context: Optional[Dict[str, Any]] = None):
        self.calls.append((str(getattr(action, "value", action)), customer.id))
        if self.failures > 0:
            self.failures -= 1
            raise DispatchError("smtp unavailable", action=str(action))
        return await super().dispatch(action, customer, context)

    def count(self, action: str) -> int:
        return sum(1 for recorded, _ in self.calls if recorded == action)


class EventSpy:
    """Bus handler that keeps every event it sees."""

    def __init__(self) -> None:
        self.events: List[Event] = []

    async def __call__(self, topic: str, event: Event, metadata: Dict[str, Any]) -> None:
        self.events.append(event)

    def types(self) -> List[str]:
        return [e.type.value for e in self.events]


class EngineHarness:
    """Wires a bus, registry, timers and engine over an in-memory transport."""

    def __init__(self, config: JourneyConfig, failures: int = 0) -> None:
        self.config = config
        self.transport = InMemoryTransport()
        self.bus = EventBus(self.transport)
        self.registry = CustomerRegistry()
        self.timers = TimerManager()
        self.dispatcher = RecordingDispatcher(
            self.bus,
            config.notifications,
            topic=config.topics.email_notifications,
            failures=failures,
        )
        self.engine = WorkflowEngine(
            self.bus,
            self.registry,
            self.timers,
            self.dispatcher,
            config=config.workflow,
            topics=config.topics,
        )
        self.notifications = EventSpy()

    async def __aenter__(self) -> "EngineHarness":
        await self.bus.connect()
        await self.engine.start()
        await self.bus.subscribe([self.config.topics.email_notifications], self.notifications)
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.engine.stop()
        await self.bus.close()

    async def publish(self, event_type, payload) -> Event:
        topic = (
            self.config.topics.workflow_triggers
            if event_type.value.startswith("WORKFLOW")
            else self.config.topics.customer_events
        )
        event = await self.bus.publish(topic, event_type, payload)
        await self.bus.join(timeout=5)
        return event
