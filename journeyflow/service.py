"""Runtime wiring and the API-facing service facade."""

from __future__ import annotations

import logging
import uuid
from collections import deque
from typing import Any, Deque, Dict, List, Optional

from .bus import EventBus
from .config import JourneyConfig, load_config
from .contracts import (
    CustomerSignupPayload,
    EmailSentPayload,
    Event,
    EventType,
    ProductVisitPayload,
    utcnow,
)
from .engine import WorkflowEngine
from .errors import NotFoundError, TransportError
from .models import (
    Customer,
    ProductVisitRequest,
    SignupRequest,
    VisitRecord,
    WorkflowStatusView,
)
from .notifications import NotificationDispatcher
from .registry import CustomerRegistry
from .timers import TimerManager
from .transports import BaseTransport, InMemoryTransport, get_transport

logger = logging.getLogger(__name__)


class JourneyService:
    """Owns the workflow runtime and exposes the operations the API calls.

    Inputs are expected to be validated already; unknown customer ids are
    reported as ``None`` on reads and :class:`NotFoundError` on commands.
    """

    def __init__(
        self,
        config: Optional[JourneyConfig] = None,
        transport: Optional[BaseTransport] = None,
    ) -> None:
        self.config = config or load_config()
        self._transport = transport
        self.registry = CustomerRegistry()
        self.timers = TimerManager()
        self.degraded = False
        self._bus: Optional[EventBus] = None
        self._engine: Optional[WorkflowEngine] = None
        self._notifications: Deque[EmailSentPayload] = deque(
            maxlen=self.config.notifications.history_size
        )

    @property
    def bus(self) -> EventBus:
        if self._bus is None:
            raise RuntimeError("JourneyService not started")
        return self._bus

    @property
    def engine(self) -> WorkflowEngine:
        if self._engine is None:
            raise RuntimeError("JourneyService not started")
        return self._engine

    @property
    def started(self) -> bool:
        return self._engine is not None

    async def start(self) -> None:
        """Connect the bus, falling back to in-memory delivery if allowed."""
        if self.started:
            return
        transport = self._transport or get_transport(config=self.config)
        bus = EventBus(transport)
        try:
            await bus.connect()
        except TransportError as e:
            if not self.config.transport.fallback_to_inmemory:
                raise
            logger.warning(f"Event transport not available, using in-memory event processing: {e}")
            bus = EventBus(InMemoryTransport())
            await bus.connect()
            self.degraded = True

        dispatcher = NotificationDispatcher(
            bus, self.config.notifications, topic=self.config.topics.email_notifications
        )
        engine = WorkflowEngine(
            bus,
            self.registry,
            self.timers,
            dispatcher,
            config=self.config.workflow,
            topics=self.config.topics,
        )
        await engine.start()
        await bus.subscribe([self.config.topics.email_notifications], self._record_notification)
        self._bus = bus
        self._engine = engine

    async def stop(self) -> None:
        if self._engine is not None:
            await self._engine.stop()
        if self._bus is not None:
            await self._bus.close()
        self._engine = None
        self._bus = None

    async def __aenter__(self) -> "JourneyService":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.stop()

    async def wait_until_idle(self, timeout: Optional[float] = None) -> None:
        """Block until all in-process events have been handled."""
        await self.bus.join(timeout=timeout)

    # ------------------------------------------------------------------
    async def submit_signup(self, request: SignupRequest) -> Customer:
        """Publish a signup event and return the customer it will create."""
        customer = Customer(
            id=str(uuid.uuid4()),
            name=request.name,
            email=request.email,
            preferences=request.preferences,
        )
        await self.bus.publish(
            self.config.topics.customer_events,
            EventType.CUSTOMER_SIGNUP,
            CustomerSignupPayload(
                customer_id=customer.id,
                email=customer.email,
                name=customer.name,
                preferences=customer.preferences,
                signup_date=customer.signup_date,
            ),
        )
        logger.info(f"New customer created: {customer.name} ({customer.email})")
        return customer

    async def submit_product_visit(
        self, customer_id: str, request: ProductVisitRequest
    ) -> VisitRecord:
        customer = await self.registry.get(customer_id)
        if customer is None:
            raise NotFoundError(customer_id)

        payload = ProductVisitPayload(
            customer_id=customer_id,
            product_id=request.product_id,
            product_name=request.product_name,
            category=request.category or "General",
            visited_at=utcnow(),
        )
        event = await self.bus.publish(
            self.config.topics.customer_events, EventType.PRODUCT_PAGE_VISIT, payload
        )
        logger.info(f"Product page visit recorded: {customer.name} visited {payload.product_name}")
        return VisitRecord(
            event_id=event.id,
            customer_id=customer_id,
            product_id=payload.product_id,
            product_name=payload.product_name,
            category=payload.category,
            visited_at=payload.visited_at,
        )

    async def get_customer(self, customer_id: str) -> Optional[Customer]:
        return await self.registry.get(customer_id)

    async def list_customers(self) -> List[Customer]:
        return await self.registry.list()

    async def get_workflow_status(self, customer_id: str) -> Optional[WorkflowStatusView]:
        return await self.engine.get_workflow_status(customer_id)

    async def force_advance_time(self, customer_id: str) -> bool:
        return await self.engine.force_advance_time(customer_id)

    def list_notifications(self, customer_id: Optional[str] = None) -> List[EmailSentPayload]:
        """Recently sent notifications, oldest first."""
        return [
            n for n in self._notifications if customer_id is None or n.customer_id == customer_id
        ]

    async def _record_notification(
        self, topic: str, event: Event, metadata: Dict[str, Any]
    ) -> None:
        if event.type != EventType.EMAIL_SENT:
            return
        payload = event.payload()
        self._notifications.append(payload)
        logger.debug(f"Recorded {payload.email_type} email for customer {payload.customer_id}")
