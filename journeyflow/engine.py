"""Event-driven per-customer workflow engine."""

from __future__ import annotations

import functools
import logging
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, Optional

from .bus import EventBus
from .config import TopicsConfig, WorkflowConfig
from .constants import REMINDER_STEP_ID
from .contracts import (
    CustomerInactivePayload,
    CustomerSignupPayload,
    Event,
    EventType,
    ProductVisitPayload,
    WorkflowStepPayload,
    WorkflowTriggerPayload,
    utcnow,
)
from .errors import DispatchError, NotFoundError, TimerRaceError, TransportError
from .models import (
    Customer,
    DispatchResult,
    ProductVisit,
    StepStatus,
    WorkflowStatusView,
    WorkflowStepDefinition,
)
from .notifications import NotificationDispatcher
from .registry import CustomerRegistry
from .steps import build_step_catalog
from .timers import TimerManager
from .utils.retry import retry_async

logger = logging.getLogger(__name__)


class WorkflowEngine:
    """Advances each customer's journey in response to bus events.

    Every step runs through the same sequence: look the customer up, apply
    the event's state update, check the idempotency gate, dispatch the
    notification and record completion. That sequence executes inside the
    registry's critical section for the customer, so duplicate triggers
    cannot both pass the gate.
    """

    def __init__(
        self,
        bus: EventBus,
        registry: CustomerRegistry,
        timers: TimerManager,
        dispatcher: NotificationDispatcher,
        config: Optional[WorkflowConfig] = None,
        topics: Optional[TopicsConfig] = None,
    ) -> None:
        self._bus = bus
        self._registry = registry
        self._timers = timers
        self._dispatcher = dispatcher
        self._config = config or WorkflowConfig()
        self._topics = topics or TopicsConfig()
        self._steps = build_step_catalog(self._config.quiet_period)
        self._step_by_trigger = {step.trigger: step for step in self._steps.values()}
        self._handlers: Dict[EventType, Callable[[Any], Awaitable[None]]] = {
            EventType.CUSTOMER_SIGNUP: self._on_signup,
            EventType.PRODUCT_PAGE_VISIT: self._on_product_visit,
            EventType.CUSTOMER_INACTIVE: self._on_customer_inactive,
            EventType.WORKFLOW_TRIGGER: self._on_workflow_trigger,
            EventType.WORKFLOW_STEP: self._on_step_completed,
        }

    @property
    def steps(self) -> Dict[int, WorkflowStepDefinition]:
        return dict(self._steps)

    @property
    def quiet_period(self) -> float:
        return self._steps[REMINDER_STEP_ID].delay

    async def start(self) -> None:
        """Subscribe to lifecycle and workflow topics."""
        logger.info("Initializing Workflow Engine...")
        await self._bus.subscribe(
            [self._topics.customer_events, self._topics.workflow_triggers],
            self.handle_event,
        )
        logger.info("Workflow Engine initialized successfully")

    async def stop(self) -> None:
        await self._timers.shutdown()

    async def handle_event(
        self, topic: str, event: Event, metadata: Dict[str, Any]
    ) -> None:
        """Route ``event`` to its handler; failures end here."""
        handler = self._handlers.get(event.type)
        if handler is None:
            logger.warning(f"Unknown event type on {topic}: {event.type.value}")
            return

        logger.info(
            f"Processing workflow event: {event.type.value} for customer {event.customer_id}"
        )
        try:
            await handler(event.payload())
        except NotFoundError as e:
            logger.warning(f"Discarding {event.type.value} event {event.id}: {e}")
        except Exception:
            logger.exception(f"Error processing workflow event {event.id}")

    # ------------------------------------------------------------------
    async def _on_signup(self, payload: CustomerSignupPayload) -> None:
        customer = Customer(
            id=payload.customer_id,
            email=payload.email,
            name=payload.name,
            preferences=payload.preferences,
            signup_date=payload.signup_date,
            last_activity=payload.signup_date,
        )
        if await self._registry.create(customer):
            logger.info(f"New customer signup: {customer.name} ({customer.email})")
        else:
            logger.info(f"Repeated signup for existing customer {customer.id}")

        try:
            await self.run_step(customer.id, self._step_by_trigger[EventType.CUSTOMER_SIGNUP])
        finally:
            self._arm_reminder(customer.id)

    async def _on_product_visit(self, payload: ProductVisitPayload) -> None:
        visit = ProductVisit(
            product_id=payload.product_id,
            product_name=payload.product_name,
            category=payload.category,
            visited_at=payload.visited_at,
        )

        def record_visit(customer: Customer) -> None:
            customer.record_product_visit(visit)
            logger.info(f"Product page visit: {customer.name} visited {visit.product_name}")

        # Any activity restarts the inactivity clock; the old timer must not
        # fire while the discount is being delivered.
        self._timers.cancel(payload.customer_id)
        try:
            await self.run_step(
                payload.customer_id,
                self._step_by_trigger[EventType.PRODUCT_PAGE_VISIT],
                context={"product": visit.model_dump(mode="json")},
                prepare=record_visit,
            )
        finally:
            if payload.customer_id in self._registry:
                self._arm_reminder(payload.customer_id)

    async def _on_customer_inactive(self, payload: CustomerInactivePayload) -> None:
        def ensure_still_inactive(customer: Customer) -> None:
            if payload.armed_at is not None and customer.last_activity > payload.armed_at:
                raise TimerRaceError(
                    f"customer {customer.id} was active after the reminder timer was armed"
                )

        try:
            await self.run_step(
                payload.customer_id,
                self._step_by_trigger[EventType.CUSTOMER_INACTIVE],
                prepare=ensure_still_inactive,
            )
        except TimerRaceError as e:
            logger.info(f"Skipping stale inactivity event: {e}")

    async def _on_workflow_trigger(self, payload: WorkflowTriggerPayload) -> None:
        step = self._steps.get(payload.step_id)
        if step is None:
            logger.warning(f"Workflow trigger for unknown step {payload.step_id}")
            return
        await self.run_step(payload.customer_id, step)

    async def _on_step_completed(self, payload: WorkflowStepPayload) -> None:
        logger.debug(
            f"Observed completion of step {payload.step_id} for customer {payload.customer_id}"
        )

    # ------------------------------------------------------------------
    async def run_step(
        self,
        customer_id: str,
        step: WorkflowStepDefinition,
        context: Optional[Dict[str, Any]] = None,
        prepare: Optional[Callable[[Customer], None]] = None,
    ) -> bool:
        """Execute ``step`` for ``customer_id`` unless already completed.

        Returns ``True`` when the step was completed by this call.

        Raises:
            NotFoundError: If the customer is unknown.
        """
        context = context or {}

        async def advance(customer: Customer) -> bool:
            if prepare is not None:
                prepare(customer)
            if customer.workflow_state.is_step_completed(step.id):
                logger.info(f"Step {step.name} already completed for customer {customer.name}")
                return False

            logger.info(f"Triggering workflow step: {step.name} for customer {customer.name}")
            try:
                result = await self._dispatch(step, customer, context)
            except DispatchError as e:
                logger.error(f"Workflow step failed: {step.name} for customer {customer.id}: {e}")
                return False
            customer.workflow_state.mark_step_completed(step, result.sent_at)
            logger.info(f"Workflow step completed: {step.name} for customer {customer.name}")
            return True

        completed = await self._registry.update(customer_id, advance)
        if completed:
            await self._announce_completion(customer_id, step, context)
        return completed

    async def _announce_completion(
        self, customer_id: str, step: WorkflowStepDefinition, context: Dict[str, Any]
    ) -> None:
        try:
            await self._bus.publish(
                self._topics.workflow_triggers,
                EventType.WORKFLOW_STEP,
                WorkflowStepPayload(
                    customer_id=customer_id,
                    step_id=step.id,
                    step_name=step.name,
                    action=step.action.value,
                    context=context,
                ),
            )
        except TransportError as e:
            # The step itself is already recorded; only the notice is lost.
            logger.error(f"Failed to announce completion of {step.name} for {customer_id}: {e}")

    async def _dispatch(
        self, step: WorkflowStepDefinition, customer: Customer, context: Dict[str, Any]
    ) -> DispatchResult:
        return await retry_async(
            lambda: self._dispatcher.dispatch(step.action, customer, context),
            attempts=self._config.dispatch_retries + 1,
            should_retry=lambda exc: isinstance(exc, DispatchError) and exc.retryable,
        )

    # ------------------------------------------------------------------
    def _arm_reminder(self, customer_id: str) -> None:
        armed_at = utcnow()
        self._timers.schedule(
            customer_id,
            self.quiet_period,
            functools.partial(self._on_reminder_due, armed_at=armed_at),
        )

    async def _on_reminder_due(self, customer_id: str, armed_at: datetime) -> None:
        try:
            await self._ensure_reminder_due(customer_id, armed_at)
        except TimerRaceError as e:
            logger.debug(f"Ignoring stale reminder timer: {e}")
            return
        except NotFoundError as e:
            logger.warning(f"Reminder timer fired for unknown customer: {e}")
            return

        logger.info(f"Customer {customer_id} has been inactive, triggering reminder workflow")
        await self._publish_inactive(customer_id, armed_at)

    async def _ensure_reminder_due(self, customer_id: str, armed_at: datetime) -> None:
        customer = await self._registry.get(customer_id)
        if customer is None:
            raise NotFoundError(customer_id)
        if customer.workflow_state.is_step_completed(REMINDER_STEP_ID):
            raise TimerRaceError(f"reminder already sent to customer {customer_id}")
        if customer.last_activity > armed_at:
            raise TimerRaceError(f"customer {customer_id} was active since the timer was armed")

    async def _publish_inactive(
        self, customer_id: str, armed_at: Optional[datetime] = None
    ) -> Event:
        return await self._bus.publish(
            self._topics.customer_events,
            EventType.CUSTOMER_INACTIVE,
            CustomerInactivePayload(customer_id=customer_id, armed_at=armed_at),
        )

    async def force_advance_time(self, customer_id: str) -> bool:
        """Fire the inactivity path now if a reminder timer is pending.

        Raises:
            NotFoundError: If the customer is unknown.
        """
        if customer_id not in self._registry:
            raise NotFoundError(customer_id)
        if not self._timers.cancel(customer_id):
            logger.info(f"No pending reminder for customer {customer_id}; nothing to advance")
            return False
        logger.info(f"Fast-forwarding time for customer {customer_id}")
        await self._publish_inactive(customer_id)
        return True

    # ------------------------------------------------------------------
    async def get_workflow_status(self, customer_id: str) -> Optional[WorkflowStatusView]:
        customer = await self._registry.get(customer_id)
        if customer is None:
            return None

        state = customer.workflow_state
        return WorkflowStatusView(
            customer=customer,
            steps=[
                StepStatus(
                    id=step.id,
                    name=step.name,
                    description=step.description,
                    completed=state.is_step_completed(step.id),
                    completed_at=state.step_completed_at.get(step.id),
                )
                for step in self._steps.values()
            ],
            current_step=state.current_step,
            completed_steps=sorted(state.completed_steps),
            has_active_reminder=self._timers.has_timer(customer_id),
            reminder_due_at=self._timers.due_at(customer_id),
        )
