"""Render and (simulate) deliver journey notifications."""

from __future__ import annotations

import asyncio
import logging
import random
from datetime import timedelta
from typing import TYPE_CHECKING, Any, Dict, Optional, Union

from jinja2 import TemplateError

from ..config import NotificationConfig
from ..constants import EMAIL_NOTIFICATIONS_TOPIC
from ..contracts import (
    EmailMessage,
    EmailRequestPayload,
    EmailSentPayload,
    EventType,
    utcnow,
)
from ..errors import DispatchError, TransportError
from ..models import Customer, DispatchResult, StepAction
from .templates import TEMPLATES

if TYPE_CHECKING:
    from ..bus import EventBus

logger = logging.getLogger(__name__)

DISCOUNT_CODE_PREFIXES = ("SAVE20NOW", "WELCOME20", "NEWBIE20", "SPECIAL20", "DEAL20")
REMINDER_CODE = "WELCOME-BACK-15"


class NotificationDispatcher:
    """Turns a step action into a rendered email and an ``EMAIL_SENT`` event."""

    def __init__(
        self,
        bus: "EventBus",
        config: Optional[NotificationConfig] = None,
        topic: str = EMAIL_NOTIFICATIONS_TOPIC,
        rng: Optional[random.Random] = None,
    ) -> None:
        self._bus = bus
        self._config = config or NotificationConfig()
        self._topic = topic
        self._rng = rng or random.Random()

    def generate_discount_code(self) -> str:
        prefix = self._rng.choice(DISCOUNT_CODE_PREFIXES)
        return f"{prefix}{self._rng.randrange(1000)}"

    async def dispatch(
        self,
        action: Union[StepAction, str],
        customer: Customer,
        context: Optional[Dict[str, Any]] = None,
    ) -> DispatchResult:
        """Render the template for ``action`` and deliver it to ``customer``.

        Raises:
            DispatchError: For an unknown action (not retryable) or when the
                rendering or the ``EMAIL_SENT`` publication fails.
        """
        try:
            step_action = StepAction(action)
        except ValueError:
            raise DispatchError(
                f"Unknown workflow action: {action}", action=str(action), retryable=False
            ) from None
        template = TEMPLATES.get(step_action)
        if template is None:
            raise DispatchError(
                f"No template for action: {step_action.value}",
                action=step_action.value,
                retryable=False,
            )

        context = dict(context or {})
        template_data = self._template_data(step_action, context)
        try:
            html = template.render(customer=customer, **template_data)
        except TemplateError as e:
            raise DispatchError(
                f"Failed to render {template.email_type} email: {e}",
                action=step_action.value,
                retryable=False,
            ) from e

        email = EmailMessage(
            to=customer.email,
            subject=template.subject,
            html=html,
            type=template.email_type,
            customer_id=customer.id,
            metadata=template_data,
        )

        try:
            await self._bus.publish(
                self._topic,
                EventType.EMAIL_REQUEST,
                EmailRequestPayload(
                    customer_id=customer.id, action=step_action.value, context=context
                ),
            )
            await self._simulate_delivery()
            sent_at = utcnow()
            event = await self._bus.publish(
                self._topic,
                EventType.EMAIL_SENT,
                EmailSentPayload(
                    customer_id=customer.id,
                    email_type=template.email_type,
                    email=email,
                    sent_at=sent_at,
                ),
            )
        except TransportError as e:
            raise DispatchError(
                f"Failed to deliver {template.email_type} email: {e}",
                action=step_action.value,
            ) from e

        logger.info(
            f"{template.email_type.capitalize()} email sent to {customer.name} ({customer.email})"
        )
        return DispatchResult(
            action=step_action, email=email, event_id=event.id, sent_at=sent_at
        )

    def _template_data(
        self, action: StepAction, context: Dict[str, Any]
    ) -> Dict[str, Any]:
        if action is StepAction.SEND_DISCOUNT_EMAIL:
            product = context.get("product") or {}
            expiry = utcnow() + timedelta(days=self._config.discount_valid_days)
            return {
                "discount_code": self.generate_discount_code(),
                "expiry_date": expiry.strftime("%a %b %d %Y"),
                "product_category": product.get("category") or "amazing products",
            }
        if action is StepAction.SEND_REMINDER_EMAIL:
            return {"reminder_code": REMINDER_CODE}
        return {}

    async def _simulate_delivery(self) -> None:
        low = self._config.min_delivery_delay
        high = max(low, self._config.max_delivery_delay)
        delay = self._rng.uniform(low, high)
        if delay > 0:
            await asyncio.sleep(delay)
