"""Event contracts exchanged over the journeyflow event bus."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Type, Union

from pydantic import BaseModel, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class EventType(str, Enum):
    """Closed set of event types carried on the bus."""

    CUSTOMER_SIGNUP = "CUSTOMER_SIGNUP"
    PRODUCT_PAGE_VISIT = "PRODUCT_PAGE_VISIT"
    CUSTOMER_INACTIVE = "CUSTOMER_INACTIVE"
    WORKFLOW_TRIGGER = "WORKFLOW_TRIGGER"
    WORKFLOW_STEP = "WORKFLOW_STEP"
    EMAIL_REQUEST = "EMAIL_REQUEST"
    EMAIL_SENT = "EMAIL_SENT"


class EmailMessage(BaseModel):
    """Rendered email as handed to the (simulated) delivery channel."""

    to: str
    subject: str
    html: str
    type: str
    customer_id: str
    metadata: Dict[str, Any] = Field(default_factory=dict)


class CustomerSignupPayload(BaseModel):
    customer_id: str
    email: str
    name: str
    preferences: Dict[str, Any] = Field(default_factory=dict)
    signup_date: datetime = Field(default_factory=utcnow)


class ProductVisitPayload(BaseModel):
    customer_id: str
    product_id: str
    product_name: str
    category: str = "General"
    visited_at: datetime = Field(default_factory=utcnow)


class CustomerInactivePayload(BaseModel):
    """Inactivity notice; ``armed_at`` is unset when time was advanced manually."""

    customer_id: str
    armed_at: Optional[datetime] = None


class WorkflowTriggerPayload(BaseModel):
    """Request to run a single workflow step for a customer."""

    customer_id: str
    step_id: int


class WorkflowStepPayload(BaseModel):
    """Completion notice for a workflow step."""

    customer_id: str
    step_id: int
    step_name: str
    action: str
    context: Dict[str, Any] = Field(default_factory=dict)


class EmailRequestPayload(BaseModel):
    customer_id: str
    action: str
    context: Dict[str, Any] = Field(default_factory=dict)


class EmailSentPayload(BaseModel):
    customer_id: str
    email_type: str
    email: EmailMessage
    sent_at: datetime = Field(default_factory=utcnow)


EventPayload = Union[
    CustomerSignupPayload,
    ProductVisitPayload,
    CustomerInactivePayload,
    WorkflowTriggerPayload,
    WorkflowStepPayload,
    EmailRequestPayload,
    EmailSentPayload,
]

PAYLOAD_MODELS: Dict[EventType, Type[BaseModel]] = {
    EventType.CUSTOMER_SIGNUP: CustomerSignupPayload,
    EventType.PRODUCT_PAGE_VISIT: ProductVisitPayload,
    EventType.CUSTOMER_INACTIVE: CustomerInactivePayload,
    EventType.WORKFLOW_TRIGGER: WorkflowTriggerPayload,
    EventType.WORKFLOW_STEP: WorkflowStepPayload,
    EventType.EMAIL_REQUEST: EmailRequestPayload,
    EventType.EMAIL_SENT: EmailSentPayload,
}


class Event(BaseModel):
    """Envelope exchanged over the bus.

    Serializes as ``{id, type, timestamp, data}`` with an ISO-8601 timestamp.
    ``data`` is the wire form of the typed payload for ``type``.
    """

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    type: EventType
    timestamp: datetime = Field(default_factory=utcnow)
    data: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def build(
        cls, event_type: EventType, payload: Union[BaseModel, Dict[str, Any]]
    ) -> "Event":
        """Create an envelope, validating ``payload`` against its event type."""
        model = PAYLOAD_MODELS[event_type]
        if not isinstance(payload, model):
            payload = model.model_validate(
                payload.model_dump() if isinstance(payload, BaseModel) else payload
            )
        return cls(type=event_type, data=payload.model_dump(mode="json"))

    @property
    def customer_id(self) -> Optional[str]:
        return self.data.get("customer_id")

    @property
    def key(self) -> str:
        """Ordering key: the customer id when present, else the event id."""
        return self.customer_id or self.id

    def payload(self) -> EventPayload:
        """Return the strongly typed payload for this event's type."""
        return PAYLOAD_MODELS[self.type].model_validate(self.data)  # type: ignore[return-value]

    def to_json(self) -> str:
        """Serialize event to JSON."""
        return self.model_dump_json()

    @classmethod
    def from_json(cls, data: str) -> "Event":
        """Deserialize event from JSON."""
        return cls.model_validate_json(data)
