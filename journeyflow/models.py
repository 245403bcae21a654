"""Domain models for customers and their workflow state."""

from __future__ import annotations

import math
import uuid
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Set

from pydantic import BaseModel, ConfigDict, Field

from .contracts import EmailMessage, EventType, utcnow


class StepAction(str, Enum):
    """Action identifiers understood by the notification dispatcher."""

    SEND_WELCOME_EMAIL = "SEND_WELCOME_EMAIL"
    SEND_DISCOUNT_EMAIL = "SEND_DISCOUNT_EMAIL"
    SEND_REMINDER_EMAIL = "SEND_REMINDER_EMAIL"


class WorkflowStepDefinition(BaseModel):
    """Static catalog entry for one workflow step."""

    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    description: str
    trigger: EventType
    action: StepAction
    delay: float = 0.0


class WorkflowState(BaseModel):
    """Per-customer progress through the journey."""

    current_step: int = 0
    completed_steps: Set[int] = Field(default_factory=set)
    welcome_email_sent: bool = False
    discount_code_sent: bool = False
    reminder_sent: bool = False
    last_email_sent: Optional[datetime] = None
    step_completed_at: Dict[int, datetime] = Field(default_factory=dict)

    def is_step_completed(self, step_id: int) -> bool:
        return step_id in self.completed_steps

    def mark_step_completed(
        self, step: WorkflowStepDefinition, at: Optional[datetime] = None
    ) -> None:
        """Record ``step`` as done and advance the high-water mark."""
        at = at or utcnow()
        if step.action is StepAction.SEND_WELCOME_EMAIL:
            self.welcome_email_sent = True
        elif step.action is StepAction.SEND_DISCOUNT_EMAIL:
            self.discount_code_sent = True
        elif step.action is StepAction.SEND_REMINDER_EMAIL:
            self.reminder_sent = True
        self.last_email_sent = at
        if step.id not in self.completed_steps:
            self.completed_steps.add(step.id)
            self.step_completed_at[step.id] = at
        self.current_step = max(self.current_step, step.id + 1)


class ProductVisit(BaseModel):
    product_id: str
    product_name: str
    category: str = "General"
    visited_at: datetime = Field(default_factory=utcnow)


def _elapsed_days(since: datetime) -> int:
    seconds = abs((utcnow() - since).total_seconds())
    return math.ceil(seconds / 86400)


class Customer(BaseModel):
    """Customer entity owned by the registry."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    email: str
    name: str
    signup_date: datetime = Field(default_factory=utcnow)
    last_activity: datetime = Field(default_factory=utcnow)
    preferences: Dict[str, Any] = Field(default_factory=dict)
    metadata: Dict[str, Any] = Field(default_factory=dict)
    workflow_state: WorkflowState = Field(default_factory=WorkflowState)

    @property
    def days_since_signup(self) -> int:
        return _elapsed_days(self.signup_date)

    @property
    def days_since_last_activity(self) -> int:
        return _elapsed_days(self.last_activity)

    @property
    def last_product_visit(self) -> Optional[ProductVisit]:
        data = self.metadata.get("last_product_visit")
        return ProductVisit.model_validate(data) if data else None

    def touch(self, at: Optional[datetime] = None) -> None:
        """Refresh the last-activity timestamp."""
        self.last_activity = at or utcnow()

    def record_product_visit(self, visit: ProductVisit) -> None:
        self.touch()
        self.metadata["last_product_visit"] = visit.model_dump(mode="json")


class StepStatus(BaseModel):
    id: int
    name: str
    description: str
    completed: bool
    completed_at: Optional[datetime] = None


class WorkflowStatusView(BaseModel):
    """Read-only projection of a customer's journey progress."""

    customer: Customer
    steps: List[StepStatus]
    current_step: int
    completed_steps: List[int]
    has_active_reminder: bool
    reminder_due_at: Optional[datetime] = None


class VisitRecord(BaseModel):
    """Acknowledgement returned for an accepted product visit."""

    event_id: str
    customer_id: str
    product_id: str
    product_name: str
    category: str
    visited_at: datetime


class DispatchResult(BaseModel):
    """Outcome of a single successful notification dispatch."""

    action: StepAction
    email: EmailMessage
    event_id: str
    sent_at: datetime


class SignupRequest(BaseModel):
    """Signup input after boundary validation."""

    name: str
    email: str
    preferences: Dict[str, Any] = Field(default_factory=dict)


class ProductVisitRequest(BaseModel):
    """Product visit input after boundary validation."""

    product_id: str
    product_name: str
    category: Optional[str] = None
