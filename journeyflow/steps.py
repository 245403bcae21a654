"""Static catalog of the customer journey steps."""

from __future__ import annotations

from typing import Dict

from .constants import DISCOUNT_STEP_ID, REMINDER_STEP_ID, WELCOME_STEP_ID
from .contracts import EventType
from .models import StepAction, WorkflowStepDefinition


def build_step_catalog(quiet_period: float) -> Dict[int, WorkflowStepDefinition]:
    """Return the ordered step catalog with the reminder delay applied."""

    steps = [
        WorkflowStepDefinition(
            id=WELCOME_STEP_ID,
            name="Send Welcome Email",
            description="Send welcome email immediately after signup",
            trigger=EventType.CUSTOMER_SIGNUP,
            action=StepAction.SEND_WELCOME_EMAIL,
        ),
        WorkflowStepDefinition(
            id=DISCOUNT_STEP_ID,
            name="Send Discount Code",
            description="Send discount code after product page visit",
            trigger=EventType.PRODUCT_PAGE_VISIT,
            action=StepAction.SEND_DISCOUNT_EMAIL,
        ),
        WorkflowStepDefinition(
            id=REMINDER_STEP_ID,
            name="Send Reminder Email",
            description="Send reminder if the customer stays inactive",
            trigger=EventType.CUSTOMER_INACTIVE,
            action=StepAction.SEND_REMINDER_EMAIL,
            delay=quiet_period,
        ),
    ]
    return {step.id: step for step in steps}
