"""Shared constants for journeyflow."""

CUSTOMER_EVENTS_TOPIC = "customer-events"
WORKFLOW_TRIGGERS_TOPIC = "workflow-triggers"
EMAIL_NOTIFICATIONS_TOPIC = "email-notifications"

# Seven days of silence before the reminder step fires.
DEFAULT_REMINDER_DELAY = 7 * 24 * 60 * 60.0
DEFAULT_DEMO_REMINDER_DELAY = 30.0

DEFAULT_MIN_DELIVERY_DELAY = 0.5
DEFAULT_MAX_DELIVERY_DELAY = 2.5
DEFAULT_DISCOUNT_VALID_DAYS = 7
DEFAULT_NOTIFICATION_HISTORY = 1000

WELCOME_STEP_ID = 1
DISCOUNT_STEP_ID = 2
REMINDER_STEP_ID = 3
