"""Journeyflow: event-driven customer journey workflows."""

__version__ = "0.1.0"

from .bus import EventBus
from .config import JourneyConfig, load_config
from .contracts import Event, EventType
from .engine import WorkflowEngine
from .errors import (
    DispatchError,
    JourneyError,
    NotFoundError,
    TimerRaceError,
    TransportError,
    ValidationError,
)
from .models import Customer, WorkflowState, WorkflowStatusView
from .notifications import NotificationDispatcher
from .registry import CustomerRegistry
from .service import JourneyService
from .timers import TimerManager
from .transports import get_transport

__all__ = [
    "Customer",
    "CustomerRegistry",
    "DispatchError",
    "Event",
    "EventBus",
    "EventType",
    "JourneyConfig",
    "JourneyError",
    "JourneyService",
    "NotFoundError",
    "NotificationDispatcher",
    "TimerManager",
    "TimerRaceError",
    "TransportError",
    "ValidationError",
    "WorkflowEngine",
    "WorkflowState",
    "WorkflowStatusView",
    "get_transport",
    "load_config",
]
