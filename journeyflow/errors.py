"""Error taxonomy for the journey workflow core."""

from __future__ import annotations

from typing import Optional


class JourneyError(Exception):
    """Base class for all journeyflow errors."""


class ValidationError(JourneyError):
    """Input rejected at the boundary; never enters the core."""


class NotFoundError(JourneyError):
    """Raised when a customer id is unknown to the registry."""

    def __init__(self, customer_id: str) -> None:
        super().__init__(f"Customer not found: {customer_id}")
        self.customer_id = customer_id


class TransportError(JourneyError):
    """The event bus or its underlying transport is unavailable."""


class DispatchError(JourneyError):
    """A notification could not be rendered or delivered."""

    def __init__(
        self, message: str, action: Optional[str] = None, retryable: bool = True
    ) -> None:
        super().__init__(message)
        self.action = action
        self.retryable = retryable


class TimerRaceError(JourneyError):
    """A fired timer whose precondition no longer holds."""
