"""Notification rendering and simulated delivery."""

from __future__ import annotations

from .dispatcher import NotificationDispatcher
from .templates import TEMPLATES, NotificationTemplate

__all__ = ["NotificationDispatcher", "NotificationTemplate", "TEMPLATES"]
