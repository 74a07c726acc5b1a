"""
Event system.

In-process EventBus used as the transport behind the notification
dispatcher. Services never publish directly; they emit through a
``NotificationDispatcher`` that owns the bus.
"""

from .bus import EventBus
from .registry import ListenerRegistry, matches_pattern
from .scheduler import EventScheduler
from .types import (
    CallbackType,
    EventListener,
    EventPayload,
    ListenerPriority,
)

__all__ = [
    "EventBus",
    "EventScheduler",
    "ListenerRegistry",
    "matches_pattern",
    "EventPayload",
    "ListenerPriority",
    "EventListener",
    "CallbackType",
]
