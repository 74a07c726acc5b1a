"""Fire-and-forget notification dispatch for committed match events."""

from rallypoint.modules.notifications.dispatcher import (
    EventBusNotificationDispatcher,
    NotificationDispatcher,
)
from rallypoint.modules.notifications.types import EVENT_PREFIX, NotificationType, event_name_for

__all__ = [
    "NotificationDispatcher",
    "EventBusNotificationDispatcher",
    "NotificationType",
    "EVENT_PREFIX",
    "event_name_for",
]
