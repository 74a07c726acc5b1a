"""
Core event types for the EventBus.

Priority Levels
---------------
- CRITICAL (0): sequential, awaited, timeout-protected.
- HIGH (10): sequential, awaited, timeout-protected.
- NORMAL (50): concurrent (``asyncio.gather``), awaited.
- LOW (100): fire-and-forget background tasks.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional, Union

EventPayload = Dict[str, Any]


class ListenerPriority(Enum):
    """Lower value runs earlier; the scheduler partitions listeners by tier."""

    CRITICAL = 0
    HIGH = 10
    NORMAL = 50
    LOW = 100


CallbackType = Union[
    Callable[[EventPayload], Any],
    Callable[[EventPayload], Awaitable[Any]],
]


@dataclass(frozen=True)
class EventListener:
    """
    Immutable listener registration.

    Attributes
    ----------
    callback:
        Async or sync callable invoked with the event payload.
    priority:
        Tier deciding ordering and concurrency.
    identifier:
        Unique id used for deduplication and unsubscription.
    once:
        Remove the listener before its first execution.
    """

    callback: CallbackType
    priority: ListenerPriority
    identifier: str
    once: bool = False

    @classmethod
    def from_callback(
        cls,
        event_name: str,
        callback: CallbackType,
        priority: ListenerPriority,
        identifier: Optional[str],
        once: bool,
    ) -> "EventListener":
        """Build a listener, deriving ``module.qualname@event`` when no id is given."""
        if identifier is None:
            module = getattr(callback, "__module__", "unknown")
            qualname = getattr(callback, "__qualname__", getattr(callback, "__name__", "callback"))
            identifier = f"{module}.{qualname}@{event_name}"

        return cls(callback=callback, priority=priority, identifier=identifier, once=once)
