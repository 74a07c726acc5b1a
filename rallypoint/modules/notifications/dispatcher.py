"""
Notification dispatch.

Purpose
-------
Decouple committed state changes from delivery. Services call a single
synchronous ``emit(event_type, payload)`` after their transaction commits;
the dispatcher schedules delivery in the background and returns at once.

Design Notes
------------
- ``NotificationDispatcher`` is the protocol the services depend on; any
  object with a matching ``emit`` satisfies it.
- ``EventBusNotificationDispatcher`` publishes on the in-process EventBus
  under ``notification.<event_type>``. Delivery adapters (push, email,
  websocket fan-out) subscribe there and are out of scope here.
- Every publish runs as a tracked ``asyncio`` task. Failures are logged at
  WARNING and counted; nothing is re-raised into the caller.
- ``drain()`` awaits outstanding deliveries (shutdown, tests).
"""

from __future__ import annotations

import asyncio
from typing import Any, Dict, Optional, Protocol, Set, runtime_checkable

from rallypoint.core.event.bus import EventBus
from rallypoint.core.logging.logger import get_logger
from rallypoint.modules.notifications.types import event_name_for

logger = get_logger(__name__)


@runtime_checkable
class NotificationDispatcher(Protocol):
    def emit(self, event_type: str, payload: Dict[str, Any]) -> None:
        """Schedule delivery of one notification; must not block or raise."""
        ...


class EventBusNotificationDispatcher:
    """Fire-and-forget dispatcher backed by an EventBus."""

    def __init__(self, event_bus: Optional[EventBus] = None) -> None:
        self._bus = event_bus or EventBus()
        self._pending: Set["asyncio.Task[Any]"] = set()
        self.emitted_count = 0
        self.failed_count = 0

    @property
    def event_bus(self) -> EventBus:
        return self._bus

    def emit(self, event_type: str, payload: Dict[str, Any]) -> None:
        """
        Schedule ``payload`` for delivery on ``notification.<event_type>``.

        Must be called from a running event loop.
        """
        loop = asyncio.get_running_loop()
        event_name = event_name_for(event_type)
        data = {"event_type": event_type, **payload}

        task = loop.create_task(self._deliver(event_name, data), name=f"notify-{event_type}")
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        self.emitted_count += 1

        logger.debug(
            "Notification scheduled",
            extra={"event_type": event_type, "recipients": len(payload.get("recipients", []))},
        )

    async def _deliver(self, event_name: str, data: Dict[str, Any]) -> None:
        try:
            await self._bus.publish(event_name, data)
        except Exception as exc:
            self.failed_count += 1
            logger.warning(
                "Notification delivery failed",
                extra={
                    "event_name": event_name,
                    "error": str(exc),
                    "error_type": type(exc).__name__,
                },
                exc_info=True,
            )

    def pending_count(self) -> int:
        return len(self._pending)

    async def drain(self) -> None:
        """Wait until every scheduled delivery, and the bus's background listeners, finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
        await self._bus.drain()
