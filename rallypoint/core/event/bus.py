"""
EventBus: in-process publish/subscribe with tiered listener execution.

Purpose
-------
Decouple producers of domain events (the match and invitation services,
through the notification dispatcher) from consumers such as push/email
delivery adapters, audit trails or metrics exporters.

Design Decisions
----------------
- Listener signature is validated at subscription time (exactly one
  parameter, the payload) so mistakes surface at startup.
- ``publish()`` never raises because of a listener; failures are isolated and
  counted by the scheduler.
- Timeouts for the sequential tiers come from ConfigManager
  (``core.event.listener_timeout.*``) unless passed explicitly.

Examples
--------
>>> bus = EventBus()
>>> bus.subscribe("notification.*", deliver_push, priority=ListenerPriority.NORMAL)
>>> await bus.publish("notification.match_full", {"match_id": "...", "recipients": [...]})
"""

from __future__ import annotations

import inspect
from collections import Counter
from typing import Any, Dict, List, Optional

from rallypoint.core.event.registry import ListenerRegistry
from rallypoint.core.event.scheduler import EventScheduler
from rallypoint.core.event.types import (
    CallbackType,
    EventListener,
    EventPayload,
    ListenerPriority,
)
from rallypoint.core.logging.logger import LogContext, get_logger

logger = get_logger(__name__)


class EventBus:
    """
    Tiered publish/subscribe bus.

    Not thread-safe: subscribe/publish must be called from one event loop.
    """

    def __init__(
        self,
        registry: Optional[ListenerRegistry] = None,
        scheduler: Optional[EventScheduler] = None,
        config_manager: Any = None,
        *,
        critical_timeout_seconds: Optional[float] = None,
        high_timeout_seconds: Optional[float] = None,
    ) -> None:
        self._config_manager = config_manager
        self._registry = registry or ListenerRegistry()
        self._scheduler = scheduler or EventScheduler(on_error=self._record_error)
        self._published: Counter = Counter()
        self._errors: Counter = Counter()

        self._critical_timeout = self._load_timeout(
            "core.event.listener_timeout.critical_seconds", critical_timeout_seconds, 5.0
        )
        self._high_timeout = self._load_timeout(
            "core.event.listener_timeout.high_seconds", high_timeout_seconds, 5.0
        )

    def _load_timeout(self, key: str, override: Optional[float], default: float) -> float:
        if override is not None:
            return float(override)
        if self._config_manager is None:
            return float(default)
        return float(self._config_manager.get(key, default))

    def _record_error(self, event_name: str) -> None:
        self._errors[event_name] += 1

    @staticmethod
    def _validate_callback_signature(callback: CallbackType) -> None:
        try:
            sig = inspect.signature(callback)
        except (TypeError, ValueError):
            return

        params = list(sig.parameters.values())
        if len(params) != 1:
            name = getattr(callback, "__qualname__", None) or repr(callback)
            raise ValueError(
                f"Event listener must accept exactly 1 parameter (EventPayload), "
                f"got {len(params)} parameters for '{name}'"
            )

    # ------------------------------------------------------------------
    # Subscription
    # ------------------------------------------------------------------

    def subscribe(
        self,
        event_name: str,
        callback: CallbackType,
        *,
        priority: ListenerPriority = ListenerPriority.NORMAL,
        identifier: Optional[str] = None,
        once: bool = False,
        allow_duplicates: bool = False,
    ) -> str:
        """
        Subscribe ``callback`` to an event name or wildcard pattern.

        Returns the listener identifier for ``unsubscribe()``.

        Raises
        ------
        ValueError
            If the callback does not take exactly one parameter.
        """
        self._validate_callback_signature(callback)
        listener = EventListener.from_callback(
            event_name=event_name,
            callback=callback,
            priority=priority,
            identifier=identifier,
            once=once,
        )

        if self._registry.add_listener(event_name, listener, allow_duplicates=allow_duplicates):
            logger.debug(
                "EventBus: subscribed listener",
                extra={
                    "event_name": event_name,
                    "listener_id": listener.identifier,
                    "priority": listener.priority.name,
                },
            )
        else:
            logger.warning(
                "EventBus: duplicate listener prevented",
                extra={"event_name": event_name, "listener_id": listener.identifier},
            )
        return listener.identifier

    def unsubscribe(self, event_name: str, identifier: str) -> bool:
        return self._registry.remove_listener(event_name, identifier)

    def clear(self) -> int:
        """Remove every listener; returns how many were registered."""
        return self._registry.clear_all()

    # ------------------------------------------------------------------
    # Publishing
    # ------------------------------------------------------------------

    async def publish(self, event_name: str, data: EventPayload) -> List[Any]:
        """
        Deliver ``data`` to every matching listener.

        The payload is shallow-copied so listeners cannot mutate the
        producer's dict.
        """
        payload = dict(data)
        self._published[event_name] += 1

        async with LogContext(component="event_bus", operation=event_name):
            listeners = self._registry.extract_listeners_for_event(event_name)
            if not listeners:
                logger.debug("EventBus: no listeners", extra={"event_name": event_name})
                return []

            return await self._scheduler.execute(
                event_name=event_name,
                payload=payload,
                listeners=listeners,
                logger=logger,
                critical_timeout=self._critical_timeout,
                high_timeout=self._high_timeout,
            )

    async def drain(self) -> None:
        """Wait for background (LOW tier) listeners to finish."""
        await self._scheduler.drain()

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def get_listener_count(self, event_name: Optional[str] = None) -> int:
        if event_name is None:
            return self._registry.get_total_listener_count()
        return self._registry.get_listener_count_for_event(event_name)

    def get_all_events(self) -> List[str]:
        return self._registry.get_all_event_keys()

    def get_metrics(self) -> Dict[str, Any]:
        return {
            "published": dict(self._published),
            "listener_errors": dict(self._errors),
            "listeners": self._registry.get_total_listener_count(),
            "background_tasks": self._scheduler.get_background_task_count(),
        }
