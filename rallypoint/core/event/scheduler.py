"""
EventScheduler: tiered execution of listeners for one published event.

- CRITICAL and HIGH listeners run one after another, each under a timeout.
- NORMAL listeners run together via ``asyncio.gather``.
- LOW listeners are spawned as background tasks and tracked until done.

Every listener is isolated: an exception or timeout is logged and counted,
never propagated to the publisher.
"""

from __future__ import annotations

import asyncio
from logging import Logger
from typing import Any, Callable, List, Optional, Set

from rallypoint.core.event.types import EventListener, EventPayload, ListenerPriority


def handle_listener_error(
    *,
    logger: Logger,
    event_name: str,
    listener: EventListener,
    exc: BaseException,
) -> None:
    """Log a listener failure with its stack trace. Never raises."""
    logger.error(
        "EventBus listener error",
        extra={
            "event_name": event_name,
            "listener_id": listener.identifier,
            "priority": listener.priority.name,
            "error": str(exc),
            "error_type": type(exc).__name__,
        },
        exc_info=exc,
    )


class EventScheduler:
    def __init__(self, on_error: Optional[Callable[[str], None]] = None) -> None:
        self._background_tasks: Set["asyncio.Task[Any]"] = set()
        self._on_error = on_error

    async def execute(
        self,
        *,
        event_name: str,
        payload: EventPayload,
        listeners: List[EventListener],
        logger: Logger,
        critical_timeout: Optional[float],
        high_timeout: Optional[float],
    ) -> List[Any]:
        """
        Run ``listeners`` tier by tier.

        Returns results of the awaited tiers (CRITICAL, HIGH, NORMAL); LOW
        listeners are not awaited and contribute nothing.
        """
        results: List[Any] = []

        for tier, timeout in (
            (ListenerPriority.CRITICAL, critical_timeout),
            (ListenerPriority.HIGH, high_timeout),
        ):
            for listener in (l for l in listeners if l.priority is tier):
                results.append(
                    await self._run_with_timeout(listener, event_name, payload, logger, timeout)
                )

        normal = [l for l in listeners if l.priority is ListenerPriority.NORMAL]
        if normal:
            results.extend(
                await asyncio.gather(
                    *(self._run_listener(l, event_name, payload, logger) for l in normal)
                )
            )

        low = [l for l in listeners if l.priority is ListenerPriority.LOW]
        if low:
            loop = asyncio.get_running_loop()
            for listener in low:
                task = loop.create_task(
                    self._run_listener(listener, event_name, payload, logger),
                    name=f"eventbus-low-{event_name}-{listener.identifier}",
                )
                self._background_tasks.add(task)
                task.add_done_callback(self._background_tasks.discard)

        return results

    async def _run_with_timeout(
        self,
        listener: EventListener,
        event_name: str,
        payload: EventPayload,
        logger: Logger,
        timeout: Optional[float],
    ) -> Any:
        if timeout is None or timeout <= 0:
            return await self._run_listener(listener, event_name, payload, logger)

        try:
            return await asyncio.wait_for(
                self._run_listener(listener, event_name, payload, logger),
                timeout=timeout,
            )
        except asyncio.TimeoutError as exc:
            logger.error(
                "EventBus listener timeout",
                extra={
                    "event_name": event_name,
                    "listener_id": listener.identifier,
                    "timeout_seconds": timeout,
                },
            )
            self._record_error(event_name)
            handle_listener_error(logger=logger, event_name=event_name, listener=listener, exc=exc)
            return None

    async def _run_listener(
        self,
        listener: EventListener,
        event_name: str,
        payload: EventPayload,
        logger: Logger,
    ) -> Any:
        try:
            result = listener.callback(payload)
            if asyncio.iscoroutine(result):
                result = await result
            return result
        except Exception as exc:
            self._record_error(event_name)
            handle_listener_error(logger=logger, event_name=event_name, listener=listener, exc=exc)
            return None

    def _record_error(self, event_name: str) -> None:
        if self._on_error is not None:
            self._on_error(event_name)

    def get_background_task_count(self) -> int:
        return len(self._background_tasks)

    async def drain(self) -> None:
        """Wait for every LOW-tier task spawned so far."""
        while self._background_tasks:
            await asyncio.gather(*list(self._background_tasks), return_exceptions=True)
