"""
Unit tests for notification dispatch: EventBus-backed delivery and the
guarantee that dispatch failures never reach the caller.
"""

import pytest

from rallypoint.core.event import EventBus
from rallypoint.core.logging.logger import get_logger
from rallypoint.modules.notifications import (
    EventBusNotificationDispatcher,
    NotificationDispatcher,
    NotificationType,
)
from rallypoint.modules.notifications.types import event_name_for
from rallypoint.modules.shared.base_service import BaseService


class TestEventBusNotificationDispatcher:
    async def test_emit_publishes_on_notification_channel(self):
        bus = EventBus()
        received = []
        bus.subscribe("notification.*", lambda payload: received.append(payload))
        dispatcher = EventBusNotificationDispatcher(bus)

        dispatcher.emit(NotificationType.MATCH_FULL.value, {"match_id": "m-1", "recipients": ["a", "b"]})
        await dispatcher.drain()

        assert received == [{"event_type": "match_full", "match_id": "m-1", "recipients": ["a", "b"]}]
        assert dispatcher.emitted_count == 1
        assert dispatcher.pending_count() == 0

    async def test_emit_returns_before_delivery(self):
        bus = EventBus()
        received = []
        bus.subscribe("notification.invitation", lambda payload: received.append(payload))
        dispatcher = EventBusNotificationDispatcher(bus)

        dispatcher.emit("invitation", {"recipients": ["bob"]})

        assert received == []
        assert dispatcher.pending_count() == 1
        await dispatcher.drain()
        assert len(received) == 1

    async def test_publish_failure_is_counted_not_raised(self, mocker):
        bus = EventBus()
        mocker.patch.object(bus, "publish", side_effect=RuntimeError("bus down"))
        dispatcher = EventBusNotificationDispatcher(bus)

        dispatcher.emit("player_joined", {"recipients": []})
        await dispatcher.drain()

        assert dispatcher.failed_count == 1

    def test_emit_outside_event_loop_raises(self):
        dispatcher = EventBusNotificationDispatcher()
        with pytest.raises(RuntimeError):
            dispatcher.emit("player_joined", {})

    def test_satisfies_protocol(self):
        assert isinstance(EventBusNotificationDispatcher(), NotificationDispatcher)

    def test_event_name_for(self):
        assert event_name_for("waitlist_promoted") == "notification.waitlist_promoted"


class TestServiceEmission:
    """BaseService.emit_event never lets a dispatcher error escape."""

    def test_dispatcher_exception_is_swallowed(self, mocker, config_manager):
        notifier = mocker.Mock()
        notifier.emit.side_effect = RuntimeError("queue full")
        logger = get_logger("tests.emit")
        warning = mocker.patch.object(logger, "warning")
        service = BaseService(config_manager, notifier, logger)

        service.emit_event("match_full", {"recipients": ["a"]})

        notifier.emit.assert_called_once_with("match_full", {"recipients": ["a"]})
        warning.assert_called_once()
