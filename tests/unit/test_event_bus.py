"""
Unit tests for the EventBus: subscription rules, wildcard routing, tiered
execution and listener isolation.
"""

import asyncio

import pytest

from rallypoint.core.event import EventBus, ListenerPriority, matches_pattern


class TestPatternMatching:
    @pytest.mark.parametrize(
        "event_name,pattern,expected",
        [
            ("notification.match_full", "notification.match_full", True),
            ("notification.match_full", "notification.*", True),
            ("notification.match_full", "*.match_full", True),
            ("notification.match_full", "*", True),
            ("notification.match_full", "match.*", False),
            ("notification.player_joined", "notification.match_full", False),
        ],
    )
    def test_matches_pattern(self, event_name, pattern, expected):
        assert matches_pattern(event_name, pattern) is expected


class TestSubscription:
    def test_listener_must_take_one_parameter(self):
        bus = EventBus()

        def two_args(payload, extra):
            return None

        with pytest.raises(ValueError):
            bus.subscribe("notification.match_full", two_args)

    def test_duplicate_identifier_is_blocked(self):
        bus = EventBus()

        def listener(payload):
            return None

        bus.subscribe("notification.match_full", listener, identifier="audit")
        bus.subscribe("notification.match_full", listener, identifier="audit")

        assert bus.get_listener_count("notification.match_full") == 1

    def test_unsubscribe_and_clear(self):
        bus = EventBus()
        bus.subscribe("notification.*", lambda payload: None, identifier="wild")
        bus.subscribe("notification.invitation", lambda payload: None, identifier="exact")

        assert bus.get_all_events() == ["notification.*", "notification.invitation"]
        assert bus.unsubscribe("notification.*", "wild") is True
        assert bus.get_listener_count() == 1
        assert bus.clear() == 1


class TestPublish:
    async def test_routes_to_exact_and_wildcard_listeners(self):
        bus = EventBus()
        received = []
        bus.subscribe("notification.match_full", lambda p: received.append(("exact", p["match_id"])))
        bus.subscribe("notification.*", lambda p: received.append(("wild", p["match_id"])))

        await bus.publish("notification.match_full", {"match_id": "m-1"})

        assert sorted(received) == [("exact", "m-1"), ("wild", "m-1")]

    async def test_tiers_run_in_priority_order(self):
        bus = EventBus()
        order = []

        async def record(name):
            order.append(name)

        bus.subscribe("evt", lambda p: record("normal"), priority=ListenerPriority.NORMAL, identifier="n")
        bus.subscribe("evt", lambda p: record("critical"), priority=ListenerPriority.CRITICAL, identifier="c")
        bus.subscribe("evt", lambda p: record("high"), priority=ListenerPriority.HIGH, identifier="h")

        await bus.publish("evt", {})

        assert order == ["critical", "high", "normal"]

    async def test_failing_listener_is_isolated(self):
        bus = EventBus()
        delivered = []

        def broken(payload):
            raise RuntimeError("listener down")

        bus.subscribe("evt", broken, identifier="broken")
        bus.subscribe("evt", lambda p: delivered.append(p), identifier="ok")

        await bus.publish("evt", {"x": 1})

        assert delivered == [{"x": 1}]
        assert bus.get_metrics()["listener_errors"] == {"evt": 1}

    async def test_timeout_counts_as_error(self):
        bus = EventBus(high_timeout_seconds=0.01)

        async def slow(payload):
            await asyncio.sleep(1)

        bus.subscribe("evt", slow, priority=ListenerPriority.HIGH)

        await bus.publish("evt", {})

        assert bus.get_metrics()["listener_errors"]["evt"] >= 1

    async def test_once_listener_runs_once(self):
        bus = EventBus()
        calls = []
        bus.subscribe("evt", lambda p: calls.append(p), once=True)

        await bus.publish("evt", {"n": 1})
        await bus.publish("evt", {"n": 2})

        assert calls == [{"n": 1}]

    async def test_low_priority_runs_in_background(self):
        bus = EventBus()
        done = asyncio.Event()

        async def background(payload):
            done.set()

        bus.subscribe("evt", background, priority=ListenerPriority.LOW)

        await bus.publish("evt", {})
        await bus.drain()

        assert done.is_set()
        assert bus.get_metrics()["background_tasks"] == 0

    async def test_payload_is_copied(self):
        bus = EventBus()

        def mutate(payload):
            payload["touched"] = True

        bus.subscribe("evt", mutate)
        original = {"match_id": "m-1"}

        await bus.publish("evt", original)

        assert "touched" not in original
