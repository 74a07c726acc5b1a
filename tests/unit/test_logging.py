"""
Unit tests for structured logging: context propagation and JSON output.
"""

import json
import logging

from rallypoint.core.logging.logger import (
    ContextFilter,
    JSONFormatter,
    LogContext,
    clear_log_context,
    get_log_context,
)


def _record(message="Player joined match", **extra):
    record = logging.LogRecord("rallypoint.test", logging.INFO, __file__, 10, message, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestLogContext:
    def test_nested_contexts_restore_outer_values(self):
        clear_log_context()

        with LogContext(user_id="alice", operation="match.join") as outer:
            with LogContext(match_id="m-1"):
                inner = get_log_context()
                assert inner["user_id"] == "alice"
                assert inner["match_id"] == "m-1"
                assert inner["correlation_id"] == outer.context["correlation_id"]
            assert "match_id" not in get_log_context()

        assert get_log_context() == {}

    async def test_async_context(self):
        async with LogContext(user_id="bob", correlation_id="abc123"):
            assert get_log_context()["correlation_id"] == "abc123"


class TestFormatting:
    def test_filter_stamps_context(self):
        record = _record()

        with LogContext(user_id="alice", match_id="m-1", correlation_id="c-1"):
            ContextFilter().filter(record)

        assert record.user_id == "alice"
        assert record.match_id == "m-1"
        assert record.correlation_id == "c-1"
        assert record.component == "test"

    def test_explicit_extra_wins_over_context(self):
        record = _record(match_id="m-explicit")

        with LogContext(match_id="m-ambient"):
            ContextFilter().filter(record)

        assert record.match_id == "m-explicit"

    def test_json_document_includes_extras(self):
        record = _record(current_players=2, max_players=4)
        with LogContext(user_id="alice", correlation_id="c-9"):
            ContextFilter().filter(record)

        document = json.loads(JSONFormatter().format(record))

        assert document["message"] == "Player joined match"
        assert document["user_id"] == "alice"
        assert document["correlation_id"] == "c-9"
        assert document["extra"] == {"current_players": 2, "max_players": 4}
