"""
Unit tests for InputValidator.
"""

import uuid
from datetime import datetime, timedelta, timezone

import pytest

from rallypoint.core.validation import InputValidator
from rallypoint.database.models.enums import MatchStatus
from rallypoint.modules.shared.exceptions import ValidationError


class TestIntegers:
    def test_accepts_numeric_strings(self):
        assert InputValidator.validate_integer("12", "max_players") == 12

    @pytest.mark.parametrize("value", [True, 2.5, "two", None])
    def test_rejects_non_integers(self, value):
        with pytest.raises(ValidationError):
            InputValidator.validate_integer(value, "max_players")

    def test_bounds(self):
        with pytest.raises(ValidationError) as exc_info:
            InputValidator.validate_integer(1, "max_players", min_value=2)
        assert exc_info.value.field == "max_players"

        with pytest.raises(ValidationError):
            InputValidator.validate_integer(101, "max_players", max_value=100)


class TestIdentifiers:
    def test_user_id_is_stripped(self):
        assert InputValidator.validate_user_id("  alice ") == "alice"

    @pytest.mark.parametrize("value", ["", "   ", "x" * 65, None])
    def test_user_id_rejects_empty_and_long(self, value):
        with pytest.raises(ValidationError):
            InputValidator.validate_user_id(value)

    def test_team_identifier_reports_its_field(self):
        assert InputValidator.validate_identifier(" red ", "team_id") == "red"

        with pytest.raises(ValidationError) as exc_info:
            InputValidator.validate_identifier("", "team_id")
        assert exc_info.value.field == "team_id"

    async def test_join_rejects_blank_team(self, open_match_factory, match_service):
        match = await open_match_factory()

        with pytest.raises(ValidationError) as exc_info:
            await match_service.join_match(match.id, "alice", team_id="  ")
        assert exc_info.value.field == "team_id"

    def test_uuid_from_string(self):
        value = uuid.uuid4()
        assert InputValidator.validate_uuid(str(value), "match_id") == value
        assert InputValidator.validate_uuid(value, "match_id") is value

    def test_uuid_rejects_garbage(self):
        with pytest.raises(ValidationError):
            InputValidator.validate_uuid("not-a-uuid", "match_id")


class TestChoices:
    def test_enum_member_and_case_insensitive(self):
        choices = [s.value for s in MatchStatus]
        assert InputValidator.validate_choice(MatchStatus.OPEN, "status", choices) == "open"
        assert InputValidator.validate_choice("FULL", "status", choices) == "full"

    def test_invalid_choice(self):
        with pytest.raises(ValidationError):
            InputValidator.validate_choice("archived", "status", ["open", "full"])


class TestDatetimes:
    def test_normalizes_to_utc(self):
        value = datetime(2030, 5, 1, 12, 0, tzinfo=timezone(timedelta(hours=2)))
        result = InputValidator.validate_datetime(value, "starts_at")
        assert result.tzinfo == timezone.utc
        assert result.hour == 10

    def test_parses_iso_strings(self):
        result = InputValidator.validate_datetime("2030-05-01T12:00:00+00:00", "starts_at")
        assert result == datetime(2030, 5, 1, 12, 0, tzinfo=timezone.utc)

    def test_naive_datetime_rejected(self):
        with pytest.raises(ValidationError):
            InputValidator.validate_datetime(datetime(2030, 5, 1), "starts_at")

    def test_not_before(self):
        now = datetime(2030, 5, 1, tzinfo=timezone.utc)
        with pytest.raises(ValidationError):
            InputValidator.validate_datetime(now, "starts_at", not_before=now)
