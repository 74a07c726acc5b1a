"""
Unit tests for the match lifecycle state machine.

Covers the full legality table, terminal statuses and the error raised for
illegal transitions.
"""

import itertools

import pytest

from rallypoint.database.models.enums import MatchStatus
from rallypoint.modules.matches import state_machine
from rallypoint.modules.shared.exceptions import InvalidTransitionError

LEGAL = {
    (MatchStatus.DRAFT, MatchStatus.OPEN),
    (MatchStatus.OPEN, MatchStatus.FULL),
    (MatchStatus.OPEN, MatchStatus.CANCELED),
    (MatchStatus.FULL, MatchStatus.IN_PROGRESS),
    (MatchStatus.FULL, MatchStatus.OPEN),
    (MatchStatus.IN_PROGRESS, MatchStatus.FINISHED),
    (MatchStatus.IN_PROGRESS, MatchStatus.CANCELED),
}


class TestTransitionTable:
    """Every (current, target) pair against the table."""

    @pytest.mark.parametrize(
        "current,target", list(itertools.product(MatchStatus, MatchStatus))
    )
    def test_can_transition_matches_table(self, current, target):
        assert state_machine.can_transition(current, target) is ((current, target) in LEGAL)

    def test_terminal_statuses(self):
        assert state_machine.TERMINAL_STATUSES == {MatchStatus.FINISHED, MatchStatus.CANCELED}
        assert state_machine.is_terminal("finished")
        assert not state_machine.is_terminal(MatchStatus.IN_PROGRESS)

    def test_allowed_transitions_accepts_strings(self):
        assert state_machine.allowed_transitions("full") == {
            MatchStatus.IN_PROGRESS,
            MatchStatus.OPEN,
        }

    def test_unknown_status_is_never_legal(self):
        assert state_machine.can_transition("archived", "open") is False
        assert state_machine.can_transition("open", "archived") is False


class TestValidateTransition:
    """validate_transition returns the target or raises with context."""

    def test_legal_transition_returns_enum(self):
        assert state_machine.validate_transition("draft", "open") is MatchStatus.OPEN

    def test_illegal_transition_carries_allowed_set(self):
        with pytest.raises(InvalidTransitionError) as exc_info:
            state_machine.validate_transition(MatchStatus.OPEN, MatchStatus.FINISHED)

        assert exc_info.value.current == "open"
        assert exc_info.value.target == "finished"
        assert exc_info.value.allowed == ["canceled", "full"]

    def test_cancel_after_finish_has_empty_allowed_set(self):
        """A finished match cannot be canceled; nothing is allowed from it."""
        with pytest.raises(InvalidTransitionError) as exc_info:
            state_machine.validate_transition(MatchStatus.FINISHED, MatchStatus.CANCELED)

        assert exc_info.value.allowed == []
        assert "none" in exc_info.value.message

    def test_self_transition_is_rejected(self):
        with pytest.raises(InvalidTransitionError):
            state_machine.validate_transition(MatchStatus.OPEN, MatchStatus.OPEN)

    def test_unknown_current_status(self):
        with pytest.raises(InvalidTransitionError) as exc_info:
            state_machine.validate_transition("archived", "open")

        assert exc_info.value.allowed == []
