"""
Match lifecycle state machine.

Pure lookup of the legal outward edges per status; no I/O and no state.
Every write of ``Match.status`` goes through ``validate_transition`` first,
including the ``full -> open`` edge taken when a leave frees a slot.

    draft        -> open
    open         -> full, canceled
    full         -> in_progress, open
    in_progress  -> finished, canceled
    finished     -> (terminal)
    canceled     -> (terminal)
"""

from __future__ import annotations

from typing import FrozenSet, Mapping, Union

from rallypoint.database.models.enums import MatchStatus
from rallypoint.modules.shared.exceptions import InvalidTransitionError

StatusLike = Union[MatchStatus, str]

TRANSITIONS: Mapping[MatchStatus, FrozenSet[MatchStatus]] = {
    MatchStatus.DRAFT: frozenset({MatchStatus.OPEN}),
    MatchStatus.OPEN: frozenset({MatchStatus.FULL, MatchStatus.CANCELED}),
    MatchStatus.FULL: frozenset({MatchStatus.IN_PROGRESS, MatchStatus.OPEN}),
    MatchStatus.IN_PROGRESS: frozenset({MatchStatus.FINISHED, MatchStatus.CANCELED}),
    MatchStatus.FINISHED: frozenset(),
    MatchStatus.CANCELED: frozenset(),
}

TERMINAL_STATUSES: FrozenSet[MatchStatus] = frozenset(
    status for status, targets in TRANSITIONS.items() if not targets
)


def _coerce(status: StatusLike) -> MatchStatus:
    return status if isinstance(status, MatchStatus) else MatchStatus(status)


def allowed_transitions(current: StatusLike) -> FrozenSet[MatchStatus]:
    return TRANSITIONS[_coerce(current)]


def can_transition(current: StatusLike, target: StatusLike) -> bool:
    """
    True when ``current -> target`` is an edge of the table.

    Unknown status strings are never legal.
    """
    try:
        return _coerce(target) in TRANSITIONS[_coerce(current)]
    except ValueError:
        return False


def validate_transition(current: StatusLike, target: StatusLike) -> MatchStatus:
    """
    Return ``target`` as a MatchStatus, or raise InvalidTransitionError
    carrying the current status and its allowed set.
    """
    current_value = getattr(current, "value", current)
    target_value = getattr(target, "value", target)

    try:
        allowed = TRANSITIONS[_coerce(current)]
    except ValueError:
        raise InvalidTransitionError(str(current_value), str(target_value), []) from None

    if not can_transition(current, target):
        raise InvalidTransitionError(
            str(current_value),
            str(target_value),
            [s.value for s in allowed],
        )
    return _coerce(target)


def is_terminal(status: StatusLike) -> bool:
    return _coerce(status) in TERMINAL_STATUSES
