"""Match lifecycle: state machine, request records, repositories and MatchService."""

from rallypoint.modules.matches.schemas import JoinResult, LeaveResult, MatchCreateRequest
from rallypoint.modules.matches.service import JOINABLE_STATUSES, MatchService
from rallypoint.modules.matches.state_machine import (
    TRANSITIONS,
    allowed_transitions,
    can_transition,
    validate_transition,
)

__all__ = [
    "MatchService",
    "MatchCreateRequest",
    "JoinResult",
    "LeaveResult",
    "JOINABLE_STATUSES",
    "TRANSITIONS",
    "allowed_transitions",
    "can_transition",
    "validate_transition",
]
