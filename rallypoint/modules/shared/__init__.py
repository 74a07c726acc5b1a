"""
Shared building blocks for the domain modules.

Only the exception taxonomy is re-exported here; import ``BaseService`` and
``BaseRepository`` from their modules.
"""

from rallypoint.modules.shared.exceptions import (
    AlreadyJoinedError,
    AlreadyParticipantError,
    AlreadyResolvedError,
    DuplicateInvitationError,
    InvalidStateError,
    InvalidTransitionError,
    InvitationExpiredError,
    MatchFullError,
    NotFoundError,
    NotParticipantError,
    RallyDomainException,
    TransientStoreError,
    UnauthorizedError,
    ValidationError,
    get_error_severity,
    is_transient_error,
    should_alert,
)

__all__ = [
    "RallyDomainException",
    "NotFoundError",
    "UnauthorizedError",
    "InvalidStateError",
    "InvalidTransitionError",
    "AlreadyJoinedError",
    "NotParticipantError",
    "AlreadyParticipantError",
    "DuplicateInvitationError",
    "AlreadyResolvedError",
    "InvitationExpiredError",
    "MatchFullError",
    "TransientStoreError",
    "ValidationError",
    "is_transient_error",
    "get_error_severity",
    "should_alert",
]
