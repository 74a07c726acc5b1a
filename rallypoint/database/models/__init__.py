"""
ORM models for the match engine.

Importing this package registers every table on ``Base.metadata``.
"""

from rallypoint.database.models.enums import (
    COUNTED_PARTICIPATION_STATUSES,
    InvitationAction,
    InvitationStatus,
    MatchMode,
    MatchStatus,
    MatchVisibility,
    ParticipationStatus,
)
from rallypoint.database.models.invitation import PENDING_INVITATION_INDEX, Invitation
from rallypoint.database.models.match import Match
from rallypoint.database.models.participation import (
    PARTICIPATION_UNIQUE_CONSTRAINT,
    Participation,
)

__all__ = [
    "Match",
    "Participation",
    "Invitation",
    "MatchStatus",
    "MatchMode",
    "MatchVisibility",
    "ParticipationStatus",
    "InvitationStatus",
    "InvitationAction",
    "COUNTED_PARTICIPATION_STATUSES",
    "PARTICIPATION_UNIQUE_CONSTRAINT",
    "PENDING_INVITATION_INDEX",
]
