"""Time-limited match invitations."""

from rallypoint.modules.invitations.service import INVITABLE_STATUSES, InvitationService

__all__ = [
    "InvitationService",
    "INVITABLE_STATUSES",
]
