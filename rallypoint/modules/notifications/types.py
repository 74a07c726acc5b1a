"""Notification event types emitted by the match and invitation services."""

from __future__ import annotations

import enum


class NotificationType(str, enum.Enum):
    PLAYER_JOINED = "player_joined"
    MATCH_FULL = "match_full"
    MATCH_STARTED = "match_started"
    MATCH_FINISHED = "match_finished"
    WAITLIST_PROMOTED = "waitlist_promoted"
    INVITATION = "invitation"
    INVITATION_ACCEPTED = "invitation_accepted"
    INVITATION_DECLINED = "invitation_declined"


EVENT_PREFIX = "notification."


def event_name_for(event_type: str) -> str:
    """EventBus channel for a notification type: ``notification.<type>``."""
    return f"{EVENT_PREFIX}{event_type}"
