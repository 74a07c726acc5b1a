"""
Database Model Enums
====================

Categorical fields of the match schema. Stored by value (lowercase strings)
so rows stay readable and portable between PostgreSQL and SQLite.

These are declarative schema helpers; transition rules live in
``rallypoint.modules.matches.state_machine``.
"""

from __future__ import annotations

import enum


class MatchStatus(str, enum.Enum):
    """Lifecycle status of a match."""

    DRAFT = "draft"
    OPEN = "open"
    FULL = "full"
    IN_PROGRESS = "in_progress"
    FINISHED = "finished"
    CANCELED = "canceled"


class ParticipationStatus(str, enum.Enum):
    """
    Membership status of one user in one match.

    Only CONFIRMED and CHECKED_IN occupy a capacity slot.
    """

    PENDING = "pending"
    CONFIRMED = "confirmed"
    WAITLISTED = "waitlisted"
    CHECKED_IN = "checked_in"
    NO_SHOW = "no_show"


class InvitationStatus(str, enum.Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    EXPIRED = "expired"


class InvitationAction(str, enum.Enum):
    ACCEPT = "accept"
    DECLINE = "decline"


class MatchMode(str, enum.Enum):
    """How players are grouped: a single pool or pre-formed teams."""

    PLAYER_POOL = "player_pool"
    TEAMS = "teams"


class MatchVisibility(str, enum.Enum):
    PUBLIC = "public"
    PRIVATE = "private"


COUNTED_PARTICIPATION_STATUSES = frozenset(
    {ParticipationStatus.CONFIRMED, ParticipationStatus.CHECKED_IN}
)
