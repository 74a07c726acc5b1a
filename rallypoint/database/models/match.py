"""
Match: a scheduled game with a player capacity and a lifecycle status.
Pure schema; status changes go through the match state machine.
"""

from __future__ import annotations

import enum
from datetime import datetime
from typing import Optional, Type

from sqlalchemy import CheckConstraint, DateTime, Enum, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from rallypoint.core.database.base import Base, IdMixin, TimestampMixin
from rallypoint.database.models.enums import MatchMode, MatchStatus, MatchVisibility


def enum_column(enum_class: Type[enum.Enum], length: int = 20) -> Enum:
    """Non-native enum stored by member value."""
    return Enum(
        enum_class,
        native_enum=False,
        length=length,
        values_callable=lambda members: [m.value for m in members],
        validate_strings=True,
    )


class Match(Base, IdMixin, TimestampMixin):
    """
    Match record.

    ``current_players`` is the denormalized count of participations in a
    counted status; the CHECK constraint keeps it inside ``[0, max_players]``.
    """

    __tablename__ = "matches"
    __table_args__ = (
        CheckConstraint("max_players >= 2", name="max_players_min"),
        CheckConstraint(
            "current_players >= 0 AND current_players <= max_players",
            name="current_players_bounds",
        ),
        CheckConstraint("team_size >= 1", name="team_size_min"),
    )

    owner_id: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        index=True,
    )

    starts_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        index=True,
    )

    venue: Mapped[str] = mapped_column(String(200), nullable=False)

    max_players: Mapped[int] = mapped_column(Integer, nullable=False)

    team_size: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    mode: Mapped[MatchMode] = mapped_column(
        enum_column(MatchMode),
        nullable=False,
        default=MatchMode.PLAYER_POOL,
    )

    visibility: Mapped[MatchVisibility] = mapped_column(
        enum_column(MatchVisibility),
        nullable=False,
        default=MatchVisibility.PUBLIC,
    )

    status: Mapped[MatchStatus] = mapped_column(
        enum_column(MatchStatus),
        nullable=False,
        default=MatchStatus.DRAFT,
        index=True,
    )

    current_players: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    started_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    finished_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    canceled_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return (
            f"<Match(id={self.id}, status={self.status.value if self.status else None}, "
            f"players={self.current_players}/{self.max_players})>"
        )
