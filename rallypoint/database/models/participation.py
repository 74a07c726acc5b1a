"""
Participation: one user's membership in one match.

The unique constraint on (match_id, user_id) is the database-level guard
against double joins; services translate its violation into AlreadyJoined.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Index, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from rallypoint.core.database.base import Base, IdMixin, TimestampMixin, utc_now
from rallypoint.database.models.enums import COUNTED_PARTICIPATION_STATUSES, ParticipationStatus
from rallypoint.database.models.match import enum_column

PARTICIPATION_UNIQUE_CONSTRAINT = "uq_match_participations_match_user"


class Participation(Base, IdMixin, TimestampMixin):
    __tablename__ = "match_participations"
    __table_args__ = (
        UniqueConstraint("match_id", "user_id", name=PARTICIPATION_UNIQUE_CONSTRAINT),
        Index("ix_match_participations_match_status", "match_id", "status"),
    )

    match_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("matches.id", ondelete="CASCADE"),
        nullable=False,
    )

    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)

    team_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    status: Mapped[ParticipationStatus] = mapped_column(
        enum_column(ParticipationStatus),
        nullable=False,
        default=ParticipationStatus.CONFIRMED,
    )

    joined_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
    )

    @property
    def is_counted(self) -> bool:
        return self.status in COUNTED_PARTICIPATION_STATUSES

    def __repr__(self) -> str:
        return (
            f"<Participation(match_id={self.match_id}, user_id={self.user_id!r}, "
            f"status={self.status.value if self.status else None})>"
        )
