"""
Invitation: time-limited offer for a user to join a match.

At most one *pending* invitation may exist per (match, invitee); the partial
unique index enforces it on both PostgreSQL and SQLite.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Index, String, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column

from rallypoint.core.database.base import Base, IdMixin, TimestampMixin, as_utc
from rallypoint.database.models.enums import InvitationStatus
from rallypoint.database.models.match import enum_column

PENDING_INVITATION_INDEX = "uq_match_invitations_pending_invitee"


class Invitation(Base, IdMixin, TimestampMixin):
    __tablename__ = "match_invitations"
    __table_args__ = (
        Index(
            PENDING_INVITATION_INDEX,
            "match_id",
            "invitee_id",
            unique=True,
            postgresql_where=text("status = 'pending'"),
            sqlite_where=text("status = 'pending'"),
        ),
        Index("ix_match_invitations_invitee_status", "invitee_id", "status"),
    )

    match_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("matches.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    inviter_id: Mapped[str] = mapped_column(String(64), nullable=False)

    invitee_id: Mapped[str] = mapped_column(String(64), nullable=False)

    team_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    status: Mapped[InvitationStatus] = mapped_column(
        enum_column(InvitationStatus),
        nullable=False,
        default=InvitationStatus.PENDING,
    )

    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    responded_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    @property
    def is_pending(self) -> bool:
        return self.status == InvitationStatus.PENDING

    def is_expired(self, now: datetime) -> bool:
        """True once ``now`` is past the expiry timestamp."""
        return now > as_utc(self.expires_at)

    def __repr__(self) -> str:
        return (
            f"<Invitation(id={self.id}, match_id={self.match_id}, "
            f"invitee_id={self.invitee_id!r}, status={self.status.value if self.status else None})>"
        )
