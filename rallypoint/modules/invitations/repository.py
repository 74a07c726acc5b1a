"""Invitation data access."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import List, Optional

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from rallypoint.core.database.base import as_utc, utc_now
from rallypoint.database.models.enums import InvitationStatus
from rallypoint.database.models.invitation import Invitation
from rallypoint.modules.shared.base_repository import BaseRepository


class InvitationRepository(BaseRepository[Invitation]):
    async def find_pending(
        self,
        session: AsyncSession,
        match_id: uuid.UUID,
        invitee_id: str,
    ) -> Optional[Invitation]:
        """The single pending invitation for (match, invitee), if any."""
        return await self.find_one_where(
            session,
            Invitation.match_id == match_id,
            Invitation.invitee_id == invitee_id,
            Invitation.status == InvitationStatus.PENDING,
        )

    async def list_pending_for_invitee(
        self,
        session: AsyncSession,
        invitee_id: str,
        now: datetime,
        limit: int,
    ) -> List[Invitation]:
        """Pending, unexpired invitations newest first."""
        return await self.find_many_where(
            session,
            Invitation.invitee_id == invitee_id,
            Invitation.status == InvitationStatus.PENDING,
            Invitation.expires_at >= as_utc(now),
            order_by=(Invitation.created_at.desc(), Invitation.id),
            limit=limit,
        )

    async def expire_overdue(self, session: AsyncSession, now: datetime) -> int:
        """Flip every pending invitation whose expiry lies before ``now``; returns the count."""
        stmt = (
            update(Invitation)
            .where(
                Invitation.status == InvitationStatus.PENDING,
                Invitation.expires_at < as_utc(now),
            )
            .values(status=InvitationStatus.EXPIRED, updated_at=utc_now())
            .execution_options(synchronize_session=False)
        )
        result = await session.execute(stmt)
        expired = int(result.rowcount or 0)

        self.log.debug(
            "Repository.expire_overdue: Invitation",
            extra={"expired_count": expired},
        )
        return expired
