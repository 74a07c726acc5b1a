"""
Match and participation data access.

The capacity invariant is enforced here at the statement level: a slot is
only taken by a conditional increment that cannot push ``current_players``
past ``max_players``, whatever the caller believed the count to be.
"""

from __future__ import annotations

import uuid
from typing import Iterable, List, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from rallypoint.core.database.base import utc_now
from rallypoint.database.models.enums import (
    COUNTED_PARTICIPATION_STATUSES,
    MatchStatus,
    ParticipationStatus,
)
from rallypoint.database.models.match import Match
from rallypoint.database.models.participation import Participation
from rallypoint.modules.shared.base_repository import BaseRepository


class MatchRepository(BaseRepository[Match]):
    async def try_claim_slot(self, session: AsyncSession, match_id: uuid.UUID) -> bool:
        """
        Atomically take one confirmed slot.

        Returns False when the match is already at capacity; the caller's
        in-memory Match is stale afterwards and must be refreshed.
        """
        stmt = (
            update(Match)
            .where(Match.id == match_id, Match.current_players < Match.max_players)
            .values(current_players=Match.current_players + 1, updated_at=utc_now())
            .execution_options(synchronize_session=False)
        )
        result = await session.execute(stmt)
        claimed = result.rowcount == 1

        self.log.debug(
            "Repository.try_claim_slot: Match",
            extra={"match_id": str(match_id), "claimed": claimed},
        )
        return claimed

    async def release_slot(self, session: AsyncSession, match_id: uuid.UUID) -> bool:
        """Give back one slot; the counter never goes below zero."""
        stmt = (
            update(Match)
            .where(Match.id == match_id, Match.current_players > 0)
            .values(current_players=Match.current_players - 1, updated_at=utc_now())
            .execution_options(synchronize_session=False)
        )
        result = await session.execute(stmt)
        released = result.rowcount == 1

        self.log.debug(
            "Repository.release_slot: Match",
            extra={"match_id": str(match_id), "released": released},
        )
        return released

    async def list_matches(
        self,
        session: AsyncSession,
        *,
        status: Optional[MatchStatus] = None,
        owner_id: Optional[str] = None,
        limit: int,
    ) -> List[Match]:
        """Newest first."""
        conditions = []
        if status is not None:
            conditions.append(Match.status == status)
        if owner_id is not None:
            conditions.append(Match.owner_id == owner_id)
        return await self.find_many_where(
            session,
            *conditions,
            order_by=(Match.created_at.desc(), Match.id),
            limit=limit,
        )


class ParticipationRepository(BaseRepository[Participation]):
    _join_order = (Participation.joined_at, Participation.created_at, Participation.id)

    async def find_for_user(
        self,
        session: AsyncSession,
        match_id: uuid.UUID,
        user_id: str,
    ) -> Optional[Participation]:
        return await self.find_one_where(
            session,
            Participation.match_id == match_id,
            Participation.user_id == user_id,
        )

    async def count_counted(self, session: AsyncSession, match_id: uuid.UUID) -> int:
        """Participations occupying a capacity slot (confirmed or checked in)."""
        return await self.count(
            session,
            Participation.match_id == match_id,
            Participation.status.in_(sorted(COUNTED_PARTICIPATION_STATUSES)),
        )

    async def count_waitlisted(self, session: AsyncSession, match_id: uuid.UUID) -> int:
        return await self.count(
            session,
            Participation.match_id == match_id,
            Participation.status == ParticipationStatus.WAITLISTED,
        )

    async def next_waitlisted(
        self,
        session: AsyncSession,
        match_id: uuid.UUID,
    ) -> Optional[Participation]:
        """Oldest waitlisted participation, first in line for promotion."""
        rows = await self.find_many_where(
            session,
            Participation.match_id == match_id,
            Participation.status == ParticipationStatus.WAITLISTED,
            order_by=self._join_order,
            limit=1,
        )
        return rows[0] if rows else None

    async def list_for_match(
        self,
        session: AsyncSession,
        match_id: uuid.UUID,
        statuses: Optional[Iterable[ParticipationStatus]] = None,
    ) -> List[Participation]:
        conditions = [Participation.match_id == match_id]
        if statuses is not None:
            conditions.append(Participation.status.in_(list(statuses)))
        return await self.find_many_where(session, *conditions, order_by=self._join_order)

    async def user_ids_for_match(
        self,
        session: AsyncSession,
        match_id: uuid.UUID,
        statuses: Optional[Iterable[ParticipationStatus]] = None,
    ) -> List[str]:
        """User ids of the match's participants in join order."""
        stmt = select(Participation.user_id).where(Participation.match_id == match_id)
        if statuses is not None:
            stmt = stmt.where(Participation.status.in_(list(statuses)))
        stmt = stmt.order_by(*self._join_order)
        result = await session.execute(stmt)
        return list(result.scalars().all())
