"""
Integration Tests for concurrent participation on PostgreSQL
============================================================

Purpose
-------
Exercise the capacity guarantees with real row locks: many coroutines join,
leave and accept invitations for the same match at once, each on its own
connection, and the stored counters must still agree with the rows.

Testing Strategy
----------------
- PostgreSQL from testcontainers (tests/integration/conftest.py)
- Services wired exactly as in production, with a recording dispatcher
- Invariants checked by reading the store after the burst
"""

import asyncio

import pytest
from sqlalchemy import text

from rallypoint.core.database.service import DatabaseService
from rallypoint.database.models.enums import InvitationStatus, MatchStatus
from rallypoint.modules.shared.exceptions import (
    AlreadyJoinedError,
    AlreadyParticipantError,
    DuplicateInvitationError,
)


async def _counted_rows(match_id):
    async with DatabaseService.get_session() as session:
        result = await session.execute(
            text(
                "SELECT count(*) FROM match_participations "
                "WHERE match_id = :match_id AND status IN ('confirmed', 'checked_in')"
            ),
            {"match_id": match_id},
        )
        return result.scalar_one()


@pytest.mark.integration
@pytest.mark.database
class TestDatabaseService:
    async def test_health_check(self, database):
        assert await DatabaseService.health_check() is True

    async def test_rollback_on_error(self, database, open_match_factory, match_service):
        # Arrange
        match = await open_match_factory()

        # Act
        with pytest.raises(RuntimeError):
            async with DatabaseService.get_transaction() as session:
                await session.execute(
                    text("UPDATE matches SET venue = 'Moved' WHERE id = :id"), {"id": match.id}
                )
                raise RuntimeError("abort")

        # Assert
        assert (await match_service.get_match(match.id)).venue == "Riverside Court 3"


@pytest.mark.integration
@pytest.mark.database
@pytest.mark.slow
class TestConcurrentParticipation:
    async def test_join_burst_respects_capacity(self, open_match_factory, match_service):
        # Arrange
        match = await open_match_factory(max_players=5)

        # Act
        results = await asyncio.gather(
            *(match_service.join_match(match.id, f"player-{i}") for i in range(25))
        )

        # Assert
        stored = await match_service.get_match(match.id)
        assert sum(1 for r in results if not r.waitlisted) == 5
        assert stored.current_players == 5
        assert stored.status is MatchStatus.FULL
        assert await _counted_rows(match.id) == 5

    async def test_duplicate_joins_collapse_to_one(self, open_match_factory, match_service):
        # Arrange
        match = await open_match_factory(max_players=5)

        # Act
        results = await asyncio.gather(
            *(match_service.join_match(match.id, "alice") for _ in range(8)),
            return_exceptions=True,
        )

        # Assert
        assert sum(1 for r in results if not isinstance(r, Exception)) == 1
        assert all(
            isinstance(r, AlreadyJoinedError) for r in results if isinstance(r, Exception)
        )
        assert (await match_service.get_match(match.id)).current_players == 1

    async def test_mixed_leave_join_keeps_counter_exact(self, open_match_factory, match_service):
        # Arrange
        match = await open_match_factory(max_players=4)
        for i in range(6):
            await match_service.join_match(match.id, f"seed-{i}")

        # Act
        await asyncio.gather(
            *(match_service.leave_match(match.id, f"seed-{i}") for i in range(3)),
            *(match_service.join_match(match.id, f"late-{i}") for i in range(3)),
        )

        # Assert
        stored = await match_service.get_match(match.id)
        assert stored.current_players == await _counted_rows(match.id)
        assert stored.current_players == 4
        assert stored.status is MatchStatus.FULL

    async def test_accepts_race_for_last_slot(
        self, open_match_factory, match_service, invitation_service
    ):
        # Arrange
        match = await open_match_factory(max_players=3)
        await match_service.join_match(match.id, "alice")
        await match_service.join_match(match.id, "bob")
        invitations = [
            await invitation_service.create_invitation(match.id, "owner-1", f"guest-{i}")
            for i in range(4)
        ]

        # Act
        await asyncio.gather(
            *(
                invitation_service.respond_to_invitation(inv.id, inv.invitee_id, "accept")
                for inv in invitations
            )
        )

        # Assert
        stored = await match_service.get_match(match.id)
        assert stored.current_players == 3
        assert await _counted_rows(match.id) == 3
        waitlisted = await match_service.get_participants(match.id, status="waitlisted")
        assert len(waitlisted) == 3
        for inv in invitations:
            refreshed = await invitation_service.get_invitation(inv.id)
            assert refreshed.status is InvitationStatus.ACCEPTED

    async def test_concurrent_duplicate_invitations(self, open_match_factory, invitation_service):
        # Arrange
        match = await open_match_factory()

        # Act
        results = await asyncio.gather(
            *(invitation_service.create_invitation(match.id, "owner-1", "bob") for _ in range(5)),
            return_exceptions=True,
        )

        # Assert
        assert sum(1 for r in results if not isinstance(r, Exception)) == 1
        assert all(
            isinstance(r, DuplicateInvitationError) for r in results if isinstance(r, Exception)
        )

    async def test_invitation_never_issued_after_racing_join(
        self, open_match_factory, match_service, invitation_service
    ):
        # Arrange
        match = await open_match_factory(max_players=10)

        async def tracked(label, coro, finished):
            try:
                return await coro
            finally:
                finished.append(label)

        for round_number in range(8):
            invitee = f"guest-{round_number}"
            finished = []

            # Act
            invite_result, join_result = await asyncio.gather(
                tracked(
                    "invite",
                    invitation_service.create_invitation(match.id, "owner-1", invitee),
                    finished,
                ),
                tracked("join", match_service.join_match(match.id, invitee), finished),
                return_exceptions=True,
            )

            # Assert
            assert not isinstance(join_result, Exception)
            if isinstance(invite_result, Exception):
                assert isinstance(invite_result, AlreadyParticipantError)
                assert await invitation_service.list_pending_invitations(invitee) == []
            else:
                # The invitation committed first; the join queued behind it
                assert finished == ["invite", "join"]
