"""
MatchService - match lifecycle and capacity-safe participation

Purpose
-------
Sole writer of ``Match.status`` and ``Match.current_players``. Creates and
publishes matches, runs the owner-gated lifecycle transitions, and admits
or removes participants without ever overshooting capacity.

Domain
------
- create / publish / start / finish / cancel a match
- join (confirmed or waitlisted) and leave, with waitlist auto-promotion
- read helpers: single match, listings, participants, allowed transitions

Concurrency
-----------
Each mutating call is one ``run_transaction()`` unit:

1. The Match row is loaded with ``SELECT ... FOR UPDATE``; all writers of
   one match queue behind that lock (``BEGIN IMMEDIATE`` on SQLite).
2. Counted participations are recounted inside the transaction.
3. A confirmed slot is taken only through the conditional increment in
   ``MatchRepository.try_claim_slot``; if it loses, the user is waitlisted.
4. Participation insert, counter change and status transition commit or
   roll back together. Unique-constraint races surface as AlreadyJoined.

Notifications are emitted once, after commit, and never fail the call.

Dependencies
------------
- ConfigManager: ``matches.*`` capacity bounds, waitlist capacity, list limits
- NotificationDispatcher: post-commit events
- DatabaseService / DatabaseRetryPolicy: via BaseService.run_transaction
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, FrozenSet, List, Mapping, Optional, Tuple, Union

from sqlalchemy.exc import IntegrityError

from rallypoint.core.logging.logger import LogContext
from rallypoint.core.validation.input_validator import InputValidator
from rallypoint.database.models.enums import (
    COUNTED_PARTICIPATION_STATUSES,
    MatchStatus,
    ParticipationStatus,
)
from rallypoint.database.models.match import Match
from rallypoint.database.models.participation import (
    PARTICIPATION_UNIQUE_CONSTRAINT,
    Participation,
)
from rallypoint.modules.matches import state_machine
from rallypoint.modules.matches.repository import MatchRepository, ParticipationRepository
from rallypoint.modules.matches.schemas import (
    Admission,
    JoinResult,
    LeaveResult,
    MatchCreateRequest,
)
from rallypoint.modules.notifications.types import NotificationType
from rallypoint.modules.shared.base_service import BaseService, is_unique_violation
from rallypoint.modules.shared.exceptions import (
    AlreadyJoinedError,
    InvalidStateError,
    MatchFullError,
    NotFoundError,
    NotParticipantError,
    UnauthorizedError,
)

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy.ext.asyncio import AsyncSession

    from rallypoint.core.config.manager import ConfigManager
    from rallypoint.core.database.retry_policy import DatabaseRetryPolicy
    from rallypoint.modules.notifications.dispatcher import NotificationDispatcher
    from rallypoint.modules.shared.base_service import Clock

JOINABLE_STATUSES: FrozenSet[MatchStatus] = frozenset({MatchStatus.OPEN, MatchStatus.FULL})
PROMOTION_STATUSES: FrozenSet[MatchStatus] = frozenset({MatchStatus.OPEN, MatchStatus.FULL})

_TRANSITION_TIMESTAMPS = {
    MatchStatus.IN_PROGRESS: "started_at",
    MatchStatus.FINISHED: "finished_at",
    MatchStatus.CANCELED: "canceled_at",
}


class MatchService(BaseService):
    """
    Match lifecycle and participation.

    Args:
        config_manager: ConfigManager (``matches.*`` keys)
        notifier: Receives ``player_joined``, ``match_full``,
            ``match_started``, ``match_finished`` and ``waitlist_promoted``
        logger: Structured logger
        retry_policy: Optional override of the transient-error retry policy
        clock: Optional clock returning aware UTC datetimes
    """

    def __init__(
        self,
        config_manager: ConfigManager,
        notifier: NotificationDispatcher,
        logger: Logger,
        *,
        retry_policy: Optional[DatabaseRetryPolicy] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        super().__init__(
            config_manager,
            notifier,
            logger,
            retry_policy=retry_policy,
            clock=clock,
        )
        self._matches = MatchRepository(Match, logger)
        self._participations = ParticipationRepository(Participation, logger)

    # =========================================================================
    # CREATE / READ
    # =========================================================================

    async def create_match(
        self,
        owner_id: str,
        data: Union[MatchCreateRequest, Mapping[str, Any]],
    ) -> Match:
        """
        Create a match owned by ``owner_id`` with no participants.

        The match starts in ``open`` when ``data.publish`` is true, otherwise
        in ``draft``.

        Raises:
            ValidationError: invalid owner id or request field
        """
        owner = InputValidator.validate_user_id(owner_id, "owner_id")
        request = data if isinstance(data, MatchCreateRequest) else MatchCreateRequest.from_mapping(data)
        request = request.validated(
            now=self.now(),
            min_players=int(self.get_config("matches.min_players", 2)),
            max_players=int(self.get_config("matches.max_players", 100)),
            max_team_size=int(self.get_config("matches.max_team_size", 50)),
        )
        initial_status = MatchStatus.OPEN if request.publish else MatchStatus.DRAFT

        async with LogContext(user_id=owner, operation="match.create"):

            async def work(session: AsyncSession) -> Match:
                match = Match(
                    owner_id=owner,
                    starts_at=request.starts_at,
                    venue=request.venue,
                    max_players=request.max_players,
                    team_size=request.team_size,
                    mode=request.mode,
                    visibility=request.visibility,
                    status=initial_status,
                    current_players=0,
                )
                self._matches.add(session, match)
                await self._matches.flush(session)
                return match

            match = await self.run_transaction("match.create", work)

            self.log.info(
                "Match created",
                extra={
                    "match_id": str(match.id),
                    "status": match.status.value,
                    "max_players": match.max_players,
                },
            )
            return match

    async def get_match(self, match_id: Any) -> Match:
        """
        Raises:
            NotFoundError: no match with this id
        """
        match_uuid = InputValidator.validate_uuid(match_id, "match_id")

        async def work(session: AsyncSession) -> Match:
            return await self._load_match(session, match_uuid)

        return await self.run_read("match.get", work)

    async def list_matches(
        self,
        *,
        status: Optional[Union[MatchStatus, str]] = None,
        owner_id: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[Match]:
        """Matches newest first, optionally filtered by status and owner."""
        status_filter = (
            MatchStatus(
                InputValidator.validate_choice(status, "status", [s.value for s in MatchStatus])
            )
            if status is not None
            else None
        )
        owner_filter = (
            InputValidator.validate_user_id(owner_id, "owner_id") if owner_id is not None else None
        )
        page_size = InputValidator.validate_integer(
            limit if limit is not None else self.get_config("matches.list_limit", 50),
            "limit",
            min_value=1,
            max_value=int(self.get_config("matches.max_list_limit", 200)),
        )

        async def work(session: AsyncSession) -> List[Match]:
            return await self._matches.list_matches(
                session, status=status_filter, owner_id=owner_filter, limit=page_size
            )

        return await self.run_read("match.list", work)

    async def get_participants(
        self,
        match_id: Any,
        status: Optional[Union[ParticipationStatus, str]] = None,
    ) -> List[Participation]:
        """Participations of a match in join order."""
        match_uuid = InputValidator.validate_uuid(match_id, "match_id")
        statuses = None
        if status is not None:
            statuses = [
                ParticipationStatus(
                    InputValidator.validate_choice(
                        status, "status", [s.value for s in ParticipationStatus]
                    )
                )
            ]

        async def work(session: AsyncSession) -> List[Participation]:
            await self._load_match(session, match_uuid)
            return await self._participations.list_for_match(session, match_uuid, statuses)

        return await self.run_read("match.participants", work)

    async def get_allowed_transitions(self, match_id: Any) -> List[MatchStatus]:
        match = await self.get_match(match_id)
        return sorted(state_machine.allowed_transitions(match.status), key=lambda s: s.value)

    # =========================================================================
    # OWNER TRANSITIONS
    # =========================================================================

    async def publish_match(self, match_id: Any, caller_id: str) -> Match:
        """
        ``draft -> open``; owner only.

        Raises:
            NotFoundError, UnauthorizedError, InvalidTransitionError
        """
        match, _ = await self._transition_as_owner(match_id, caller_id, MatchStatus.OPEN, "publish")
        return match

    async def start_match(self, match_id: Any, caller_id: str) -> Match:
        """``full -> in_progress``; owner only. Notifies all participants."""
        match, recipients = await self._transition_as_owner(
            match_id, caller_id, MatchStatus.IN_PROGRESS, "start"
        )
        self.emit_event(
            NotificationType.MATCH_STARTED.value,
            {**self._match_payload(match), "recipients": recipients},
        )
        return match

    async def finish_match(self, match_id: Any, caller_id: str) -> Match:
        """``in_progress -> finished``; owner only. Notifies all participants."""
        match, recipients = await self._transition_as_owner(
            match_id, caller_id, MatchStatus.FINISHED, "finish"
        )
        self.emit_event(
            NotificationType.MATCH_FINISHED.value,
            {**self._match_payload(match), "recipients": recipients},
        )
        return match

    async def cancel_match(self, match_id: Any, caller_id: str) -> Match:
        """``open | in_progress -> canceled``; owner only."""
        match, _ = await self._transition_as_owner(
            match_id, caller_id, MatchStatus.CANCELED, "cancel"
        )
        return match

    async def _transition_as_owner(
        self,
        match_id: Any,
        caller_id: str,
        target: MatchStatus,
        action: str,
    ) -> Tuple[Match, List[str]]:
        match_uuid = InputValidator.validate_uuid(match_id, "match_id")
        caller = InputValidator.validate_user_id(caller_id, "caller_id")
        operation = f"match.{action}"

        async with LogContext(user_id=caller, match_id=str(match_uuid), operation=operation):

            async def work(session: AsyncSession) -> Tuple[Match, List[str]]:
                match = await self._load_match(session, match_uuid, lock=True)
                if match.owner_id != caller:
                    raise UnauthorizedError(
                        f"{action} match {match_uuid}",
                        caller,
                        "only the match owner may change its status",
                    )

                previous = match.status
                match.status = state_machine.validate_transition(match.status, target)
                stamp = _TRANSITION_TIMESTAMPS.get(target)
                if stamp is not None:
                    setattr(match, stamp, self.now())
                await self._matches.flush(session)

                recipients = await self._participations.user_ids_for_match(session, match.id)
                self.log.info(
                    "Match status changed",
                    extra={"from_status": previous.value, "to_status": match.status.value},
                )
                return match, recipients

            return await self.run_transaction(operation, work)

    # =========================================================================
    # JOIN
    # =========================================================================

    async def join_match(
        self,
        match_id: Any,
        user_id: str,
        team_id: Optional[str] = None,
    ) -> JoinResult:
        """
        Join a match as confirmed, or waitlisted when it is at capacity.

        Raises:
            NotFoundError: match does not exist
            InvalidStateError: match is not open or full
            AlreadyJoinedError: user already holds a participation
            MatchFullError: waitlist is at its configured capacity
        """
        match_uuid = InputValidator.validate_uuid(match_id, "match_id")
        user = InputValidator.validate_user_id(user_id, "user_id")
        team = InputValidator.validate_identifier(team_id, "team_id") if team_id is not None else None

        async with LogContext(user_id=user, match_id=str(match_uuid), operation="match.join"):

            async def work(session: AsyncSession) -> Admission:
                return await self.admit_participant(session, match_uuid, user, team, action="join")

            admission = await self.run_transaction(
                "match.join",
                work,
                context={"match_id": str(match_uuid), "user_id": user},
            )

            self.log.info(
                "Player joined match",
                extra={
                    "participation_status": admission.participation.status.value,
                    "current_players": admission.match.current_players,
                    "max_players": admission.match.max_players,
                    "became_full": admission.became_full,
                },
            )
            self.notify_admission(admission)
            return JoinResult(participation=admission.participation, match=admission.match)

    async def admit_participant(
        self,
        session: AsyncSession,
        match_id: uuid.UUID,
        user_id: str,
        team_id: Optional[str],
        *,
        action: str,
    ) -> Admission:
        """
        Capacity-aware admission inside the caller's transaction.

        Shared by ``join_match`` and invitation acceptance. Locks the match,
        recounts confirmed participants, takes a slot or waitlists, and moves
        ``open -> full`` when the last slot goes. Emits nothing; callers
        notify after commit via ``notify_admission``.
        """
        match = await self._load_match(session, match_id, lock=True)
        if match.status not in JOINABLE_STATUSES:
            raise InvalidStateError(action, match.status.value)

        if await self._participations.find_for_user(session, match.id, user_id) is not None:
            raise AlreadyJoinedError(match.id, user_id)

        recipients = await self._participations.user_ids_for_match(session, match.id)
        counted = await self._participations.count_counted(session, match.id)

        status = ParticipationStatus.WAITLISTED
        became_full = False
        if counted < match.max_players and await self._matches.try_claim_slot(session, match.id):
            status = ParticipationStatus.CONFIRMED
            await self._matches.refresh(session, match, ["current_players", "updated_at"])
            if match.current_players >= match.max_players and match.status == MatchStatus.OPEN:
                match.status = state_machine.validate_transition(match.status, MatchStatus.FULL)
                became_full = True
        else:
            await self._check_waitlist_capacity(session, match)

        participation = Participation(
            match_id=match.id,
            user_id=user_id,
            team_id=team_id,
            status=status,
            joined_at=self.now(),
        )
        self._participations.add(session, participation)
        try:
            await self._participations.flush(session)
        except IntegrityError as exc:
            if is_unique_violation(
                exc,
                constraint_name=PARTICIPATION_UNIQUE_CONSTRAINT,
                table="match_participations",
                columns=("match_id", "user_id"),
            ):
                raise AlreadyJoinedError(match.id, user_id) from exc
            raise

        return Admission(
            participation=participation,
            match=match,
            became_full=became_full,
            recipients=recipients,
        )

    async def _check_waitlist_capacity(self, session: AsyncSession, match: Match) -> None:
        capacity = self.get_config("matches.waitlist_capacity")
        if capacity is None:
            return
        waitlisted = await self._participations.count_waitlisted(session, match.id)
        if waitlisted >= int(capacity):
            raise MatchFullError(match.id, match.max_players, waitlisted)

    def notify_admission(self, admission: Admission, **extra: Any) -> None:
        """Post-commit notifications for an admission."""
        participation = admission.participation
        payload = {
            **self._match_payload(admission.match),
            "user_id": participation.user_id,
            "participation_status": participation.status.value,
            **extra,
        }
        self.emit_event(
            NotificationType.PLAYER_JOINED.value,
            {**payload, "recipients": list(admission.recipients)},
        )
        if admission.became_full:
            self.emit_event(
                NotificationType.MATCH_FULL.value,
                {
                    **self._match_payload(admission.match),
                    "recipients": [*admission.recipients, participation.user_id],
                },
            )

    # =========================================================================
    # LEAVE
    # =========================================================================

    async def leave_match(self, match_id: Any, user_id: str) -> LeaveResult:
        """
        Remove the caller's participation.

        A freed confirmed slot goes to the oldest waitlisted participant when
        the match is open or full; otherwise the counter drops and a full
        match reopens.

        Raises:
            NotFoundError: match does not exist
            InvalidStateError: match is finished
            NotParticipantError: user has no participation
        """
        match_uuid = InputValidator.validate_uuid(match_id, "match_id")
        user = InputValidator.validate_user_id(user_id, "user_id")

        async with LogContext(user_id=user, match_id=str(match_uuid), operation="match.leave"):

            async def work(session: AsyncSession) -> LeaveResult:
                match = await self._load_match(session, match_uuid, lock=True)
                if match.status == MatchStatus.FINISHED:
                    raise InvalidStateError("leave", match.status.value)

                participation = await self._participations.find_for_user(session, match.id, user)
                if participation is None:
                    raise NotParticipantError(match.id, user)

                was_counted = participation.status in COUNTED_PARTICIPATION_STATUSES
                await self._participations.delete(session, participation)
                await self._participations.flush(session)

                promoted: Optional[Participation] = None
                if was_counted:
                    if match.status in PROMOTION_STATUSES:
                        promoted = await self._participations.next_waitlisted(session, match.id)
                    if promoted is not None:
                        promoted.status = ParticipationStatus.CONFIRMED
                        await self._participations.flush(session)
                    else:
                        await self._matches.release_slot(session, match.id)
                        await self._matches.refresh(session, match, ["current_players", "updated_at"])
                        if (
                            match.status == MatchStatus.FULL
                            and match.current_players < match.max_players
                        ):
                            match.status = state_machine.validate_transition(
                                match.status, MatchStatus.OPEN
                            )
                            await self._matches.flush(session)

                return LeaveResult(match=match, promoted=promoted)

            result = await self.run_transaction(
                "match.leave",
                work,
                context={"match_id": str(match_uuid), "user_id": user},
            )

            self.log.info(
                "Player left match",
                extra={
                    "current_players": result.match.current_players,
                    "status": result.match.status.value,
                    "promoted_user_id": result.promoted.user_id if result.promoted else None,
                },
            )
            if result.promoted is not None:
                self.emit_event(
                    NotificationType.WAITLIST_PROMOTED.value,
                    {
                        **self._match_payload(result.match),
                        "user_id": result.promoted.user_id,
                        "recipients": [result.promoted.user_id],
                    },
                )
            return result

    # =========================================================================
    # HELPERS
    # =========================================================================

    async def _load_match(
        self,
        session: AsyncSession,
        match_id: uuid.UUID,
        *,
        lock: bool = False,
    ) -> Match:
        if lock:
            match = await self._matches.get_for_update(session, match_id)
        else:
            match = await self._matches.get(session, match_id)
        if match is None:
            raise NotFoundError("Match", match_id)
        return match

    @staticmethod
    def _match_payload(match: Match) -> Dict[str, Any]:
        starts_at: Optional[datetime] = match.starts_at
        return {
            "match_id": str(match.id),
            "owner_id": match.owner_id,
            "status": match.status.value,
            "current_players": match.current_players,
            "max_players": match.max_players,
            "starts_at": starts_at.isoformat() if starts_at is not None else None,
            "venue": match.venue,
        }
