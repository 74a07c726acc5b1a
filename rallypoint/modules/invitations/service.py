"""
InvitationService - time-limited invitations to a match

Purpose
-------
Issue invitations and resolve them. Acceptance admits the invitee through
``MatchService.admit_participant`` inside the same transaction that marks
the invitation accepted, so an invitation is never accepted unless the join
really happened.

Rules
-----
- Invitations can be issued while the match is draft, open or full.
- One pending invitation per (match, invitee); an overdue pending one is
  expired on the spot instead of blocking a new invitation.
- Expiry is evaluated lazily when the invitee responds: the invitation is
  flipped to ``expired``, that change commits, then InvitationExpired is
  raised. ``expire_stale_invitations`` is an optional cleanup sweep.

Lock order on accept is invitation row first, then match row.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any, FrozenSet, List, Optional, Union

from sqlalchemy.exc import IntegrityError

from rallypoint.core.logging.logger import LogContext
from rallypoint.core.validation.input_validator import InputValidator
from rallypoint.database.models.enums import InvitationAction, InvitationStatus, MatchStatus
from rallypoint.database.models.invitation import PENDING_INVITATION_INDEX, Invitation
from rallypoint.database.models.match import Match
from rallypoint.database.models.participation import Participation
from rallypoint.modules.invitations.repository import InvitationRepository
from rallypoint.modules.matches.repository import MatchRepository, ParticipationRepository
from rallypoint.modules.matches.schemas import Admission
from rallypoint.modules.matches.service import MatchService
from rallypoint.modules.notifications.types import NotificationType
from rallypoint.modules.shared.base_service import BaseService, is_unique_violation
from rallypoint.modules.shared.exceptions import (
    AlreadyParticipantError,
    AlreadyResolvedError,
    DuplicateInvitationError,
    InvalidStateError,
    InvitationExpiredError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy.ext.asyncio import AsyncSession

    from rallypoint.core.config.manager import ConfigManager
    from rallypoint.core.database.retry_policy import DatabaseRetryPolicy
    from rallypoint.modules.notifications.dispatcher import NotificationDispatcher
    from rallypoint.modules.shared.base_service import Clock

INVITABLE_STATUSES: FrozenSet[MatchStatus] = frozenset(
    {MatchStatus.DRAFT, MatchStatus.OPEN, MatchStatus.FULL}
)


@dataclass
class _Response:
    invitation: Invitation
    admission: Optional[Admission] = None
    expired: bool = False


class InvitationService(BaseService):
    """
    Invitation creation and response.

    Args:
        config_manager: ConfigManager (``matches.invitation_ttl_days``)
        notifier: Receives ``invitation``, ``invitation_accepted``,
            ``invitation_declined`` plus the join notifications on accept
        logger: Structured logger
        match_service: MatchService used for admission; built from the same
            dependencies when omitted
    """

    def __init__(
        self,
        config_manager: ConfigManager,
        notifier: NotificationDispatcher,
        logger: Logger,
        match_service: Optional[MatchService] = None,
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
        self._match_service = match_service or MatchService(
            config_manager,
            notifier,
            logger,
            retry_policy=retry_policy,
            clock=clock,
        )
        self._invitations = InvitationRepository(Invitation, logger)
        self._matches = MatchRepository(Match, logger)
        self._participations = ParticipationRepository(Participation, logger)

    def _ttl(self) -> timedelta:
        days = InputValidator.validate_integer(
            self.get_config("matches.invitation_ttl_days", 7, required=True),
            "matches.invitation_ttl_days",
            min_value=1,
        )
        return timedelta(days=days)

    # =========================================================================
    # CREATE
    # =========================================================================

    async def create_invitation(
        self,
        match_id: Any,
        inviter_id: str,
        invitee_id: str,
        team_id: Optional[str] = None,
    ) -> Invitation:
        """
        Invite ``invitee_id`` to a match.

        Raises:
            ValidationError: inviter and invitee are the same user
            NotFoundError: match does not exist
            UnauthorizedError: inviter is neither the owner nor a participant
            InvalidStateError: match no longer accepts members
            AlreadyParticipantError: invitee already has a participation
            DuplicateInvitationError: a live pending invitation exists
        """
        match_uuid = InputValidator.validate_uuid(match_id, "match_id")
        inviter = InputValidator.validate_user_id(inviter_id, "inviter_id")
        invitee = InputValidator.validate_user_id(invitee_id, "invitee_id")
        if inviter == invitee:
            raise ValidationError("invitee_id", "Cannot invite yourself")
        team = InputValidator.validate_identifier(team_id, "team_id") if team_id is not None else None
        ttl = self._ttl()

        async with LogContext(user_id=inviter, match_id=str(match_uuid), operation="invitation.create"):

            async def work(session: AsyncSession) -> Invitation:
                now = self.now()
                match = await self._matches.get_for_update(session, match_uuid)
                if match is None:
                    raise NotFoundError("Match", match_uuid)
                if (
                    match.owner_id != inviter
                    and await self._participations.find_for_user(session, match.id, inviter) is None
                ):
                    raise UnauthorizedError(
                        f"invite to match {match.id}",
                        inviter,
                        "only the owner or a participant may invite",
                    )
                if match.status not in INVITABLE_STATUSES:
                    raise InvalidStateError("invite to", match.status.value)

                if await self._participations.find_for_user(session, match.id, invitee) is not None:
                    raise AlreadyParticipantError(match.id, invitee)

                existing = await self._invitations.find_pending(session, match.id, invitee)
                if existing is not None:
                    if not existing.is_expired(now):
                        raise DuplicateInvitationError(match.id, invitee)
                    existing.status = InvitationStatus.EXPIRED
                    await self._invitations.flush(session)

                invitation = Invitation(
                    match_id=match.id,
                    inviter_id=inviter,
                    invitee_id=invitee,
                    team_id=team,
                    status=InvitationStatus.PENDING,
                    expires_at=now + ttl,
                )
                self._invitations.add(session, invitation)
                try:
                    await self._invitations.flush(session)
                except IntegrityError as exc:
                    if is_unique_violation(
                        exc,
                        constraint_name=PENDING_INVITATION_INDEX,
                        table="match_invitations",
                        columns=("match_id", "invitee_id"),
                    ):
                        raise DuplicateInvitationError(match.id, invitee) from exc
                    raise
                return invitation

            invitation = await self.run_transaction(
                "invitation.create",
                work,
                context={"match_id": str(match_uuid), "invitee_id": invitee},
            )

            self.log.info(
                "Invitation created",
                extra={
                    "invitation_id": str(invitation.id),
                    "invitee_id": invitee,
                    "expires_at": invitation.expires_at.isoformat(),
                },
            )
            self.emit_event(
                NotificationType.INVITATION.value,
                {
                    **self._invitation_payload(invitation),
                    "recipients": [invitee],
                },
            )
            return invitation

    # =========================================================================
    # RESPOND
    # =========================================================================

    async def respond_to_invitation(
        self,
        invitation_id: Any,
        invitee_id: str,
        action: Union[InvitationAction, str],
    ) -> Invitation:
        """
        Accept or decline an invitation.

        Raises:
            NotFoundError: invitation (or its match) does not exist
            UnauthorizedError: caller is not the invitee
            AlreadyResolvedError: invitation is no longer pending
            InvitationExpiredError: expiry passed; the invitation is now expired
            InvalidStateError / AlreadyJoinedError / MatchFullError: accept
                could not admit the invitee; nothing was changed
        """
        invitation_uuid = InputValidator.validate_uuid(invitation_id, "invitation_id")
        invitee = InputValidator.validate_user_id(invitee_id, "invitee_id")
        choice = InvitationAction(
            InputValidator.validate_choice(action, "action", [a.value for a in InvitationAction])
        )
        operation = f"invitation.{choice.value}"

        async with LogContext(user_id=invitee, operation=operation):

            async def work(session: AsyncSession) -> _Response:
                invitation = await self._invitations.get_for_update(session, invitation_uuid)
                if invitation is None:
                    raise NotFoundError("Invitation", invitation_uuid)
                if invitation.invitee_id != invitee:
                    raise UnauthorizedError(
                        f"respond to invitation {invitation_uuid}",
                        invitee,
                        "only the invitee may respond",
                    )
                if invitation.status != InvitationStatus.PENDING:
                    raise AlreadyResolvedError(invitation.id, invitation.status.value)

                now = self.now()
                if invitation.is_expired(now):
                    invitation.status = InvitationStatus.EXPIRED
                    await self._invitations.flush(session)
                    return _Response(invitation=invitation, expired=True)

                admission: Optional[Admission] = None
                if choice is InvitationAction.ACCEPT:
                    admission = await self._match_service.admit_participant(
                        session,
                        invitation.match_id,
                        invitee,
                        invitation.team_id,
                        action="accept invitation",
                    )
                    invitation.status = InvitationStatus.ACCEPTED
                else:
                    invitation.status = InvitationStatus.DECLINED

                invitation.responded_at = now
                await self._invitations.flush(session)
                return _Response(invitation=invitation, admission=admission)

            response = await self.run_transaction(
                operation,
                work,
                context={"invitation_id": str(invitation_uuid), "invitee_id": invitee},
            )

            invitation = response.invitation
            if response.expired:
                self.log.info(
                    "Invitation expired on response",
                    extra={"invitation_id": str(invitation.id)},
                )
                raise InvitationExpiredError(invitation.id, invitation.expires_at)

            self.log.info(
                "Invitation resolved",
                extra={
                    "invitation_id": str(invitation.id),
                    "match_id": str(invitation.match_id),
                    "status": invitation.status.value,
                },
            )

            if response.admission is not None:
                self._match_service.notify_admission(
                    response.admission, invitation_id=str(invitation.id)
                )
                event_type = NotificationType.INVITATION_ACCEPTED
                extra = {"participation_status": response.admission.participation.status.value}
            else:
                event_type = NotificationType.INVITATION_DECLINED
                extra = {}

            self.emit_event(
                event_type.value,
                {
                    **self._invitation_payload(invitation),
                    **extra,
                    "recipients": [invitation.inviter_id],
                },
            )
            return invitation

    # =========================================================================
    # READ / MAINTENANCE
    # =========================================================================

    async def get_invitation(self, invitation_id: Any) -> Invitation:
        invitation_uuid = InputValidator.validate_uuid(invitation_id, "invitation_id")

        async def work(session: AsyncSession) -> Invitation:
            invitation = await self._invitations.get(session, invitation_uuid)
            if invitation is None:
                raise NotFoundError("Invitation", invitation_uuid)
            return invitation

        return await self.run_read("invitation.get", work)

    async def list_pending_invitations(
        self,
        invitee_id: str,
        limit: Optional[int] = None,
    ) -> List[Invitation]:
        """Pending, unexpired invitations for ``invitee_id``, newest first."""
        invitee = InputValidator.validate_user_id(invitee_id, "invitee_id")
        page_size = InputValidator.validate_integer(
            limit if limit is not None else self.get_config("matches.list_limit", 50),
            "limit",
            min_value=1,
            max_value=int(self.get_config("matches.max_list_limit", 200)),
        )
        now = self.now()

        async def work(session: AsyncSession) -> List[Invitation]:
            return await self._invitations.list_pending_for_invitee(session, invitee, now, page_size)

        return await self.run_read("invitation.list_pending", work)

    async def expire_stale_invitations(self, now: Optional[datetime] = None) -> int:
        """Mark every overdue pending invitation expired; returns how many changed."""
        cutoff = now or self.now()

        async def work(session: AsyncSession) -> int:
            return await self._invitations.expire_overdue(session, cutoff)

        expired = await self.run_transaction("invitation.expire_stale", work)
        if expired:
            self.log.info("Stale invitations expired", extra={"expired_count": expired})
        return expired

    @staticmethod
    def _invitation_payload(invitation: Invitation) -> dict:
        return {
            "invitation_id": str(invitation.id),
            "match_id": str(invitation.match_id),
            "inviter_id": invitation.inviter_id,
            "invitee_id": invitation.invitee_id,
            "team_id": invitation.team_id,
            "status": invitation.status.value,
        }
