"""
Typed request and result records for the match operations.

``MatchCreateRequest`` replaces free-form request payloads: it is built from
a mapping (or directly), then normalized by ``validated()`` before the
service touches the store.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from datetime import datetime
from typing import Any, List, Mapping, Optional, Union

from rallypoint.core.validation.input_validator import InputValidator
from rallypoint.database.models.enums import MatchMode, MatchVisibility, ParticipationStatus
from rallypoint.database.models.match import Match
from rallypoint.database.models.participation import Participation
from rallypoint.modules.shared.exceptions import ValidationError

MAX_VENUE_LENGTH = 200


@dataclass(frozen=True)
class MatchCreateRequest:
    """
    Input for ``MatchService.create_match``.

    ``publish=True`` creates the match directly in ``open``; otherwise it
    starts as ``draft`` and must be published by its owner.
    """

    starts_at: datetime
    venue: str
    max_players: int
    team_size: int = 1
    mode: Union[MatchMode, str] = MatchMode.PLAYER_POOL
    visibility: Union[MatchVisibility, str] = MatchVisibility.PUBLIC
    publish: bool = False

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "MatchCreateRequest":
        """Build a request from a loosely typed payload, rejecting unknown or missing keys."""
        known = {f.name for f in fields(cls)}
        for key in data:
            if key not in known:
                raise ValidationError(str(key), "Unknown field")
        for required in ("starts_at", "venue", "max_players"):
            if data.get(required) is None:
                raise ValidationError(required, "Value is required")
        return cls(**dict(data))

    def validated(
        self,
        *,
        now: datetime,
        min_players: int,
        max_players: int,
        max_team_size: int,
    ) -> "MatchCreateRequest":
        """
        Return a normalized copy, or raise ValidationError on the first bad field.

        Args:
            now: Current time; ``starts_at`` must be strictly later
            min_players: Lowest allowed capacity (never below 2)
            max_players: Highest allowed capacity
            max_team_size: Highest allowed team size
        """
        starts_at = InputValidator.validate_datetime(self.starts_at, "starts_at", not_before=now)
        venue = InputValidator.validate_string(
            self.venue, "venue", min_length=1, max_length=MAX_VENUE_LENGTH
        )
        capacity = InputValidator.validate_integer(
            self.max_players,
            "max_players",
            min_value=max(2, min_players),
            max_value=max_players,
        )
        team_size = InputValidator.validate_integer(
            self.team_size,
            "team_size",
            min_value=1,
            max_value=min(capacity, max_team_size),
        )
        mode = MatchMode(
            InputValidator.validate_choice(self.mode, "mode", [m.value for m in MatchMode])
        )
        visibility = MatchVisibility(
            InputValidator.validate_choice(
                self.visibility, "visibility", [v.value for v in MatchVisibility]
            )
        )
        if not isinstance(self.publish, bool):
            raise ValidationError("publish", "Must be a boolean")

        return replace(
            self,
            starts_at=starts_at,
            venue=venue,
            max_players=capacity,
            team_size=team_size,
            mode=mode,
            visibility=visibility,
        )


@dataclass(frozen=True)
class JoinResult:
    """Outcome of a successful join: the new participation and the match after it."""

    participation: Participation
    match: Match

    @property
    def waitlisted(self) -> bool:
        return self.participation.status == ParticipationStatus.WAITLISTED


@dataclass(frozen=True)
class LeaveResult:
    """Match after the leave, plus the waitlisted participation promoted into the freed slot."""

    match: Match
    promoted: Optional[Participation] = None


@dataclass
class Admission:
    """
    What the capacity logic decided inside the transaction.

    ``recipients`` are the other participants at the time of the join,
    collected before commit so notifications need no second read.
    """

    participation: Participation
    match: Match
    became_full: bool = False
    recipients: List[str] = field(default_factory=list)

    @property
    def waitlisted(self) -> bool:
        return self.participation.status == ParticipationStatus.WAITLISTED
