"""
Domain exceptions for the match engine.

Purpose
-------
Define the structured, domain-specific exception hierarchy raised by the
match and invitation services for business rule violations. The HTTP layer
translates these into responses using `error_code` and `status_code`.

Design Notes
------------
- All domain exceptions inherit from `RallyDomainException`.
- Each exception carries:
  - `message`: human-readable description
  - `details`: additional structured context (dict-like)
  - `severity`: `ErrorSeverity` value for logging/alerting
  - `is_retryable`: whether the same request may succeed if repeated
  - `error_code`: short, stable identifier for programmatic use
  - `status_code`: HTTP-equivalent status for the calling layer
- Client errors (everything except `TransientStoreError`) are raised before
  any mutation or inside a transaction that is then rolled back in full.
- Helper functions (`is_transient_error`, `get_error_severity`, `should_alert`)
  centralize common exception handling patterns.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, Optional

from rallypoint.core.exceptions import ErrorSeverity


class RallyDomainException(Exception):
    """
    Base exception for all match-engine domain errors.

    Args:
        message: Human-readable error message
        details: Additional structured data about the error (dict-like)
        severity: Error severity level for logging handlers
        is_retryable: Whether the operation can be retried
        error_code: Optional code for programmatic handling

    Example:
        >>> raise RallyDomainException(
        ...     "Match is locked",
        ...     {"match_id": "7b0c..."},
        ... )
    """

    DEFAULT_SEVERITY: ErrorSeverity = ErrorSeverity.WARNING
    DEFAULT_RETRYABLE: bool = False
    STATUS_CODE: int = 400

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        severity: Optional[ErrorSeverity] = None,
        is_retryable: Optional[bool] = None,
        error_code: Optional[str] = None,
    ) -> None:
        self.message: str = message
        self.details: Dict[str, Any] = details or {}
        self.severity: ErrorSeverity = severity or self.DEFAULT_SEVERITY
        self.is_retryable: bool = (
            is_retryable if is_retryable is not None else self.DEFAULT_RETRYABLE
        )
        self.error_code: str = error_code or self.__class__.__name__
        self.status_code: int = self.STATUS_CODE
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "status_code": self.status_code,
            "message": self.message,
            "details": self.details,
            "severity": self.severity.value,
            "is_retryable": self.is_retryable,
        }

    def __str__(self) -> str:
        """String representation for logging."""
        details_str = f" | Details: {self.details}" if self.details else ""
        return f"[{self.error_code}] {self.message}{details_str}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"details={self.details!r}, "
            f"severity={self.severity.value!r}, "
            f"is_retryable={self.is_retryable!r}"
            ")"
        )


class NotFoundError(RallyDomainException):
    """
    Raised when a requested match or invitation does not exist.

    Args:
        resource_type: Type of resource (e.g., "Match", "Invitation")
        identifier: Optional identifier for the missing resource
    """

    DEFAULT_SEVERITY = ErrorSeverity.INFO
    STATUS_CODE = 404

    def __init__(self, resource_type: str, identifier: Optional[Any] = None) -> None:
        self.resource_type = resource_type
        self.identifier = identifier

        if identifier is not None:
            message = f"{resource_type} not found: {identifier}"
        else:
            message = f"{resource_type} not found"

        super().__init__(
            message,
            details={
                "resource_type": resource_type,
                "identifier": str(identifier) if identifier is not None else None,
            },
            error_code=f"{resource_type.upper()}_NOT_FOUND",
        )


class UnauthorizedError(RallyDomainException):
    """Raised when the caller does not own the resource it is trying to mutate."""

    STATUS_CODE = 403

    def __init__(self, action: str, user_id: str, reason: str) -> None:
        self.action = action
        self.user_id = user_id
        super().__init__(
            f"User {user_id} may not {action}: {reason}",
            details={"action": action, "user_id": user_id, "reason": reason},
            error_code="UNAUTHORIZED",
        )


class InvalidStateError(RallyDomainException):
    """
    Raised when a match is not in a status that permits the operation.

    Args:
        action: Operation that was attempted (e.g., "join")
        current_status: Status the match is in
        reason: Optional free-form explanation
    """

    STATUS_CODE = 409

    def __init__(self, action: str, current_status: str, reason: Optional[str] = None) -> None:
        self.action = action
        self.current_status = current_status
        message = f"Cannot {action} a match that is {current_status}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(
            message,
            details={"action": action, "current_status": current_status, "reason": reason},
            error_code="INVALID_STATE",
        )


class InvalidTransitionError(RallyDomainException):
    """
    Raised by the state machine for a transition outside the allowed table.

    Carries the current status and the allowed target set so callers can
    explain what would have been legal.
    """

    STATUS_CODE = 409

    def __init__(self, current: str, target: str, allowed: Iterable[str]) -> None:
        self.current = current
        self.target = target
        self.allowed = sorted(allowed)
        allowed_text = ", ".join(self.allowed) if self.allowed else "none"
        super().__init__(
            f"Invalid state transition from '{current}' to '{target}'. "
            f"Allowed transitions: {allowed_text}",
            details={"current": current, "target": target, "allowed": self.allowed},
            error_code="INVALID_TRANSITION",
        )


class AlreadyJoinedError(RallyDomainException):
    """Raised when a user already holds a participation row for the match."""

    DEFAULT_SEVERITY = ErrorSeverity.INFO
    STATUS_CODE = 409

    def __init__(self, match_id: Any, user_id: str) -> None:
        self.match_id = match_id
        self.user_id = user_id
        super().__init__(
            f"User {user_id} has already joined match {match_id}",
            details={"match_id": str(match_id), "user_id": user_id},
            error_code="ALREADY_JOINED",
        )


class NotParticipantError(RallyDomainException):
    """Raised when leaving a match the user never joined."""

    DEFAULT_SEVERITY = ErrorSeverity.INFO
    STATUS_CODE = 409

    def __init__(self, match_id: Any, user_id: str) -> None:
        self.match_id = match_id
        self.user_id = user_id
        super().__init__(
            f"User {user_id} is not a participant of match {match_id}",
            details={"match_id": str(match_id), "user_id": user_id},
            error_code="NOT_PARTICIPANT",
        )


class AlreadyParticipantError(RallyDomainException):
    """Raised when inviting a user who already participates in the match."""

    DEFAULT_SEVERITY = ErrorSeverity.INFO
    STATUS_CODE = 409

    def __init__(self, match_id: Any, user_id: str) -> None:
        self.match_id = match_id
        self.user_id = user_id
        super().__init__(
            f"User {user_id} already participates in match {match_id}",
            details={"match_id": str(match_id), "user_id": user_id},
            error_code="ALREADY_PARTICIPANT",
        )


class DuplicateInvitationError(RallyDomainException):
    """Raised when a pending invitation already exists for (match, invitee)."""

    DEFAULT_SEVERITY = ErrorSeverity.INFO
    STATUS_CODE = 409

    def __init__(self, match_id: Any, invitee_id: str) -> None:
        self.match_id = match_id
        self.invitee_id = invitee_id
        super().__init__(
            f"User {invitee_id} already has a pending invitation to match {match_id}",
            details={"match_id": str(match_id), "invitee_id": invitee_id},
            error_code="DUPLICATE_INVITATION",
        )


class AlreadyResolvedError(RallyDomainException):
    """Raised when responding to an invitation that is no longer pending."""

    DEFAULT_SEVERITY = ErrorSeverity.INFO
    STATUS_CODE = 409

    def __init__(self, invitation_id: Any, status: str) -> None:
        self.invitation_id = invitation_id
        self.status = status
        super().__init__(
            f"Invitation {invitation_id} has already been {status}",
            details={"invitation_id": str(invitation_id), "status": status},
            error_code="ALREADY_RESOLVED",
        )


class InvitationExpiredError(RallyDomainException):
    """Raised when responding after the invitation's expiry timestamp."""

    DEFAULT_SEVERITY = ErrorSeverity.INFO
    STATUS_CODE = 410

    def __init__(self, invitation_id: Any, expires_at: Any) -> None:
        self.invitation_id = invitation_id
        self.expires_at = expires_at
        super().__init__(
            f"Invitation {invitation_id} expired at {expires_at}",
            details={
                "invitation_id": str(invitation_id),
                "expires_at": expires_at.isoformat() if hasattr(expires_at, "isoformat") else expires_at,
            },
            error_code="INVITATION_EXPIRED",
        )


class MatchFullError(RallyDomainException):
    """Raised when neither a confirmed slot nor a waitlist slot is available."""

    DEFAULT_SEVERITY = ErrorSeverity.INFO
    STATUS_CODE = 409

    def __init__(self, match_id: Any, max_players: int, waitlisted: int) -> None:
        self.match_id = match_id
        self.max_players = max_players
        self.waitlisted = waitlisted
        super().__init__(
            f"Match {match_id} is full ({max_players} players, {waitlisted} waitlisted)",
            details={
                "match_id": str(match_id),
                "max_players": max_players,
                "waitlisted": waitlisted,
            },
            error_code="MATCH_FULL",
        )


class TransientStoreError(RallyDomainException):
    """
    Raised when the store aborts a transaction for infrastructure reasons.

    Write conflicts, serialization failures, deadlocks and dropped
    connections all land here. Business state is unchanged, so this is the
    only kind the service boundary retries.
    """

    DEFAULT_SEVERITY = ErrorSeverity.WARNING
    DEFAULT_RETRYABLE = True
    STATUS_CODE = 503

    def __init__(self, operation: str, original_error: Exception) -> None:
        self.operation = operation
        self.original_error = original_error
        super().__init__(
            f"Transient store failure during {operation}: {original_error}",
            details={
                "operation": operation,
                "error": str(original_error),
                "error_type": type(original_error).__name__,
            },
            error_code="TRANSIENT_STORE_ERROR",
        )


class ValidationError(RallyDomainException):
    """
    Raised when request input fails validation.

    Args:
        field: Name of the field that failed validation
        message: Explanation of why validation failed
    """

    DEFAULT_SEVERITY = ErrorSeverity.INFO
    STATUS_CODE = 400

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        self.validation_message = message
        super().__init__(
            f"Validation error for {field}: {message}",
            details={"field": field, "validation_message": message},
            error_code=f"VALIDATION_{field.upper()}",
        )


# Utility functions for exception handling patterns


def is_transient_error(exc: Exception) -> bool:
    """True if the exception is a domain error flagged as retryable."""
    if isinstance(exc, RallyDomainException):
        return exc.is_retryable
    return False


def get_error_severity(exc: Exception) -> ErrorSeverity:
    """Severity of a domain error, ERROR for anything unknown."""
    if isinstance(exc, RallyDomainException):
        return exc.severity
    return ErrorSeverity.ERROR


def should_alert(exc: Exception) -> bool:
    """True if severity is ERROR or CRITICAL."""
    return get_error_severity(exc) in (ErrorSeverity.ERROR, ErrorSeverity.CRITICAL)
