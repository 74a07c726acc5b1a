"""
Input Validation Layer

Purpose
-------
Centralized validation for every externally supplied value that reaches the
match and invitation services: user ids, resource ids, counts, enum choices,
free text and timestamps. Enforces type, bounds and format before any store
access so invalid input never opens a transaction.

Responsibilities
----------------
- Validate and convert inputs to their canonical types (int, str, UUID, datetime)
- Enforce bounds for numeric inputs (min/max)
- Validate string length
- Validate choice inputs against allowed options
- Raise ValidationError with readable messages

Non-Responsibilities
--------------------
- Business rules that depend on stored state (service layer)
- Authorization (service layer ownership checks)
- Persistence, transactions or locking

Observability
-------------
Every validation failure is logged at debug level with ``field_name``,
``raw_value`` (repr) and ``reason``.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, NoReturn, Optional, Sequence

from rallypoint.core.logging.logger import get_logger
from rallypoint.modules.shared.exceptions import ValidationError

logger = get_logger(__name__)

MAX_IDENTIFIER_LENGTH = 64


def _raise_validation_error(field_name: str, value: Any, message: str) -> NoReturn:
    """Log and raise a ValidationError; every failure goes through here."""
    logger.debug(
        "Input validation failed",
        extra={
            "field_name": field_name,
            "raw_value": repr(value),
            "reason": message,
        },
    )
    raise ValidationError(field_name, message)


class InputValidator:
    """
    Stateless validators. Each returns the converted value or raises
    ValidationError; none of them fails silently.
    """

    # =========================================================================
    # INTEGER VALIDATION
    # =========================================================================

    @staticmethod
    def validate_integer(
        value: Any,
        field_name: str,
        min_value: Optional[int] = None,
        max_value: Optional[int] = None,
    ) -> int:
        """
        Validate and convert value to integer with optional bounds checking.

        Booleans are rejected even though ``bool`` subclasses ``int``.

        Raises:
            ValidationError: If validation fails
        """
        if value is None:
            _raise_validation_error(field_name, value, "Value is required")
        if isinstance(value, bool):
            _raise_validation_error(field_name, value, "Must be a whole number, got a boolean")

        try:
            int_value = int(value)
        except (ValueError, TypeError):
            _raise_validation_error(field_name, value, f"Must be a whole number, got '{value}'")

        if isinstance(value, float) and value != int_value:
            _raise_validation_error(field_name, value, f"Must be a whole number, got '{value}'")

        if min_value is not None and int_value < min_value:
            _raise_validation_error(
                field_name,
                int_value,
                f"Must be at least {min_value}, got {int_value}",
            )

        if max_value is not None and int_value > max_value:
            _raise_validation_error(
                field_name,
                int_value,
                f"Cannot exceed {max_value}, got {int_value}",
            )

        return int_value

    # =========================================================================
    # ID VALIDATION
    # =========================================================================

    @staticmethod
    def validate_identifier(value: Any, field_name: str) -> str:
        """
        Validate an opaque external identifier (user, team).

        Identifiers come from the caller's systems; only emptiness and
        length are checked.
        """
        if value is None:
            _raise_validation_error(field_name, value, "Value is required")
        return InputValidator.validate_string(
            value,
            field_name=field_name,
            min_length=1,
            max_length=MAX_IDENTIFIER_LENGTH,
        )

    @staticmethod
    def validate_user_id(value: Any, field_name: str = "user_id") -> str:
        return InputValidator.validate_identifier(value, field_name)

    @staticmethod
    def validate_uuid(value: Any, field_name: str) -> uuid.UUID:
        """Accept a UUID instance or its string form."""
        if isinstance(value, uuid.UUID):
            return value
        if value is None:
            _raise_validation_error(field_name, value, "Value is required")
        try:
            return uuid.UUID(str(value))
        except (ValueError, AttributeError, TypeError):
            _raise_validation_error(field_name, value, f"Must be a valid UUID, got '{value}'")

    # =========================================================================
    # STRING VALIDATION
    # =========================================================================

    @staticmethod
    def validate_string(
        value: Any,
        field_name: str,
        min_length: Optional[int] = None,
        max_length: Optional[int] = None,
    ) -> str:
        """
        Validate string input with optional length constraints.

        Surrounding whitespace is stripped before the length checks.
        """
        if value is None:
            _raise_validation_error(field_name, value, "Value is required")

        str_value = str(value).strip()

        if min_length is not None and len(str_value) < min_length:
            _raise_validation_error(
                field_name,
                str_value,
                f"Must be at least {min_length} characters",
            )

        if max_length is not None and len(str_value) > max_length:
            _raise_validation_error(
                field_name,
                str_value,
                f"Cannot exceed {max_length} characters",
            )

        return str_value

    # =========================================================================
    # CHOICE VALIDATION
    # =========================================================================

    @staticmethod
    def validate_choice(
        value: Any,
        field_name: str,
        valid_choices: Sequence[str],
    ) -> str:
        """
        Validate that value is one of the allowed choices (case-insensitive).

        Enum members are accepted through their ``value``.

        Returns:
            Lowercased validated choice
        """
        raw = getattr(value, "value", value)
        str_value = str(raw).lower().strip()
        normalized_choices = {choice.lower() for choice in valid_choices}

        if str_value not in normalized_choices:
            choices_str = ", ".join(sorted(valid_choices))
            _raise_validation_error(
                field_name,
                value,
                f"Invalid choice '{raw}'. Must be one of: {choices_str}",
            )

        return str_value

    # =========================================================================
    # DATETIME VALIDATION
    # =========================================================================

    @staticmethod
    def validate_datetime(
        value: Any,
        field_name: str,
        not_before: Optional[datetime] = None,
    ) -> datetime:
        """
        Validate a timestamp and normalize it to aware UTC.

        Naive datetimes are rejected: the caller must say which zone it means.
        ISO-8601 strings are parsed.
        """
        if value is None:
            _raise_validation_error(field_name, value, "Value is required")

        if isinstance(value, str):
            try:
                value = datetime.fromisoformat(value)
            except ValueError:
                _raise_validation_error(field_name, value, "Must be an ISO-8601 timestamp")

        if not isinstance(value, datetime):
            _raise_validation_error(field_name, value, "Must be a datetime")

        if value.tzinfo is None:
            _raise_validation_error(field_name, value, "Must include a timezone")

        normalized = value.astimezone(timezone.utc)
        if not_before is not None and normalized <= not_before:
            _raise_validation_error(
                field_name,
                value,
                f"Must be later than {not_before.isoformat()}",
            )

        return normalized
