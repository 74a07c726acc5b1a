"""
Base Service Foundation

Purpose
-------
Foundation for the match-engine domain services. Services implement pure
business logic, own their transactions, enforce business rules and emit
notifications once the transaction has committed.

Design Notes
------------
This base class provides:
- Structured logging with operation context
- Safe config access
- Fire-and-forget notification emission that never raises
- ``run_transaction()``: one atomic unit of work with driver errors mapped
  to domain errors and bounded retry of ``TransientStoreError``
- A single injectable clock so expiry and scheduling rules are testable

What this class does NOT do:
- Manage engines or sessions (DatabaseService)
- Deliver notifications (NotificationDispatcher implementations)

Usage
-----
    class MatchService(BaseService):
        async def cancel_match(self, match_id, caller_id):
            async def work(session):
                ...
            return await self.run_transaction("match.cancel", work)
"""

from __future__ import annotations

from datetime import datetime
from typing import (
    TYPE_CHECKING,
    Any,
    Awaitable,
    Callable,
    Dict,
    Optional,
    Sequence,
    TypeVar,
)

from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError

from rallypoint.core.database.base import utc_now
from rallypoint.core.database.retry_policy import DatabaseRetryPolicy
from rallypoint.core.database.service import DatabaseService
from rallypoint.core.exceptions import ConfigurationError
from rallypoint.modules.shared.exceptions import TransientStoreError

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy.ext.asyncio import AsyncSession

    from rallypoint.core.config.manager import ConfigManager
    from rallypoint.modules.notifications.dispatcher import NotificationDispatcher

T = TypeVar("T")

Clock = Callable[[], datetime]


def is_unique_violation(
    exc: IntegrityError,
    *,
    constraint_name: str,
    table: str,
    columns: Sequence[str],
) -> bool:
    """
    True when ``exc`` was raised by the named unique constraint or index.

    PostgreSQL reports the constraint name; SQLite reports the columns as
    ``table.column``.
    """
    message = str(exc.orig) if exc.orig is not None else str(exc)
    if constraint_name in message:
        return True
    return "UNIQUE constraint failed" in message and all(
        f"{table}.{column}" in message for column in columns
    )


class BaseService:
    """
    Base class for all domain services.

    Args:
        config_manager: Configuration manager (class or instance with ``get``)
        notifier: Notification dispatcher receiving post-commit events
        logger: Structured logger instance
        retry_policy: Retry policy for transient store failures
        clock: Returns the current aware UTC time
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
        self._config = config_manager
        self._notifier = notifier
        self.log = logger
        self._retry = retry_policy or DatabaseRetryPolicy.from_config(
            retriable_exceptions=(TransientStoreError,)
        )
        self._clock: Clock = clock or utc_now

    def now(self) -> datetime:
        return self._clock()

    def get_config(self, key: str, default: Optional[Any] = None, required: bool = False) -> Any:
        """
        Safely retrieve configuration value.

        Raises:
            ConfigurationError: If required=True and key is missing
        """
        value = self._config.get(key, default)
        if required and value is None:
            raise ConfigurationError(key, f"Required configuration key '{key}' is missing")
        return value

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------

    def emit_event(self, event_type: str, payload: Dict[str, Any]) -> None:
        """
        Hand a notification to the dispatcher.

        Must be called after the transaction committed. Dispatcher failures
        are logged and swallowed; they never fail the operation.
        """
        try:
            self._notifier.emit(event_type, payload)
        except Exception as exc:
            self.log.warning(
                "Notification dispatch failed",
                extra={
                    "event_type": event_type,
                    "error": str(exc),
                    "error_type": type(exc).__name__,
                },
                exc_info=True,
            )

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    async def run_transaction(
        self,
        operation_name: str,
        work: Callable[[AsyncSession], Awaitable[T]],
        *,
        context: Optional[Dict[str, Any]] = None,
    ) -> T:
        """
        Run ``work(session)`` inside one atomic transaction.

        - Domain errors raised by ``work`` roll back and propagate unchanged.
        - ``IntegrityError`` that ``work`` did not translate propagates raw.
        - Any other driver error becomes ``TransientStoreError`` and the
          whole unit is retried under the configured policy.
        """

        async def attempt() -> T:
            try:
                async with DatabaseService.get_transaction() as session:
                    return await work(session)
            except IntegrityError:
                raise
            except (OperationalError, DBAPIError) as exc:
                raise TransientStoreError(operation_name, exc) from exc

        return await self._retry.execute(
            attempt,
            operation_name=operation_name,
            context=context,
        )

    async def run_read(
        self,
        operation_name: str,
        work: Callable[[AsyncSession], Awaitable[T]],
    ) -> T:
        """Run read-only ``work(session)``; driver errors become TransientStoreError."""
        try:
            async with DatabaseService.get_session() as session:
                return await work(session)
        except (OperationalError, DBAPIError) as exc:
            raise TransientStoreError(operation_name, exc) from exc
