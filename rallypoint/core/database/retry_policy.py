"""
Database Retry Policy - Infrastructure Resilience

Purpose
-------
Bounded retry of whole transactional operations that failed for transient
store reasons (write conflicts, deadlocks, dropped connections), with
exponential backoff and jitter.

Architecture Notes
------------------
**Retry Classification**:
- Retriable: the configured `retriable_exceptions` (driver-level
  OperationalError/DBAPIError by default; services pass their domain
  `TransientStoreError` instead)
- Never retriable: IntegrityError, which signals a constraint violation
  and not a conflict that might resolve itself
- Everything else propagates immediately, unlogged: the raising layer owns
  its own log line

**Backoff Strategy**:
- min(initial * 2^(attempt-1), max) + random(0, jitter)

**Transaction Ownership**:
- Wrap the operation that *creates* the transaction, never code running
  inside one. Side effects that must happen once (notifications) belong
  after `execute()` returns.

Configuration
-------------
- DATABASE_RETRY_MAX_ATTEMPTS (default: 3)
- DATABASE_RETRY_INITIAL_BACKOFF_MS (default: 50)
- DATABASE_RETRY_MAX_BACKOFF_MS (default: 1000)
- DATABASE_RETRY_JITTER_MS (default: 25)

Usage Example
-------------
>>> policy = DatabaseRetryPolicy.from_config()
>>>
>>> async def cancel() -> Match:
>>>     async with DatabaseService.get_transaction() as session:
>>>         ...
>>>
>>> match = await policy.execute(cancel, operation_name="match.cancel")
"""

from __future__ import annotations

import asyncio
import random
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple, Type, TypeVar

from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError

from rallypoint.core.config.config import Config
from rallypoint.core.logging.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


@dataclass
class DatabaseRetryConfig:
    """
    Configuration for database retry behavior.

    Attributes
    ----------
    max_attempts : int
        Maximum number of attempts (including the initial attempt).
    initial_backoff_ms : int
        Initial backoff duration in milliseconds.
    max_backoff_ms : int
        Cap on the exponential part of the backoff.
    jitter_ms : int
        Maximum random jitter added on top of the backoff.
    retriable_exceptions : Tuple[Type[BaseException], ...]
        Exception types considered retriable.
    """

    max_attempts: int
    initial_backoff_ms: int
    max_backoff_ms: int
    jitter_ms: int
    retriable_exceptions: Tuple[Type[BaseException], ...] = (OperationalError, DBAPIError)

    @classmethod
    def from_config(
        cls,
        retriable_exceptions: Optional[Tuple[Type[BaseException], ...]] = None,
    ) -> "DatabaseRetryConfig":
        config = cls(
            max_attempts=max(1, int(getattr(Config, "DATABASE_RETRY_MAX_ATTEMPTS", 3))),
            initial_backoff_ms=int(getattr(Config, "DATABASE_RETRY_INITIAL_BACKOFF_MS", 50)),
            max_backoff_ms=int(getattr(Config, "DATABASE_RETRY_MAX_BACKOFF_MS", 1000)),
            jitter_ms=int(getattr(Config, "DATABASE_RETRY_JITTER_MS", 25)),
        )
        if retriable_exceptions is not None:
            config.retriable_exceptions = retriable_exceptions
        return config


class DatabaseRetryPolicy:
    """Execute async store operations with bounded retry on transient failures."""

    def __init__(self, config: DatabaseRetryConfig) -> None:
        self._config = config

    @classmethod
    def from_config(
        cls,
        retriable_exceptions: Optional[Tuple[Type[BaseException], ...]] = None,
    ) -> "DatabaseRetryPolicy":
        return cls(DatabaseRetryConfig.from_config(retriable_exceptions))

    @property
    def max_attempts(self) -> int:
        return self._config.max_attempts

    def _is_retriable(self, exc: BaseException) -> bool:
        if isinstance(exc, IntegrityError):
            return False
        return isinstance(exc, self._config.retriable_exceptions)

    def _compute_backoff_ms(self, attempt: int) -> int:
        exponent = max(attempt - 1, 0)
        capped = min(self._config.initial_backoff_ms * (2**exponent), self._config.max_backoff_ms)
        jitter = random.randint(0, self._config.jitter_ms) if self._config.jitter_ms > 0 else 0
        return capped + jitter

    async def execute(
        self,
        operation: Callable[[], Awaitable[T]],
        *,
        operation_name: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> T:
        """
        Run ``operation`` until it succeeds, fails non-retriably, or the
        attempt budget is spent.

        Parameters
        ----------
        operation:
            Zero-argument coroutine factory; each call must open its own
            transaction.
        operation_name:
            Stable identifier for logs (e.g. ``"match.join"``).
        context:
            Extra structured fields for the retry log lines.

        Raises
        ------
        BaseException
            The last exception once retries are exhausted, or the first
            non-retriable one.
        """
        ctx_extra = dict(context or {})
        ctx_extra["operation_name"] = operation_name

        attempt = 0
        while True:
            attempt += 1
            try:
                return await operation()

            except Exception as exc:
                if not self._is_retriable(exc):
                    raise

                error_type = type(exc).__name__
                if attempt >= self._config.max_attempts:
                    logger.error(
                        "Store operation retries exhausted",
                        extra={
                            **ctx_extra,
                            "attempt": attempt,
                            "error_type": error_type,
                            "max_attempts": self._config.max_attempts,
                        },
                    )
                    raise

                backoff_ms = self._compute_backoff_ms(attempt)
                logger.warning(
                    "Store operation failed transiently; retrying",
                    extra={
                        **ctx_extra,
                        "attempt": attempt,
                        "error_type": error_type,
                        "error": str(exc),
                        "backoff_ms": backoff_ms,
                    },
                )
                await asyncio.sleep(backoff_ms / 1000.0)
