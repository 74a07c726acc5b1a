"""
Database subsystem for Rallypoint.

Provides the async SQLAlchemy engine and session management, the bounded
retry policy, and the ORM base classes and mixins for model definitions.
"""

from rallypoint.core.database.base import (
    Base,
    IdMixin,
    TimestampMixin,
    as_utc,
    utc_now,
)
from rallypoint.core.database.retry_policy import (
    DatabaseRetryConfig,
    DatabaseRetryPolicy,
)
from rallypoint.core.database.service import (
    DatabaseInitializationError,
    DatabaseNotInitializedError,
    DatabaseService,
)

__all__ = [
    # ORM Base & Mixins
    "Base",
    "IdMixin",
    "TimestampMixin",
    "utc_now",
    "as_utc",
    # Main service
    "DatabaseService",
    # Retry
    "DatabaseRetryConfig",
    "DatabaseRetryPolicy",
    # Exceptions
    "DatabaseInitializationError",
    "DatabaseNotInitializedError",
]
