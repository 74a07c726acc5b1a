"""
Unit tests for DatabaseRetryPolicy and the driver-error mapping in
BaseService.run_transaction.
"""

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from rallypoint.core.database.retry_policy import DatabaseRetryConfig, DatabaseRetryPolicy
from rallypoint.core.logging.logger import get_logger
from rallypoint.modules.shared.base_service import BaseService, is_unique_violation
from rallypoint.modules.shared.exceptions import (
    AlreadyJoinedError,
    TransientStoreError,
)


def _policy(max_attempts=3):
    return DatabaseRetryPolicy(
        DatabaseRetryConfig(
            max_attempts=max_attempts,
            initial_backoff_ms=1,
            max_backoff_ms=2,
            jitter_ms=0,
            retriable_exceptions=(TransientStoreError,),
        )
    )


def _transient():
    return TransientStoreError(
        "match.join", OperationalError("UPDATE", {}, Exception("could not serialize access"))
    )


class TestRetryPolicy:
    async def test_retries_transient_then_succeeds(self, mocker):
        operation = mocker.AsyncMock(side_effect=[_transient(), _transient(), "ok"])

        result = await _policy().execute(operation, operation_name="match.join")

        assert result == "ok"
        assert operation.await_count == 3

    async def test_exhaustion_reraises_last_error(self, mocker):
        operation = mocker.AsyncMock(side_effect=_transient())

        with pytest.raises(TransientStoreError):
            await _policy(max_attempts=2).execute(operation, operation_name="match.join")

        assert operation.await_count == 2

    async def test_domain_errors_are_not_retried(self, mocker):
        operation = mocker.AsyncMock(side_effect=AlreadyJoinedError("m-1", "alice"))

        with pytest.raises(AlreadyJoinedError):
            await _policy().execute(operation, operation_name="match.join")

        assert operation.await_count == 1

    async def test_integrity_error_is_never_retried(self, mocker):
        policy = DatabaseRetryPolicy(
            DatabaseRetryConfig(max_attempts=3, initial_backoff_ms=1, max_backoff_ms=1, jitter_ms=0)
        )
        operation = mocker.AsyncMock(
            side_effect=IntegrityError("INSERT", {}, Exception("duplicate key"))
        )

        with pytest.raises(IntegrityError):
            await policy.execute(operation, operation_name="match.join")

        assert operation.await_count == 1

    def test_backoff_is_exponential_and_capped(self):
        policy = DatabaseRetryPolicy(
            DatabaseRetryConfig(max_attempts=5, initial_backoff_ms=50, max_backoff_ms=150, jitter_ms=0)
        )
        assert [policy._compute_backoff_ms(n) for n in (1, 2, 3, 4)] == [50, 100, 150, 150]


class TestRunTransactionMapping:
    """run_transaction turns driver errors into TransientStoreError and retries."""

    async def test_operational_error_is_mapped_and_retried(self, database, config_manager, mocker):
        service = BaseService(
            config_manager, mocker.Mock(), get_logger("tests.retry"), retry_policy=_policy()
        )
        calls = []

        async def work(session):
            calls.append(session)
            if len(calls) == 1:
                raise OperationalError("SELECT", {}, Exception("database is locked"))
            return "committed"

        assert await service.run_transaction("match.join", work) == "committed"
        assert len(calls) == 2

    async def test_persistent_failure_surfaces_as_transient(self, database, config_manager, mocker):
        service = BaseService(
            config_manager, mocker.Mock(), get_logger("tests.retry"), retry_policy=_policy(2)
        )

        async def work(session):
            raise OperationalError("SELECT", {}, Exception("connection reset"))

        with pytest.raises(TransientStoreError) as exc_info:
            await service.run_transaction("match.join", work)

        assert exc_info.value.is_retryable
        assert isinstance(exc_info.value.original_error, OperationalError)


class TestUniqueViolation:
    def test_postgres_constraint_name(self):
        exc = IntegrityError(
            "INSERT",
            {},
            Exception('duplicate key value violates unique constraint "uq_match_participations_match_user"'),
        )
        assert is_unique_violation(
            exc,
            constraint_name="uq_match_participations_match_user",
            table="match_participations",
            columns=("match_id", "user_id"),
        )

    def test_sqlite_column_message(self):
        exc = IntegrityError(
            "INSERT",
            {},
            Exception(
                "UNIQUE constraint failed: match_participations.match_id, match_participations.user_id"
            ),
        )
        assert is_unique_violation(
            exc,
            constraint_name="uq_match_participations_match_user",
            table="match_participations",
            columns=("match_id", "user_id"),
        )

    def test_other_integrity_error(self):
        exc = IntegrityError("INSERT", {}, Exception("CHECK constraint failed: current_players_range"))
        assert not is_unique_violation(
            exc,
            constraint_name="uq_match_participations_match_user",
            table="match_participations",
            columns=("match_id", "user_id"),
        )
