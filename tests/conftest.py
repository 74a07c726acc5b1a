"""
Pytest configuration and shared fixtures.

Purpose
-------
- Pin the test environment before ``rallypoint`` is imported (Config reads
  the environment once at import time).
- Provide a fresh SQLite file database per test through DatabaseService,
  with the real schema and ``BEGIN IMMEDIATE`` transactions.
- Provide services wired to a recording notification dispatcher and a
  controllable clock.

Architecture Notes
------------------
- Unit tests run against SQLite (aiosqlite) and mocks.
- Integration tests (tests/integration) start PostgreSQL with
  testcontainers and override the database fixture.
"""

from __future__ import annotations

import os

os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("LOG_TO_FILE", "false")
os.environ.setdefault("LOG_COLORS", "false")
os.environ.setdefault("DATABASE_RETRY_MAX_ATTEMPTS", "5")
os.environ.setdefault("DATABASE_RETRY_INITIAL_BACKOFF_MS", "5")
os.environ.setdefault("DATABASE_RETRY_MAX_BACKOFF_MS", "50")
os.environ.setdefault("DATABASE_RETRY_JITTER_MS", "5")

from datetime import datetime, timedelta
from typing import Any, AsyncGenerator, Dict, List, Tuple

import pytest
import pytest_asyncio

from rallypoint.core.config.manager import ConfigManager
from rallypoint.core.database.base import Base, utc_now
from rallypoint.core.database.service import DatabaseService
from rallypoint.core.logging.logger import get_logger
from rallypoint.database.models import Match
from rallypoint.modules.invitations.service import InvitationService
from rallypoint.modules.matches.schemas import MatchCreateRequest
from rallypoint.modules.matches.service import MatchService

logger = get_logger(__name__)


# ============================================================================
# TEST DOUBLES
# ============================================================================


class RecordingDispatcher:
    """NotificationDispatcher double that keeps every emitted event."""

    def __init__(self) -> None:
        self.events: List[Tuple[str, Dict[str, Any]]] = []

    def emit(self, event_type: str, payload: Dict[str, Any]) -> None:
        self.events.append((event_type, payload))

    def of_type(self, event_type: str) -> List[Dict[str, Any]]:
        return [payload for kind, payload in self.events if kind == event_type]

    def types(self) -> List[str]:
        return [kind for kind, _ in self.events]

    def clear(self) -> None:
        self.events.clear()


class MutableClock:
    """Clock that stands still until advanced."""

    def __init__(self, start: datetime) -> None:
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, delta: timedelta) -> None:
        self.current = self.current + delta


# ============================================================================
# CONFIGURATION
# ============================================================================


@pytest.fixture(autouse=True)
def config_manager():
    """Fresh ConfigManager tree per test; overrides never leak."""
    ConfigManager.reset()
    ConfigManager.load()
    yield ConfigManager
    ConfigManager.reset()


# ============================================================================
# DATABASE
# ============================================================================


@pytest_asyncio.fixture
async def database(tmp_path) -> AsyncGenerator[None, None]:
    """
    Initialize DatabaseService on a per-test SQLite file with the full schema.

    Scope: function (clean slate per test)
    """
    await DatabaseService.shutdown()
    await DatabaseService.initialize(f"sqlite+aiosqlite:///{tmp_path / 'rallypoint.db'}")
    await DatabaseService.create_schema(Base.metadata)
    yield
    await DatabaseService.shutdown()


# ============================================================================
# SERVICES
# ============================================================================


@pytest.fixture
def notifier() -> RecordingDispatcher:
    return RecordingDispatcher()


@pytest.fixture
def clock() -> MutableClock:
    return MutableClock(utc_now())


@pytest.fixture
def match_service(database, config_manager, notifier, clock) -> MatchService:
    return MatchService(config_manager, notifier, get_logger("tests.match_service"), clock=clock)


@pytest.fixture
def invitation_service(
    database, config_manager, notifier, clock, match_service
) -> InvitationService:
    return InvitationService(
        config_manager,
        notifier,
        get_logger("tests.invitation_service"),
        match_service,
        clock=clock,
    )


# ============================================================================
# FACTORIES
# ============================================================================


def make_request(clock: MutableClock, **overrides: Any) -> MatchCreateRequest:
    """Valid create request starting a day from the clock's now."""
    values: Dict[str, Any] = {
        "starts_at": clock() + timedelta(days=1),
        "venue": "Riverside Court 3",
        "max_players": 2,
        "publish": True,
    }
    values.update(overrides)
    return MatchCreateRequest(**values)


@pytest.fixture
def open_match_factory(match_service, clock):
    """Create an open match owned by ``owner``."""

    async def factory(owner: str = "owner-1", **overrides: Any) -> Match:
        return await match_service.create_match(owner, make_request(clock, **overrides))

    return factory
