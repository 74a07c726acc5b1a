"""
Fixtures for integration tests against PostgreSQL.

A single postgres testcontainer serves the whole session; every test gets
a freshly created schema through DatabaseService. The ``database`` fixture
here replaces the SQLite one from the top-level conftest, so the service
fixtures run unchanged against PostgreSQL row locks.

Tests are skipped when testcontainers is not installed or Docker is not
reachable.
"""

from __future__ import annotations

from typing import AsyncGenerator, Generator

import pytest
import pytest_asyncio

from rallypoint.core.database.base import Base
from rallypoint.core.database.service import DatabaseService
from rallypoint.core.logging.logger import get_logger

postgres = pytest.importorskip("testcontainers.postgres")

logger = get_logger(__name__)


@pytest.fixture(scope="session")
def postgres_url() -> Generator[str, None, None]:
    """
    Start a PostgreSQL testcontainer and yield its asyncpg URL.

    Scope: session (container persists across all tests)
    """
    logger.info("Starting PostgreSQL testcontainer...")
    container = postgres.PostgresContainer(image="postgres:17-alpine", driver="asyncpg")
    try:
        container.start()
    except Exception as exc:
        pytest.skip(f"PostgreSQL testcontainer unavailable: {exc}")

    url = container.get_connection_url()
    logger.info("PostgreSQL testcontainer started")
    yield url

    logger.info("Stopping PostgreSQL testcontainer...")
    container.stop()


@pytest_asyncio.fixture
async def database(postgres_url: str) -> AsyncGenerator[None, None]:
    """
    DatabaseService bound to the container with a clean schema.

    Scope: function (clean slate per test)
    """
    await DatabaseService.shutdown()
    await DatabaseService.initialize(postgres_url)
    await DatabaseService.drop_schema(Base.metadata)
    await DatabaseService.create_schema(Base.metadata)
    yield
    await DatabaseService.shutdown()
