"""
Pytest Configuration and Fixtures for the Promotions Engine Tests
=================================================================

Purpose
-------
Centralized fixtures for the test suite: storage backends, event bus,
services, and testcontainers for the integration tests.

Responsibilities
----------------
- Force the testing environment before the config module loads
- In-memory storage and service fixtures for unit tests
- Testcontainers setup for PostgreSQL and Redis
- Clean-slate Redis and database storage per integration test

Non-Responsibilities
--------------------
- Test data construction (tests/factories.py)
- Business logic (delegated to the engine and services)

Architecture Notes
------------------
- Unit tests use MemoryStorage (fast, isolated, no containers)
- Integration tests use testcontainers (real PostgreSQL/Redis)
- Container fixtures are session scoped; storage fixtures are per test
"""

from __future__ import annotations

import os
import time

os.environ["ENVIRONMENT"] = "testing"
os.environ.setdefault("LOG_LEVEL", "DEBUG")

from typing import AsyncGenerator, Generator

import pytest
import pytest_asyncio
from testcontainers.postgres import PostgresContainer
from testcontainers.redis import RedisContainer

from promo_engine.core.config import Config
from promo_engine.core.database.service import DatabaseService
from promo_engine.core.event import EventBus
from promo_engine.core.logging.logger import get_logger
from promo_engine.core.redis.service import RedisService
from promo_engine.modules.events import EventProcessingService
from promo_engine.modules.promotions import PromotionService
from promo_engine.storage.database_storage import DatabaseStorage
from promo_engine.storage.memory import MemoryStorage
from promo_engine.storage.redis_storage import RedisStorage

logger = get_logger(__name__)


# ============================================================================
# PYTEST CONFIGURATION
# ============================================================================


def pytest_configure(config):
    """Reload configuration with the testing environment in place."""
    Config.load()


# ============================================================================
# UNIT FIXTURES
# ============================================================================


@pytest.fixture
def memory_storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def event_bus() -> EventBus:
    return EventBus()


@pytest.fixture
def mock_event_bus(mocker):
    """
    Mock EventBus for unit tests that assert on published events.

    Scope: function
    """
    mock_bus = mocker.MagicMock()
    mock_bus.publish = mocker.AsyncMock(return_value=[])
    mock_bus.subscribe = mocker.MagicMock()
    return mock_bus


@pytest.fixture
def fixed_local_timezone(monkeypatch):
    """
    Pin the process-local timezone to UTC+1 without daylight saving.

    Daily counters roll over on the local calendar date, so date-boundary
    tests need a known offset. Scope: function (timezone restored afterwards)
    """
    if not hasattr(time, "tzset"):
        pytest.skip("time.tzset is not available on this platform")
    monkeypatch.setenv("TZ", "CET-1")
    time.tzset()

    yield

    monkeypatch.undo()
    time.tzset()


@pytest.fixture
def promotion_service(memory_storage, mock_event_bus) -> PromotionService:
    return PromotionService(memory_storage, mock_event_bus)


@pytest.fixture
def event_service(memory_storage, mock_event_bus) -> EventProcessingService:
    return EventProcessingService(memory_storage, mock_event_bus)


# ============================================================================
# TESTCONTAINERS FIXTURES (Integration Tests)
# ============================================================================


@pytest.fixture(scope="session")
def postgres_container() -> Generator[PostgresContainer, None, None]:
    """
    Start PostgreSQL testcontainer for integration tests.

    Scope: session (container persists across all tests)
    """
    logger.info("Starting PostgreSQL testcontainer...")
    container = PostgresContainer(image="postgres:17-alpine", driver="asyncpg")
    container.start()
    logger.info("PostgreSQL testcontainer started: %s", container.get_connection_url())

    yield container

    logger.info("Stopping PostgreSQL testcontainer...")
    container.stop()


@pytest.fixture(scope="session")
def redis_container() -> Generator[RedisContainer, None, None]:
    """
    Start Redis testcontainer for integration tests.

    Scope: session (container persists across all tests)
    """
    logger.info("Starting Redis testcontainer...")
    container = RedisContainer(image="redis:7-alpine")
    container.start()
    logger.info(
        "Redis testcontainer started: %s:%s",
        container.get_container_host_ip(),
        container.get_exposed_port(6379),
    )

    yield container

    logger.info("Stopping Redis testcontainer...")
    container.stop()


# ============================================================================
# STORAGE FIXTURES (Integration Tests)
# ============================================================================


@pytest_asyncio.fixture
async def redis_storage(redis_container: RedisContainer) -> AsyncGenerator[RedisStorage, None]:
    """
    RedisStorage on the container under a per-suite key prefix.

    Scope: function (keys under the prefix are deleted before and after)
    """
    url = (
        f"redis://{redis_container.get_container_host_ip()}:"
        f"{redis_container.get_exposed_port(6379)}/0"
    )
    await RedisService.initialize(url)
    storage = RedisStorage(prefix="promo-test:", log_retention=5)
    await storage.reset()

    yield storage

    await storage.reset()
    await RedisService.shutdown()


@pytest_asyncio.fixture
async def database_storage(
    postgres_container: PostgresContainer,
) -> AsyncGenerator[DatabaseStorage, None]:
    """
    DatabaseStorage on the container with a freshly created schema.

    Scope: function (tables are emptied before and after)
    """
    await DatabaseService.initialize(postgres_container.get_connection_url())
    await DatabaseService.create_schema()
    storage = DatabaseStorage(log_retention=5)
    await storage.reset()

    yield storage

    await storage.reset()
    await DatabaseService.shutdown()
