"""
Shared fixtures for the integration manager tests.

Persistence tests run against a throwaway SQLite file per test.
"""

import random
from datetime import datetime, timezone

import pytest
import pytest_asyncio

from analytics.tracker import AnalyticsTracker
from core.clock import MockClock
from core.error_reporter import ErrorReporter
from integration.config import IntegrationConfig, SyncSettings
from integration.integration_checks import RandomIntegrationHealthCheck
from integration.manager import IntegrationManager
from services.registry import build_default_registry
from storage.database import DatabaseConfig, create_all_tables, create_engine_from_config
from storage.gateway import SqlAlchemyRecordStore


FIXED_NOW = datetime(2026, 3, 15, 12, 0, 0, tzinfo=timezone.utc)


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture
def clock():
    return MockClock(FIXED_NOW)


@pytest.fixture
def error_reporter(clock):
    return ErrorReporter(max_queue_size=100, clock=clock)


@pytest.fixture
def fast_config():
    """Default config with no delay between sync steps."""
    return IntegrationConfig(sync=SyncSettings(worker_count=2, step_delay_seconds=0))


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = create_engine_from_config(
        DatabaseConfig(url=f"sqlite+aiosqlite:///{tmp_path / 'portal.db'}")
    )
    await create_all_tables(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def store(engine):
    return SqlAlchemyRecordStore(engine)


@pytest.fixture
def analytics(store, clock):
    return AnalyticsTracker(store, clock)


@pytest.fixture
def registry(store, analytics, clock):
    return build_default_registry(store, analytics, clock)


@pytest_asyncio.fixture
async def manager(store, registry, analytics, fast_config, clock, error_reporter):
    manager = IntegrationManager(
        store,
        registry,
        analytics,
        config=fast_config,
        clock=clock,
        error_reporter=error_reporter,
        integration_check=RandomIntegrationHealthCheck(1.0),
        rng=random.Random(42),
    )
    yield manager
    await manager.close()
