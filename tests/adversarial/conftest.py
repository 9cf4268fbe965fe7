"""
Shared fixtures for adversarial tests.

Provides engines over both storage backends for race condition tests and
account directories for credential guessing and timing tests.
"""

from collections.abc import Generator
from unittest.mock import MagicMock

import pytest
from psycopg_pool import ConnectionPool, PoolTimeout

from src.adapters.accounts import InMemoryAccountDirectory, PostgresAccountDirectory
from src.adapters.repository import (
    InMemoryReportStore,
    InMemoryVerificationStore,
    PostgresReportStore,
    PostgresVerificationStore,
)
from src.adapters.repository.postgres import run_migrations
from src.config.settings import get_settings
from src.domain.moderation import ModerationEngine

# Module-level marker for all adversarial tests
pytestmark = pytest.mark.adversarial


@pytest.fixture(scope="module")
def pool() -> Generator[ConnectionPool, None, None]:
    """Create connection pool for adversarial tests; skip when PostgreSQL is down."""
    settings = get_settings()
    pool = ConnectionPool(
        conninfo=settings.database_url,
        min_size=1,
        max_size=10,
        open=True,
    )
    try:
        pool.wait(timeout=5)
    except PoolTimeout:
        pool.close()
        pytest.skip("PostgreSQL is not reachable")
    run_migrations(pool)
    yield pool
    pool.close()


@pytest.fixture
def clean_database(pool: ConnectionPool) -> Generator[None, None, None]:
    """Clean trust pipeline tables before each test."""
    with pool.connection() as conn:
        conn.execute("DELETE FROM verification_records")
        conn.execute("DELETE FROM reports")
        conn.execute("DELETE FROM accounts")
        conn.commit()
    yield


@pytest.fixture(params=["memory", "postgres"])
def race_engine(request: pytest.FixtureRequest) -> ModerationEngine:
    """Moderation engine over each storage backend, with mocked side effects."""
    if request.param == "memory":
        verifications, reports = InMemoryVerificationStore(), InMemoryReportStore()
    else:
        pool = request.getfixturevalue("pool")
        request.getfixturevalue("clean_database")
        verifications, reports = PostgresVerificationStore(pool), PostgresReportStore(pool)
    return ModerationEngine(
        verifications=verifications,
        reports=reports,
        account_status=MagicMock(),
        notifier=MagicMock(),
    )


@pytest.fixture(params=["memory", "postgres"])
def directory(request: pytest.FixtureRequest):
    """Account directory at production bcrypt cost over each backend."""
    if request.param == "memory":
        return InMemoryAccountDirectory(bcrypt_cost=10)
    pool = request.getfixturevalue("pool")
    request.getfixturevalue("clean_database")
    return PostgresAccountDirectory(pool, bcrypt_cost=10)
