"""
Shared fixtures for integration tests.

PostgreSQL-backed tests request ``pool``; they are skipped when the
database from ``DATABASE_URL`` is not reachable.
"""

from collections.abc import Generator

import pytest
from psycopg_pool import ConnectionPool, PoolTimeout

from src.adapters.repository.postgres import run_migrations
from src.config.settings import get_settings


@pytest.fixture(scope="module")
def pool() -> Generator[ConnectionPool, None, None]:
    """Create connection pool for integration tests."""
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
