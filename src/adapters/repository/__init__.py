"""Repository adapters - Entity store implementations."""

from .memory import InMemoryReportStore, InMemoryVerificationStore
from .postgres import PostgresReportStore, PostgresVerificationStore, run_migrations

__all__ = [
    "InMemoryReportStore",
    "InMemoryVerificationStore",
    "PostgresReportStore",
    "PostgresVerificationStore",
    "run_migrations",
]
