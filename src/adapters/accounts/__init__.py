"""Account adapters - Principal resolution and account standing."""

from .memory import AccountStanding, InMemoryAccountDirectory
from .postgres import PostgresAccountDirectory

__all__ = ["AccountStanding", "InMemoryAccountDirectory", "PostgresAccountDirectory"]
