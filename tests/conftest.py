"""
Shared test fixtures and configuration.

This module provides pytest fixtures for:
- Principals for each role
- In-memory stores and a fixed clock
- A moderation engine with mocked side-effect collaborators
"""

from unittest.mock import MagicMock

import pytest

from src.adapters.repository.memory import InMemoryReportStore, InMemoryVerificationStore
from src.domain.listing import ListingService
from src.domain.models import Principal
from src.domain.moderation import ModerationEngine
from src.domain.ports import ActorRole
from tests.factories import ADMIN_ID, ADOPTER_ID, BREEDER_ID, FIXED_NOW


@pytest.fixture
def admin() -> Principal:
    """Admin allowed to manage breeders and reports."""
    return Principal(
        id=ADMIN_ID,
        role=ActorRole.ADMIN,
        display_name="Admin",
        can_manage_breeders=True,
        can_manage_reports=True,
    )


@pytest.fixture
def breeder() -> Principal:
    return Principal(id=BREEDER_ID, role=ActorRole.BREEDER, display_name="Happy Paws")


@pytest.fixture
def adopter() -> Principal:
    return Principal(id=ADOPTER_ID, role=ActorRole.ADOPTER, display_name="Adopter")


@pytest.fixture
def verifications() -> InMemoryVerificationStore:
    return InMemoryVerificationStore()


@pytest.fixture
def reports() -> InMemoryReportStore:
    return InMemoryReportStore()


@pytest.fixture
def account_status() -> MagicMock:
    """Mock AccountStatusMutator."""
    return MagicMock()


@pytest.fixture
def notifier() -> MagicMock:
    """Mock NotificationDispatcher."""
    return MagicMock()


@pytest.fixture
def engine(
    verifications: InMemoryVerificationStore,
    reports: InMemoryReportStore,
    account_status: MagicMock,
    notifier: MagicMock,
) -> ModerationEngine:
    """Moderation engine over in-memory stores with a fixed clock."""
    return ModerationEngine(
        verifications=verifications,
        reports=reports,
        account_status=account_status,
        notifier=notifier,
        clock=lambda: FIXED_NOW,
    )


@pytest.fixture
def listing(
    verifications: InMemoryVerificationStore, reports: InMemoryReportStore
) -> ListingService:
    return ListingService(verifications=verifications, reports=reports)

