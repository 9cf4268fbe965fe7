"""
Unit tests for the in-memory account directory and API key helpers.

Tests verify:
- Idempotent principal seeding
- API key authentication, including unknown ids and suspended accounts
- Account standing changes driven by moderation side effects
"""

from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest

from src.adapters.accounts import AccountStanding, InMemoryAccountDirectory
from src.adapters.accounts.credentials import check_api_key, hash_api_key
from src.domain.exceptions import NotFoundError, ValidationError
from src.domain.models import AccountStatusChange, Principal
from src.domain.ports import AccountEffect
from tests.factories import ADOPTER_ID, BREEDER_ID

API_KEY = "breeder-api-key"


@pytest.fixture
def directory(breeder: Principal) -> InMemoryAccountDirectory:
    directory = InMemoryAccountDirectory(bcrypt_cost=4)
    directory.ensure_principal(breeder, API_KEY)
    return directory


class TestCredentials:
    """Tests for bcrypt API key helpers."""

    def test_round_trip(self) -> None:
        stored = hash_api_key("secret", cost=4)
        assert stored.startswith("$2b$04$")
        assert check_api_key("secret", stored)
        assert not check_api_key("wrong", stored)

    def test_unknown_principal_never_matches(self) -> None:
        """The dummy hash is compared but cannot authenticate anyone."""
        assert not check_api_key("dummy_api_key_for_timing_safety", None)

    def test_key_longer_than_bcrypt_limit_never_matches(self) -> None:
        """Keys sharing the first 72 bytes with a stored key are refused, not truncated."""
        stored = hash_api_key("k" * 72, cost=4)
        assert not check_api_key("k" * 100, stored)
        assert not check_api_key("k" * 100, None)

    def test_hashing_a_key_longer_than_bcrypt_limit_is_rejected(self) -> None:
        with pytest.raises(ValidationError, match="at most 72 bytes"):
            hash_api_key("k" * 73, cost=4)

    def test_multibyte_key_is_measured_in_bytes(self) -> None:
        with pytest.raises(ValidationError):
            hash_api_key("\u00e9" * 37, cost=4)


class TestEnsurePrincipal:
    """Tests for idempotent seeding."""

    def test_second_seed_is_a_no_op(
        self, directory: InMemoryAccountDirectory, breeder: Principal
    ) -> None:
        """Re-seeding keeps the original key."""
        assert directory.ensure_principal(breeder, "another-key") is False
        assert directory.authenticate(BREEDER_ID, API_KEY) == breeder
        assert directory.authenticate(BREEDER_ID, "another-key") is None


class TestAuthenticate:
    """Tests for principal resolution."""

    def test_valid_key_resolves_principal(
        self, directory: InMemoryAccountDirectory, breeder: Principal
    ) -> None:
        assert directory.authenticate(BREEDER_ID, API_KEY) == breeder

    def test_wrong_key_is_rejected(self, directory: InMemoryAccountDirectory) -> None:
        assert directory.authenticate(BREEDER_ID, "nope") is None

    def test_unknown_principal_is_rejected(self, directory: InMemoryAccountDirectory) -> None:
        assert directory.authenticate(ADOPTER_ID, API_KEY) is None

    def test_suspended_principal_is_rejected(self, directory: InMemoryAccountDirectory) -> None:
        directory.apply(
            AccountStatusChange(
                subject_id=BREEDER_ID, effect=AccountEffect.SUSPEND_ACCOUNT, reason="abuse"
            )
        )
        assert directory.authenticate(BREEDER_ID, API_KEY) is None


class TestApply:
    """Tests for account standing changes."""

    def test_publish_and_revoke_breeder(self, directory: InMemoryAccountDirectory) -> None:
        directory.apply(
            AccountStatusChange(
                subject_id=BREEDER_ID, effect=AccountEffect.PUBLISH_VERIFIED_BREEDER
            )
        )
        standing = directory.standing(BREEDER_ID)
        assert standing.breeder_verified and standing.breeder_public

        directory.apply(
            AccountStatusChange(
                subject_id=BREEDER_ID, effect=AccountEffect.REVOKE_BREEDER_VERIFICATION
            )
        )
        standing = directory.standing(BREEDER_ID)
        assert not standing.breeder_verified and not standing.breeder_public

    def test_timed_suspension_records_end_and_reason(
        self, directory: InMemoryAccountDirectory
    ) -> None:
        before = datetime.now(timezone.utc)

        directory.apply(
            AccountStatusChange(
                subject_id=BREEDER_ID,
                effect=AccountEffect.SUSPEND_ACCOUNT,
                reason="abuse confirmed",
                suspension_days=30,
            )
        )

        standing = directory.standing(BREEDER_ID)
        assert standing.status == "suspended"
        assert standing.suspension_reason == "abuse confirmed"
        assert standing.suspended_until >= before + timedelta(days=30)

    def test_unknown_account_is_not_found(self, directory: InMemoryAccountDirectory) -> None:
        with pytest.raises(NotFoundError):
            directory.apply(
                AccountStatusChange(
                    subject_id=ADOPTER_ID, effect=AccountEffect.PUBLISH_VERIFIED_BREEDER
                )
            )


class TestAccountStanding:
    """Tests for suspension expiry."""

    def test_lapsed_suspension_is_active(self, breeder: Principal) -> None:
        now = datetime(2025, 3, 10, tzinfo=timezone.utc)
        standing = AccountStanding(principal=breeder, api_key_hash="x", status="suspended")

        assert not standing.is_active(now)
        assert not replace(standing, suspended_until=now + timedelta(days=1)).is_active(now)
        assert replace(standing, suspended_until=now - timedelta(seconds=1)).is_active(now)
