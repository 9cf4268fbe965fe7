"""
In-memory account directory - Implements PrincipalDirectory and AccountStatusMutator.

Holds principals and their account standing in a dict. Used for local runs
(STORAGE_BACKEND=memory) and tests.
"""

import logging
import threading
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone

from src.domain.exceptions import NotFoundError
from src.domain.models import AccountStatusChange, Principal
from src.domain.ports import AccountEffect

from .credentials import check_api_key, hash_api_key

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AccountStanding:
    """Account state owned by the account-status collaborator."""

    principal: Principal
    api_key_hash: str
    status: str = "active"
    suspended_until: datetime | None = None
    suspension_reason: str | None = None
    breeder_verified: bool = False
    breeder_public: bool = False

    def is_active(self, now: datetime) -> bool:
        """Suspensions with an end date lapse on their own."""
        if self.status == "active":
            return True
        return self.suspended_until is not None and self.suspended_until <= now


class InMemoryAccountDirectory:
    """
    Implements PrincipalDirectory and AccountStatusMutator in memory.

    Uses structural subtyping - no explicit inheritance from Protocol.
    """

    def __init__(self, bcrypt_cost: int = 10) -> None:
        self._bcrypt_cost = bcrypt_cost
        self._lock = threading.Lock()
        self._accounts: dict[str, AccountStanding] = {}

    def ensure_principal(self, principal: Principal, api_key: str) -> bool:
        """
        Register a principal unless it already exists.

        Returns:
            True if created, False if the id was already registered
        """
        api_key_hash = hash_api_key(api_key, self._bcrypt_cost)
        with self._lock:
            if principal.id in self._accounts:
                return False
            self._accounts[principal.id] = AccountStanding(principal, api_key_hash)
            return True

    def authenticate(self, principal_id: str, api_key: str) -> Principal | None:
        with self._lock:
            account = self._accounts.get(principal_id)
        valid = check_api_key(api_key, account.api_key_hash if account else None)
        if account is None or not valid:
            return None
        if not account.is_active(datetime.now(timezone.utc)):
            logger.info("Rejected suspended principal %s", principal_id)
            return None
        return account.principal

    def apply(self, change: AccountStatusChange) -> None:
        with self._lock:
            account = self._accounts.get(change.subject_id)
            if account is None:
                raise NotFoundError(f"Account not found: {change.subject_id}")
            self._accounts[change.subject_id] = _apply_change(account, change)
        logger.info("Account %s: %s", change.subject_id, change.effect.value)

    def standing(self, principal_id: str) -> AccountStanding | None:
        with self._lock:
            return self._accounts.get(principal_id)


def _apply_change(account: AccountStanding, change: AccountStatusChange) -> AccountStanding:
    if change.effect == AccountEffect.PUBLISH_VERIFIED_BREEDER:
        return replace(account, breeder_verified=True, breeder_public=True)
    if change.effect == AccountEffect.REVOKE_BREEDER_VERIFICATION:
        return replace(account, breeder_verified=False, breeder_public=False)
    suspended_until = None
    if change.suspension_days is not None:
        suspended_until = datetime.now(timezone.utc) + timedelta(days=change.suspension_days)
    return replace(
        account,
        status="suspended",
        suspended_until=suspended_until,
        suspension_reason=change.reason,
    )
