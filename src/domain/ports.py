"""
Port interfaces - Protocol definitions for infrastructure abstraction.

This module defines the workflow vocabulary (status and role enums) and the
interfaces (ports) that the domain requires from infrastructure. Adapters
implement these protocols.
"""

from collections.abc import Callable
from enum import Enum
from typing import TYPE_CHECKING, Protocol, TypeVar

if TYPE_CHECKING:
    from .models import AccountStatusChange, ListFilter, NotificationIntent, Principal


class EntityKind(str, Enum):
    """Kinds of entity the moderation engine acts on."""

    VERIFICATION = "verification"
    REPORT = "report"


class VerificationStatus(str, Enum):
    """
    Breeder verification states.

    Transitions (admin only):
    - PENDING -> REVIEWING | APPROVED | REJECTED | CONDITIONALLY_APPROVED
                 | ADDITIONAL_DOCUMENTS_REQUIRED
    - REVIEWING -> APPROVED | REJECTED | CONDITIONALLY_APPROVED
                   | ADDITIONAL_DOCUMENTS_REQUIRED
    - ADDITIONAL_DOCUMENTS_REQUIRED -> REVIEWING | REJECTED
    - APPROVED -> REVOKED (one-way)

    Terminal States:
    - REJECTED, CONDITIONALLY_APPROVED, REVOKED
    - APPROVED accepts nothing but revocation
    """

    PENDING = "pending"
    REVIEWING = "reviewing"
    APPROVED = "approved"
    REJECTED = "rejected"
    CONDITIONALLY_APPROVED = "conditionally_approved"
    ADDITIONAL_DOCUMENTS_REQUIRED = "additional_documents_required"
    REVOKED = "revoked"


class VerificationPlan(str, Enum):
    BASIC = "basic"
    PREMIUM = "premium"


class VerificationLevel(str, Enum):
    NEW = "new"
    ELITE = "elite"


class ReportStatus(str, Enum):
    """
    Report moderation states.

    Transitions (admin only):
    - PENDING -> INVESTIGATING | RESOLVED | REJECTED
    - INVESTIGATING -> RESOLVED | REJECTED

    Terminal States:
    - RESOLVED, REJECTED (escalation metadata may still change)
    """

    PENDING = "pending"
    INVESTIGATING = "investigating"
    RESOLVED = "resolved"
    REJECTED = "rejected"


class ReportSubjectType(str, Enum):
    BREEDER = "breeder"
    POST = "post"
    REVIEW = "review"


class ReportReason(str, Enum):
    INAPPROPRIATE_CONTENT = "inappropriate_content"
    FALSE_INFORMATION = "false_information"
    ANIMAL_ABUSE = "animal_abuse"
    FRAUD = "fraud"
    NO_CONTRACT = "no_contract"
    OTHER = "other"


class ReportAction(str, Enum):
    """Terminal disposition recorded on a resolved report."""

    NO_ACTION = "no_action"
    WARNING = "warning"
    SUSPEND_ACCOUNT = "suspend_account"
    CONTENT_REMOVED = "content_removed"


class ReportPriority(str, Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    CRITICAL = "critical"


class EscalationLevel(str, Enum):
    SENIOR_ADMIN = "senior_admin"
    SUPER_ADMIN = "super_admin"
    LEGAL = "legal"


class ActorRole(str, Enum):
    ADMIN = "admin"
    BREEDER = "breeder"
    ADOPTER = "adopter"


class AccountEffect(str, Enum):
    """Account standing changes a committed transition can imply."""

    PUBLISH_VERIFIED_BREEDER = "publish_verified_breeder"
    REVOKE_BREEDER_VERIFICATION = "revoke_breeder_verification"
    SUSPEND_ACCOUNT = "suspend_account"


T = TypeVar("T")


class EntityStore(Protocol[T]):
    """
    Port interface for entity persistence.

    One store per entity kind. Every write bumps the entity's ``version``;
    ``atomic_update`` is a compare-and-set on that version.
    """

    def get(self, entity_id: str) -> T | None:
        """Return the entity, or None when no entity has this id."""
        ...

    def create(self, entity: T) -> T:
        """
        Persist a new entity.

        Raises:
            VersionConflictError: If an entity with the same key already exists
        """
        ...

    def atomic_update(
        self, entity_id: str, mutator: Callable[[T], T], expected_version: int
    ) -> T:
        """
        Apply ``mutator`` to the stored entity if its version still matches.

        The mutator receives a copy and returns the new state; the store
        increments ``version`` on write.

        Raises:
            NotFoundError: If the entity no longer exists
            VersionConflictError: If the stored version differs from expected_version
        """
        ...

    def list(
        self, filter: "ListFilter", offset: int, limit: int, timeout_ms: int
    ) -> tuple[list[T], int]:
        """
        Return one page of matching entities plus the total match count.

        Ordered by (created_at, id), both immutable.

        Raises:
            ListingTimeoutError: If the query exceeded timeout_ms
        """
        ...

    def count_by_status(self) -> dict[str, int]:
        """Return entity counts keyed by status value."""
        ...


class AccountStatusMutator(Protocol):
    """Port interface for the account standing collaborator."""

    def apply(self, change: "AccountStatusChange") -> None:
        """Apply an account standing change. May raise on downstream failure."""
        ...


class NotificationDispatcher(Protocol):
    """Port interface for notification delivery (fire-and-forget)."""

    def dispatch(self, intent: "NotificationIntent") -> None:
        """Enqueue a notification. Delivery is not guaranteed."""
        ...


class PrincipalDirectory(Protocol):
    """Port interface for resolving authenticated principals."""

    def authenticate(self, principal_id: str, api_key: str) -> "Principal | None":
        """
        Resolve credentials to a principal.

        Returns:
            The principal, or None if the id is unknown, the key does not
            match, or the account is not active
        """
        ...
