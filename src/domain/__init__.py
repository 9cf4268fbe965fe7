"""
Domain layer - Pure business logic with zero framework imports.

This package contains the breeder trust pipeline: the verification and
report state machines, the shared transition validator, the moderation
engine and the listing service. It defines its own port interfaces for
infrastructure abstraction, ensuring true hexagonal architecture decoupling.
"""

from .exceptions import (
    AlreadyProcessedError,
    AuthenticationRequired,
    AuthorizationError,
    DownstreamSyncError,
    InvalidTransitionError,
    ListingTimeoutError,
    ModerationError,
    NotFoundError,
    PermissionDenied,
    ValidationError,
    VersionConflictError,
)
from .listing import ListingQuery, ListingService
from .moderation import ModerationEngine
from .ports import (
    AccountStatusMutator,
    EntityKind,
    EntityStore,
    NotificationDispatcher,
    PrincipalDirectory,
    ReportStatus,
    VerificationStatus,
)
from .transitions import TransitionValidator

__all__ = [
    "AccountStatusMutator",
    "AlreadyProcessedError",
    "AuthenticationRequired",
    "AuthorizationError",
    "DownstreamSyncError",
    "EntityKind",
    "EntityStore",
    "InvalidTransitionError",
    "ListingQuery",
    "ListingService",
    "ListingTimeoutError",
    "ModerationEngine",
    "ModerationError",
    "NotFoundError",
    "NotificationDispatcher",
    "PermissionDenied",
    "PrincipalDirectory",
    "ReportStatus",
    "TransitionValidator",
    "ValidationError",
    "VerificationStatus",
]
