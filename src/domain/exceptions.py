"""
Domain exceptions - Semantic error types for the trust pipeline.

This module defines domain-specific exceptions that communicate
workflow rule violations without leaking infrastructure details.
Every error carries a stable ``code`` the API layer exposes to callers.
"""


class ModerationError(Exception):
    """Base class for trust pipeline domain errors."""

    code = "moderation_error"

    def __init__(self, message: str = "") -> None:
        super().__init__(message)
        self.message = message


class ValidationError(ModerationError):
    """Malformed identifier, missing field, bad filter or pagination."""

    code = "validation_error"


class InvalidTransitionError(ValidationError):
    """Requested status is not reachable from the current, non-terminal status."""

    code = "invalid_transition"


class AlreadyProcessedError(ModerationError):
    """Action requested on an entity that already reached a terminal status."""

    code = "already_processed"


class NotFoundError(ModerationError):
    """Well-formed identifier with no matching entity."""

    code = "not_found"


class AuthorizationError(ModerationError):
    """Base class for principal problems."""

    code = "unauthorized"


class AuthenticationRequired(AuthorizationError):
    """No principal, or credentials that do not resolve to one."""

    code = "authentication_required"


class PermissionDenied(AuthorizationError):
    """Principal resolved but lacks the role or permission for the action."""

    code = "permission_denied"


class VersionConflictError(ModerationError):
    """Entity changed between read and conditional write."""

    code = "version_conflict"


class DownstreamSyncError(ModerationError):
    """Side effect failed after the moderation decision was committed.

    Logged by the engine, never raised to callers.
    """

    code = "downstream_sync_failed"


class ListingTimeoutError(ModerationError):
    """Listing query exceeded the server-side statement timeout."""

    code = "listing_timeout"
