"""
Domain error translation.

Maps domain exceptions to HTTP responses with a stable
``{"detail": {"code", "message"}}`` body.
"""

from fastapi import HTTPException, status

from src.domain.exceptions import (
    AlreadyProcessedError,
    AuthenticationRequired,
    ListingTimeoutError,
    ModerationError,
    NotFoundError,
    PermissionDenied,
    ValidationError,
    VersionConflictError,
)

# Most specific first; InvalidTransitionError is caught by ValidationError
_STATUS_BY_ERROR: tuple[tuple[type[ModerationError], int], ...] = (
    (AuthenticationRequired, status.HTTP_401_UNAUTHORIZED),
    (PermissionDenied, status.HTTP_403_FORBIDDEN),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (VersionConflictError, status.HTTP_409_CONFLICT),
    (ListingTimeoutError, status.HTTP_503_SERVICE_UNAVAILABLE),
    (AlreadyProcessedError, status.HTTP_400_BAD_REQUEST),
    (ValidationError, status.HTTP_400_BAD_REQUEST),
)


def to_http_exception(error: ModerationError) -> HTTPException:
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    for error_type, mapped in _STATUS_BY_ERROR:
        if isinstance(error, error_type):
            status_code = mapped
            break

    headers = {"WWW-Authenticate": "Basic"} if status_code == status.HTTP_401_UNAUTHORIZED else None
    return HTTPException(
        status_code=status_code,
        detail={"code": error.code, "message": error.message},
        headers=headers,
    )
