"""Entity identifier format checks."""

import uuid

from .exceptions import ValidationError


def normalize_id(value: str, label: str = "id") -> str:
    """
    Validate and canonicalize a UUID identifier.

    Runs before any store lookup so that malformed ids fail with
    ValidationError and only well-formed ids can produce NotFoundError.

    Raises:
        ValidationError: If value is not a UUID
    """
    try:
        return str(uuid.UUID(str(value).strip()))
    except ValueError:
        raise ValidationError(f"Malformed {label}: {value!r}") from None


def new_id() -> str:
    return str(uuid.uuid4())
