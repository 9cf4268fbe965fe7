"""
API key hashing - bcrypt helpers shared by the principal directories.

Timing oracle prevention: check_api_key() always runs bcrypt, comparing
against a pre-computed dummy hash when the principal does not exist, so
response time does not reveal which principal ids are registered.

bcrypt only reads the first 72 bytes of a key (and recent releases refuse
longer input), so longer keys are never stored and never authenticate.
"""

import bcrypt

from src.domain.exceptions import ValidationError

MAX_API_KEY_BYTES = 72

# Pre-computed bcrypt hash for timing oracle prevention.
# Hash of "dummy_api_key_for_timing_safety" with cost factor 10.
_DUMMY_BCRYPT_HASH = bcrypt.hashpw(b"dummy_api_key_for_timing_safety", bcrypt.gensalt(10)).decode()


def hash_api_key(api_key: str, cost: int = 10) -> str:
    """
    Hash an API key using bcrypt with the given cost factor.

    Raises:
        ValidationError: If the key is longer than bcrypt can hash
    """
    encoded = api_key.encode()
    if len(encoded) > MAX_API_KEY_BYTES:
        raise ValidationError(f"API key must be at most {MAX_API_KEY_BYTES} bytes")
    return bcrypt.hashpw(encoded, bcrypt.gensalt(rounds=cost)).decode()


def check_api_key(api_key: str, stored_hash: str | None) -> bool:
    """
    Constant-time API key verification.

    Args:
        api_key: Key presented by the caller
        stored_hash: bcrypt hash on record, or None for unknown principals

    Returns:
        True only if a hash exists and matches
    """
    encoded = api_key.encode()
    candidate = stored_hash if stored_hash is not None else _DUMMY_BCRYPT_HASH
    # Oversized keys still pay for one comparison but can never match
    matches = bcrypt.checkpw(encoded[:MAX_API_KEY_BYTES], candidate.encode())
    return matches and stored_hash is not None and len(encoded) <= MAX_API_KEY_BYTES
