"""Token generation and digesting.

Learn: Passwords and API keys go through the same digest: unsalted
SHA-256, hex-encoded. That matches the hashes already sitting in existing
users tables. It is a known weakness for passwords (fast, unsalted) and
stays until there's a migration plan for stored hashes.
"""

import hashlib
import secrets

from msgqueue.errors import RandomnessError

TOKEN_BYTES = 32  # 256 bits


def digest(value: str) -> str:
    """Hex SHA-256 of a UTF-8 string."""
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


def generate_token() -> str:
    """Return a fresh random key as 64 lowercase hex characters."""
    try:
        return secrets.token_hex(TOKEN_BYTES)
    except (OSError, NotImplementedError) as e:
        raise RandomnessError("random source unavailable") from e


def digests_match(expected: str, actual: str) -> bool:
    """Constant-time comparison of two hex digests."""
    return secrets.compare_digest(expected, actual)
