"""Error taxonomy shared by every component.

Learn: Services raise these; the exception handlers in main.py turn them
into HTTP responses. Auth failures are deliberately vague on the wire —
"unknown key" and "malformed key" look identical to the caller — and
storage failures never leak driver detail past the log.
"""


class MsgQueueError(Exception):
    """Base class for all msgqueue errors."""


class AuthError(MsgQueueError):
    """Bad credentials, or an unknown/revoked/malformed token."""


class ForbiddenError(MsgQueueError):
    """Valid token whose role does not satisfy the route's requirement."""


class ValidationError(MsgQueueError):
    """Malformed input: bad message content, retention window, pagination."""


class StorageError(MsgQueueError):
    """The underlying store failed."""


class RandomnessError(MsgQueueError):
    """The OS random source failed while generating a token."""
