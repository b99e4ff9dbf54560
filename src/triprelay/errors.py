"""Error taxonomy for the realtime session layer."""

from __future__ import annotations


class RelayError(Exception):
    """Base exception for all triprelay errors.

    ``kind`` is the name reported to clients in ``error`` events.
    """

    kind: str = "RelayError"

    def __init__(self, detail: str = "") -> None:
        super().__init__(detail)
        self.detail = detail


class AuthenticationError(RelayError):
    """Missing or invalid credential; the connection attempt is refused."""

    kind = "AuthenticationError"


class NotFoundError(RelayError):
    """Unregistered connection or nonexistent message."""

    kind = "NotFoundError"


class ValidationError(RelayError):
    """Malformed client input."""

    kind = "ValidationError"


class PersistenceError(RelayError):
    """The message store failed."""

    kind = "PersistenceError"


class OperationTimeoutError(PersistenceError, TimeoutError):
    """A store call exceeded the configured bound."""

    kind = "TimeoutError"
