from __future__ import annotations

from typing import Any


class RelayError(Exception):
    """Base SDK exception."""


class RelayServiceError(RelayError):
    """Raised for non-success responses carrying a service error code."""

    def __init__(
        self,
        status_code: int,
        code: str,
        message: str,
        *,
        body: Any | None = None,
        request_id: str | None = None,
    ) -> None:
        super().__init__(f"HTTP {status_code} {code}: {message}")
        self.status_code = status_code
        self.code = code
        self.message = message
        self.body = body
        self.request_id = request_id


class RelayTransportError(RelayError):
    """The request never produced an HTTP response."""


class RelayDecodeError(RelayError):
    """Response body is missing a required field or is not well-formed."""


class RelayIntegrityError(RelayError):
    """Message checksum does not match the body."""

    def __init__(self, expected: str, actual: str) -> None:
        super().__init__(f"checksum mismatch: expected {expected}, computed {actual}")
        self.expected = expected
        self.actual = actual


class RelayAttemptsExhaustedError(RelayError):
    """Retry budget ran out while the service kept asking for another attempt."""

    def __init__(self, attempts: int, last_error: BaseException | None = None) -> None:
        super().__init__(f"gave up after {attempts} attempts: {last_error}")
        self.attempts = attempts
        self.last_error = last_error


class RelayCancelledError(RelayError):
    """Caller cancelled the operation while it was retrying."""


class UnresolvedContextError(RelayError, ValueError):
    """Resource-scoped call made with a context that has no resource path."""
