"""Exception hierarchy for the event relay."""

from __future__ import annotations

from typing import Optional


class RelayError(Exception):
    """Base class for every error raised by the relay."""


class ClientClosedError(RelayError):
    """Raised when a producer calls into a client that is shutting down."""


class ValidationFailure(RelayError):
    """Strict validation rejected an event; it is never stored or retried."""


class StoreError(RelayError):
    """The backing store could not complete an operation."""


class DeliveryError(RelayError):
    """A send to the collector failed."""


class TransportError(DeliveryError):
    """The request never produced a response (connect, timeout, protocol)."""

    def __init__(self, message: str, cause: Optional[BaseException] = None) -> None:
        super().__init__(message)
        self.cause = cause


class StatusError(DeliveryError):
    """The collector answered with a non-success status code."""

    def __init__(self, status_code: int, body: str = "") -> None:
        super().__init__(f"send failed with status code {status_code}")
        self.status_code = status_code
        self.body = body


class RetryExhausted(RelayError):
    def __init__(self, identity: str, attempts: int, cause: Optional[BaseException] = None) -> None:
        super().__init__(f"event {identity} dropped after {attempts} attempts")
        self.identity = identity
        self.attempts = attempts
        self.cause = cause


__all__ = [
    "RelayError",
    "ClientClosedError",
    "ValidationFailure",
    "StoreError",
    "DeliveryError",
    "TransportError",
    "StatusError",
    "RetryExhausted",
]
