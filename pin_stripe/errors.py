"""Error taxonomy for the Stripe client and webhook gateway.

Every error the library reports derives from ``PinStripeError`` so callers can
blanket-catch, while each cause keeps its own type:

- Resolution errors: the identifier or type token maps to no resource type
- Request errors: the server answered with an error status (body preserved)
  versus the request never completing (reason code only)
- Webhook signature errors: malformed header, digest mismatch, stale timestamp,
  misconfigured secret
- Configuration errors: raised at construction time, never per request

Errors are normally *returned* inside ``Err`` results. Only the ``*_or_raise``
call forms and ``Result.unwrap()`` raise them.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

__all__ = [
    "ConfigurationError",
    "HttpStatusError",
    "InvalidSecretFormat",
    "MalformedSignature",
    "PinStripeError",
    "PrefixConflictError",
    "RequestError",
    "ResolutionError",
    "SignatureMismatch",
    "StaleTimestamp",
    "TransportFailure",
    "TransportFailureReason",
    "UnrecognizedEntityType",
    "WebhookSignatureError",
]


class PinStripeError(Exception):
    """Base exception for all library errors."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


# ─────────────────────────────────────────────────────────────────────────────
# Resolution
# ─────────────────────────────────────────────────────────────────────────────


class ResolutionError(PinStripeError):
    """Raised when an identifier or type token cannot be resolved."""


class UnrecognizedEntityType(ResolutionError):
    """No resource type matches the given identifier or type token."""

    def __init__(self, entity: Any) -> None:
        super().__init__(f"Unrecognized entity type: {entity!r}")
        self.entity = entity


# ─────────────────────────────────────────────────────────────────────────────
# Requests
# ─────────────────────────────────────────────────────────────────────────────


class RequestError(PinStripeError):
    """Base for failures of an outbound API request."""


class HttpStatusError(RequestError):
    """The server responded with a status >= 400.

    The decoded body is kept for inspection (Stripe puts the error type, code
    and message under ``body["error"]``).
    """

    def __init__(self, status: int, body: Any, headers: dict[str, list[str]] | None = None) -> None:
        super().__init__(f"Request failed with status {status}")
        self.status = status
        self.body = body
        self.headers = headers or {}

    @property
    def error_message(self) -> str | None:
        """Stripe's human-readable error message, when the body carries one."""
        if isinstance(self.body, dict):
            error = self.body.get("error")
            if isinstance(error, dict):
                return error.get("message")
        return None


class TransportFailureReason(str, Enum):
    """Why a request never produced a response."""

    TIMEOUT = "timeout"
    CANCELLED = "cancelled"
    CONNECT = "connect"
    NETWORK = "network"


class TransportFailure(RequestError):
    """The request did not complete: no status, no body."""

    def __init__(self, reason: TransportFailureReason, detail: str = "") -> None:
        message = f"Transport failure: {reason.value}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)
        self.reason = reason
        self.detail = detail


# ─────────────────────────────────────────────────────────────────────────────
# Webhook signatures
# ─────────────────────────────────────────────────────────────────────────────


class WebhookSignatureError(PinStripeError):
    """Base for webhook authentication failures."""


class MalformedSignature(WebhookSignatureError):
    """The signature header is missing fields or cannot be parsed."""


class SignatureMismatch(WebhookSignatureError):
    """No signature in the header matches the expected digest."""

    def __init__(self, message: str = "No signatures found matching the expected signature") -> None:
        super().__init__(message)


class StaleTimestamp(WebhookSignatureError):
    """The signed timestamp is outside the tolerance window."""

    def __init__(self, timestamp: int, now: int, tolerance: int) -> None:
        super().__init__(
            f"Timestamp {timestamp} outside tolerance of {tolerance}s (now={now})"
        )
        self.timestamp = timestamp
        self.now = now
        self.tolerance = tolerance


class InvalidSecretFormat(WebhookSignatureError):
    """The configured webhook secret does not have the expected prefix."""


# ─────────────────────────────────────────────────────────────────────────────
# Configuration
# ─────────────────────────────────────────────────────────────────────────────


class ConfigurationError(PinStripeError):
    """Invalid static configuration, detected at startup."""


class PrefixConflictError(ConfigurationError):
    """Two resource types declare overlapping identifier prefixes."""

    def __init__(self, prefix: str, first: str, second: str) -> None:
        super().__init__(
            f"Identifier prefix {prefix!r} of {second!r} overlaps with {first!r}"
        )
        self.prefix = prefix
        self.first = first
        self.second = second
