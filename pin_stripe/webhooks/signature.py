"""Stripe webhook signature verification.

Stripe sends ``Stripe-Signature: t=<unix ts>,v1=<hex hmac>[,v1=<hex hmac>...]``.
The signed message is ``"{t}." + raw body`` under HMAC-SHA256 with the
endpoint secret (``whsec_...``).

Security contract:
- Secret format is checked before anything else (fail fast on misconfiguration)
- Digest comparison uses hmac.compare_digest() over every candidate, no early exit
- Timestamp tolerance (default 300s) applies even when the digest is correct
- Several ``v1`` signatures and several active secrets are accepted (rotation)
- Unknown schemes (``v0``, future versions) are ignored, not errors
- Inputs are never mutated
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import time
from dataclasses import dataclass
from typing import Callable, Sequence, Union

from pin_stripe.config import WEBHOOK_SECRET_PREFIX
from pin_stripe.errors import (
    InvalidSecretFormat,
    MalformedSignature,
    SignatureMismatch,
    StaleTimestamp,
    WebhookSignatureError,
)
from pin_stripe.result import Err, Ok, Result

logger = logging.getLogger(__name__)

__all__ = [
    "DEFAULT_TOLERANCE_SECONDS",
    "SIGNATURE_HEADER",
    "SignatureHeader",
    "SignatureVerifier",
    "check_secrets",
    "compute_signature",
    "parse_signature_header",
    "sign_payload",
    "verify",
]

SIGNATURE_HEADER = "stripe-signature"
DEFAULT_TOLERANCE_SECONDS = 300
EXPECTED_SCHEME = "v1"

Payload = Union[bytes, str]
Secrets = Union[str, Sequence[str]]


@dataclass(frozen=True, slots=True)
class SignatureHeader:
    """Parsed ``Stripe-Signature`` header."""

    timestamp: int
    signatures: tuple[tuple[str, str], ...]

    @property
    def v1(self) -> tuple[str, ...]:
        return tuple(digest for scheme, digest in self.signatures if scheme == EXPECTED_SCHEME)


def _as_bytes(payload: Payload) -> bytes:
    return payload.encode("utf-8") if isinstance(payload, str) else payload


def _as_secret_list(secret: Secrets) -> tuple[str, ...]:
    return (secret,) if isinstance(secret, str) else tuple(secret)


def check_secrets(secret: Secrets) -> Result[tuple[str, ...], InvalidSecretFormat]:
    secrets = _as_secret_list(secret)
    if not secrets:
        return Err(InvalidSecretFormat("No webhook secret configured"))
    for candidate in secrets:
        if not isinstance(candidate, str) or not candidate.startswith(WEBHOOK_SECRET_PREFIX):
            return Err(InvalidSecretFormat(f"Webhook secret must start with {WEBHOOK_SECRET_PREFIX!r}"))
    return Ok(secrets)


def parse_signature_header(header: str | None) -> Result[SignatureHeader, MalformedSignature]:
    """Parse ``t=...,v1=...`` into a ``SignatureHeader``."""
    if not header:
        return Err(MalformedSignature("Missing signature header"))

    timestamps: list[str] = []
    signatures: list[tuple[str, str]] = []
    for item in header.split(","):
        key, sep, value = item.strip().partition("=")
        if not sep:
            continue
        if key == "t":
            timestamps.append(value)
        else:
            signatures.append((key, value))

    if not timestamps:
        return Err(MalformedSignature("Unable to extract timestamp from header"))
    if len(set(timestamps)) > 1:
        return Err(MalformedSignature("Conflicting timestamps in header"))
    try:
        timestamp = int(timestamps[0])
    except ValueError:
        return Err(MalformedSignature("Non-numeric timestamp in header"))

    parsed = SignatureHeader(timestamp=timestamp, signatures=tuple(signatures))
    if not parsed.v1:
        return Err(MalformedSignature(f"No signatures found with expected scheme {EXPECTED_SCHEME}"))
    return Ok(parsed)


def compute_signature(payload: Payload, secret: str, timestamp: int) -> str:
    """Hex HMAC-SHA256 of ``"{timestamp}." + payload`` keyed by *secret*."""
    signed_payload = f"{timestamp}.".encode("utf-8") + _as_bytes(payload)
    return hmac.new(secret.encode("utf-8"), signed_payload, hashlib.sha256).hexdigest()


def sign_payload(payload: Payload, secret: str, timestamp: int | None = None) -> str:
    """Build a valid ``Stripe-Signature`` value (tests, local replays)."""
    ts = int(time.time()) if timestamp is None else timestamp
    return f"t={ts},{EXPECTED_SCHEME}={compute_signature(payload, secret, ts)}"


def _digest_matches(expected: str, candidates: Sequence[str]) -> bool:
    matched = False
    expected_bytes = expected.encode("utf-8")
    for candidate in candidates:
        # Non-short-circuiting: every candidate is compared.
        matched |= hmac.compare_digest(expected_bytes, candidate.encode("utf-8"))
    return matched


def verify(
    payload: Payload,
    signature_header: str | None,
    secret: Secrets,
    tolerance: int = DEFAULT_TOLERANCE_SECONDS,
    *,
    now: int | None = None,
) -> Result[SignatureHeader, WebhookSignatureError]:
    """Authenticate one webhook delivery.

    Args:
        payload: Raw request body exactly as received
        signature_header: Value of the ``Stripe-Signature`` header
        secret: Endpoint secret, or several during rotation
        tolerance: Maximum ``|now - t|`` in seconds
        now: Current unix time (defaults to the wall clock)

    Returns:
        ``Ok(SignatureHeader)`` or ``Err`` with one of ``InvalidSecretFormat``,
        ``MalformedSignature``, ``StaleTimestamp``, ``SignatureMismatch``
    """
    secrets = check_secrets(secret)
    if isinstance(secrets, Err):
        return secrets

    parsed = parse_signature_header(signature_header)
    if isinstance(parsed, Err):
        return parsed
    header = parsed.value

    current = int(time.time()) if now is None else now
    if abs(current - header.timestamp) > tolerance:
        logger.warning("Stripe webhook timestamp outside tolerance: %s", header.timestamp)
        return Err(StaleTimestamp(header.timestamp, current, tolerance))

    matched = False
    for candidate_secret in secrets.value:
        expected = compute_signature(payload, candidate_secret, header.timestamp)
        matched |= _digest_matches(expected, header.v1)
    if not matched:
        return Err(SignatureMismatch())
    return Ok(header)


class SignatureVerifier:
    """``verify`` bound to a configured secret set, tolerance and clock.

    Raises ``InvalidSecretFormat`` at construction so a misconfigured
    endpoint fails at startup instead of rejecting every delivery.
    """

    def __init__(
        self,
        secret: Secrets,
        tolerance: int = DEFAULT_TOLERANCE_SECONDS,
        clock: Callable[[], float] | None = None,
    ) -> None:
        self._secrets = check_secrets(secret).unwrap()
        if tolerance < 0:
            raise ValueError("tolerance must be >= 0")
        self._tolerance = tolerance
        self._clock = clock

    @property
    def tolerance(self) -> int:
        return self._tolerance

    def verify(self, payload: Payload, signature_header: str | None) -> Result[SignatureHeader, WebhookSignatureError]:
        return verify(
            payload,
            signature_header,
            self._secrets,
            self._tolerance,
            now=None if self._clock is None else int(self._clock()),
        )
