"""Webhook gateway — verify, then dispatch, one delivery at a time.

Each delivery:
1. Verifies the ``Stripe-Signature`` header against the raw body
2. On failure, returns a 400 rejection; handlers are never called
3. On success, dispatches to the registry and returns 200

Security contract:
- Authentication gates dispatch unconditionally
- An authenticated delivery is always acknowledged with 200, whatever the
  handler returns or raises; Stripe owns redelivery and retrying an event
  that was already processed is worse than dropping a handler failure
- Handler exceptions are logged with traceback and passed to the optional
  ``on_handler_error`` hook; they never escape ``process``
- Rejection reasons name the cause but never echo secrets or payloads
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Mapping

from pin_stripe.config import StripeSettings
from pin_stripe.errors import MalformedSignature, PinStripeError
from pin_stripe.result import Err
from pin_stripe.webhooks.registry import DispatchOutcome, EventDispatchRegistry
from pin_stripe.webhooks.signature import SIGNATURE_HEADER, Payload, SignatureVerifier

logger = logging.getLogger(__name__)

__all__ = ["HandlerErrorHook", "WebhookGateway", "WebhookOutcome", "WebhookStatus"]

HandlerErrorHook = Callable[[str, Any, Exception], None]


class WebhookStatus(str, Enum):
    ACCEPTED = "accepted"
    REJECTED = "rejected"


@dataclass(frozen=True, slots=True)
class WebhookOutcome:
    """What the HTTP boundary should answer for one delivery."""

    status: WebhookStatus
    http_status: int
    reason: str = ""
    error: PinStripeError | None = None
    dispatch: DispatchOutcome | None = None

    @property
    def accepted(self) -> bool:
        return self.status is WebhookStatus.ACCEPTED

    @classmethod
    def rejected(cls, reason: str, error: PinStripeError | None = None) -> WebhookOutcome:
        return cls(WebhookStatus.REJECTED, 400, reason, error=error)

    @classmethod
    def acknowledged(cls, dispatch: DispatchOutcome | None) -> WebhookOutcome:
        return cls(WebhookStatus.ACCEPTED, 200, dispatch=dispatch)


def _audit(event_type: str, status: str) -> None:
    logger.info("WEBHOOK_AUDIT provider=stripe event=%s status=%s", event_type, status)


class WebhookGateway:
    """Composes a ``SignatureVerifier`` and an ``EventDispatchRegistry``."""

    def __init__(
        self,
        verifier: SignatureVerifier,
        registry: EventDispatchRegistry,
        *,
        on_handler_error: HandlerErrorHook | None = None,
    ) -> None:
        self._verifier = verifier
        self._registry = registry
        self._on_handler_error = on_handler_error

    @classmethod
    def from_settings(
        cls,
        settings: StripeSettings,
        registry: EventDispatchRegistry,
        **kwargs: Any,
    ) -> WebhookGateway:
        verifier = SignatureVerifier(settings.webhook_secret, settings.webhook_tolerance_seconds)
        return cls(verifier, registry, **kwargs)

    @property
    def registry(self) -> EventDispatchRegistry:
        return self._registry

    def process(
        self,
        payload: Payload,
        signature_header: str | None,
        event_type: str,
        event: Any,
    ) -> WebhookOutcome:
        """Verify *payload* and, only if authentic, dispatch *event*."""
        verified = self._verifier.verify(payload, signature_header)
        if isinstance(verified, Err):
            logger.warning("Invalid Stripe signature for %s: %s", event_type, verified.error.message)
            _audit(event_type, "signature_failed")
            return WebhookOutcome.rejected("invalid signature", verified.error)
        return self._dispatch(event_type, event)

    def _dispatch(self, event_type: str, event: Any) -> WebhookOutcome:
        dispatch: DispatchOutcome | None = None
        try:
            dispatch = self._registry.dispatch(event_type, event)
        except Exception as exc:
            logger.exception("Webhook handler failed for %s", event_type)
            _audit(event_type, "handler_failed")
            self._report_handler_error(event_type, event, exc)
        else:
            _audit(event_type, "dispatched" if dispatch.handled else "unhandled")
        return WebhookOutcome.acknowledged(dispatch)

    def handle_delivery(self, raw_body: bytes, headers: Mapping[str, str]) -> WebhookOutcome:
        """Process a delivery straight from the HTTP layer.

        Signature first, then the JSON body and its ``type`` field.
        """
        lowered = {name.lower(): value for name, value in headers.items()}
        signature = lowered.get(SIGNATURE_HEADER)
        if not signature:
            logger.warning("Received Stripe webhook without %s header", SIGNATURE_HEADER)
            return WebhookOutcome.rejected("no signature", MalformedSignature("Missing signature header"))

        verified = self._verifier.verify(raw_body, signature)
        if isinstance(verified, Err):
            logger.warning("Invalid Stripe signature: %s", verified.error.message)
            _audit("unknown", "signature_failed")
            return WebhookOutcome.rejected("invalid signature", verified.error)

        try:
            event = json.loads(raw_body)
        except (json.JSONDecodeError, UnicodeDecodeError):
            _audit("unknown", "invalid_json")
            return WebhookOutcome.rejected("invalid payload")

        event_type = event.get("type") if isinstance(event, dict) else None
        if not isinstance(event_type, str) or not event_type:
            logger.warning("Received Stripe webhook without type field")
            return WebhookOutcome.rejected("missing event type")

        logger.info("Received Stripe webhook: %s", event_type)
        return self._dispatch(event_type, event)

    def _report_handler_error(self, event_type: str, event: Any, exc: Exception) -> None:
        if self._on_handler_error is None:
            return
        try:
            self._on_handler_error(event_type, event, exc)
        except Exception:
            logger.exception("on_handler_error hook failed for %s", event_type)
