"""Inbound Stripe webhooks.

Each delivery is signature-verified, then dispatched to the handler bound to
its event type.  Authenticated deliveries are always acknowledged.
"""

from __future__ import annotations

from pin_stripe.webhooks.gateway import WebhookGateway, WebhookOutcome, WebhookStatus
from pin_stripe.webhooks.registry import (
    DispatchOutcome,
    EventDispatchRegistry,
    EventHandler,
    HandlerBinding,
    HandlerKind,
    RegistryBuilder,
)
from pin_stripe.webhooks.signature import (
    SignatureHeader,
    SignatureVerifier,
    parse_signature_header,
    sign_payload,
    verify,
)

__all__ = [
    "DispatchOutcome",
    "EventDispatchRegistry",
    "EventHandler",
    "HandlerBinding",
    "HandlerKind",
    "RegistryBuilder",
    "SignatureHeader",
    "SignatureVerifier",
    "WebhookGateway",
    "WebhookOutcome",
    "WebhookStatus",
    "parse_signature_header",
    "sign_payload",
    "verify",
]
