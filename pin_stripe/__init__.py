"""pin_stripe — a small Stripe client with webhook handling.

Public API:
    - StripeClient / AsyncStripeClient: CRUD calls resolved from object IDs
    - Collection: type token for collection-level calls (list, create)
    - EntityResolver: identifier / token to collection path resolution
    - PrefixTable: static identifier-prefix table, checked for overlaps
    - StripeSettings: STRIPE_* environment configuration
    - Ok / Err: structured call results; ``unwrap()`` raises
    - WebhookGateway: verify-then-dispatch for inbound webhooks
    - RegistryBuilder: declare event handlers, then ``build()``
    - SignatureVerifier: Stripe-Signature verification with tolerance
    - PinStripeError: base exception for blanket catch
"""

from __future__ import annotations

from pin_stripe.client import AsyncStripeClient, StripeClient
from pin_stripe.config import StripeSettings, api_key_mode, ensure_test_mode_key
from pin_stripe.errors import (
    ConfigurationError,
    HttpStatusError,
    InvalidSecretFormat,
    MalformedSignature,
    PinStripeError,
    PrefixConflictError,
    SignatureMismatch,
    StaleTimestamp,
    TransportFailure,
    TransportFailureReason,
    UnrecognizedEntityType,
)
from pin_stripe.resources import (
    Collection,
    EntityResolver,
    PrefixTable,
    ResolvedResource,
    ResourceType,
)
from pin_stripe.result import Err, Ok
from pin_stripe.transport import Request, Response
from pin_stripe.webhooks import (
    EventDispatchRegistry,
    RegistryBuilder,
    SignatureVerifier,
    WebhookGateway,
)

__all__ = [
    "AsyncStripeClient",
    "Collection",
    "ConfigurationError",
    "EntityResolver",
    "Err",
    "EventDispatchRegistry",
    "HttpStatusError",
    "InvalidSecretFormat",
    "MalformedSignature",
    "Ok",
    "PinStripeError",
    "PrefixConflictError",
    "PrefixTable",
    "RegistryBuilder",
    "Request",
    "ResolvedResource",
    "ResourceType",
    "Response",
    "SignatureMismatch",
    "SignatureVerifier",
    "StaleTimestamp",
    "StripeClient",
    "StripeSettings",
    "TransportFailure",
    "TransportFailureReason",
    "UnrecognizedEntityType",
    "WebhookGateway",
    "api_key_mode",
    "ensure_test_mode_key",
]
