"""Tests for the webhook gateway (verify, then dispatch).

Tests:
- Authentic deliveries are dispatched and acknowledged with 200
- Failed verification returns 400 and never reaches a handler
- Handler exceptions are acknowledged, logged and reported to the hook
- handle_delivery(): header lookup, JSON parsing, missing type
"""

from __future__ import annotations

import json
import logging
from unittest.mock import MagicMock

import pytest

from pin_stripe.config import StripeSettings
from pin_stripe.errors import InvalidSecretFormat, MalformedSignature, SignatureMismatch, StaleTimestamp
from pin_stripe.webhooks.gateway import WebhookGateway, WebhookStatus
from pin_stripe.webhooks.registry import RegistryBuilder
from pin_stripe.webhooks.signature import sign_payload

WEBHOOK_SECRET = "whsec_test"
NOW = 1_700_000_000

EVENT = {"id": "evt_1", "type": "customer.created", "data": {"object": {"id": "cus_123"}}}
BODY = json.dumps(EVENT).encode()


def _gateway(verifier, handler, **kwargs) -> WebhookGateway:
    registry = RegistryBuilder().handle("customer.created", handler).build()
    return WebhookGateway(verifier, registry, **kwargs)


def _module_handler() -> MagicMock:
    handler = MagicMock()
    handler.handle_event.return_value = "ok"
    return handler


# ── process() ─────────────────────────────────────────────────────────────


class TestProcess:
    def test_valid_delivery_dispatched(self, verifier):
        handler = _module_handler()
        gateway = _gateway(verifier, handler)

        outcome = gateway.process(BODY, sign_payload(BODY, WEBHOOK_SECRET, NOW), "customer.created", EVENT)

        assert outcome.accepted
        assert outcome.http_status == 200
        assert outcome.dispatch.handled is True
        handler.handle_event.assert_called_once_with(EVENT)

    def test_empty_payload_scenario(self, verifier):
        handler = _module_handler()
        gateway = _gateway(verifier, handler)
        header = sign_payload("{}", WEBHOOK_SECRET, NOW)

        assert gateway.process("{}", header, "customer.created", {}).accepted

    def test_bad_signature_rejected_without_dispatch(self, verifier):
        handler = _module_handler()
        gateway = _gateway(verifier, handler)

        outcome = gateway.process(BODY, sign_payload(BODY, "whsec_other", NOW), "customer.created", EVENT)

        assert outcome.status is WebhookStatus.REJECTED
        assert outcome.http_status == 400
        assert outcome.reason == "invalid signature"
        assert isinstance(outcome.error, SignatureMismatch)
        handler.handle_event.assert_not_called()

    def test_stale_delivery_rejected(self, verifier):
        handler = _module_handler()
        gateway = _gateway(verifier, handler)

        outcome = gateway.process(BODY, sign_payload(BODY, WEBHOOK_SECRET, NOW - 301), "customer.created", EVENT)

        assert isinstance(outcome.error, StaleTimestamp)
        handler.handle_event.assert_not_called()

    def test_unhandled_event_acknowledged(self, verifier):
        gateway = _gateway(verifier, _module_handler())
        header = sign_payload(BODY, WEBHOOK_SECRET, NOW)

        outcome = gateway.process(BODY, header, "payout.paid", EVENT)

        assert outcome.accepted
        assert outcome.dispatch.handled is False

    def test_handler_error_value_still_acknowledged(self, verifier):
        gateway = _gateway(verifier, lambda event: {"error": "could not sync"})
        outcome = gateway.process(BODY, sign_payload(BODY, WEBHOOK_SECRET, NOW), "customer.created", EVENT)
        assert outcome.accepted
        assert outcome.dispatch.result == {"error": "could not sync"}


class TestHandlerFailures:
    """Handler exceptions never turn into non-200 responses."""

    @staticmethod
    def _broken(event):
        raise RuntimeError("database down")

    def test_exception_acknowledged(self, verifier, caplog):
        gateway = _gateway(verifier, self._broken)

        with caplog.at_level(logging.ERROR, logger="pin_stripe.webhooks.gateway"):
            outcome = gateway.process(BODY, sign_payload(BODY, WEBHOOK_SECRET, NOW), "customer.created", EVENT)

        assert outcome.accepted
        assert outcome.http_status == 200
        assert outcome.dispatch is None
        assert "Webhook handler failed for customer.created" in caplog.text

    def test_hook_receives_exception(self, verifier):
        hook = MagicMock()
        gateway = _gateway(verifier, self._broken, on_handler_error=hook)

        gateway.process(BODY, sign_payload(BODY, WEBHOOK_SECRET, NOW), "customer.created", EVENT)

        hook.assert_called_once()
        event_type, event, exc = hook.call_args.args
        assert event_type == "customer.created"
        assert event == EVENT
        assert isinstance(exc, RuntimeError)

    def test_failing_hook_is_contained(self, verifier):
        hook = MagicMock(side_effect=ValueError("hook bug"))
        gateway = _gateway(verifier, self._broken, on_handler_error=hook)

        outcome = gateway.process(BODY, sign_payload(BODY, WEBHOOK_SECRET, NOW), "customer.created", EVENT)

        assert outcome.accepted
        hook.assert_called_once()

    def test_hook_not_called_on_success(self, verifier):
        hook = MagicMock()
        gateway = _gateway(verifier, _module_handler(), on_handler_error=hook)
        gateway.process(BODY, sign_payload(BODY, WEBHOOK_SECRET, NOW), "customer.created", EVENT)
        hook.assert_not_called()


# ── handle_delivery() ─────────────────────────────────────────────────────


class TestHandleDelivery:
    def test_valid_delivery(self, verifier):
        handler = _module_handler()
        gateway = _gateway(verifier, handler)

        outcome = gateway.handle_delivery(BODY, {"Stripe-Signature": sign_payload(BODY, WEBHOOK_SECRET, NOW)})

        assert outcome.accepted
        handler.handle_event.assert_called_once_with(EVENT)

    def test_missing_header(self, verifier):
        handler = _module_handler()
        outcome = _gateway(verifier, handler).handle_delivery(BODY, {"content-type": "application/json"})

        assert outcome.http_status == 400
        assert outcome.reason == "no signature"
        assert isinstance(outcome.error, MalformedSignature)
        handler.handle_event.assert_not_called()

    def test_invalid_signature(self, verifier):
        outcome = _gateway(verifier, _module_handler()).handle_delivery(
            BODY, {"stripe-signature": f"t={NOW},v1={'0' * 64}"}
        )
        assert outcome.reason == "invalid signature"

    def test_signature_checked_before_json(self, verifier):
        outcome = _gateway(verifier, _module_handler()).handle_delivery(
            b"not json", {"stripe-signature": "t=1,v1=abc"}
        )
        assert outcome.reason == "invalid signature"

    def test_invalid_json(self, verifier):
        body = b"not json"
        outcome = _gateway(verifier, _module_handler()).handle_delivery(
            body, {"stripe-signature": sign_payload(body, WEBHOOK_SECRET, NOW)}
        )
        assert outcome.http_status == 400
        assert outcome.reason == "invalid payload"

    @pytest.mark.parametrize("event", [{"id": "evt_1"}, {"type": ""}, {"type": 5}, ["customer.created"]])
    def test_missing_event_type(self, verifier, event):
        handler = _module_handler()
        body = json.dumps(event).encode()

        outcome = _gateway(verifier, handler).handle_delivery(
            body, {"stripe-signature": sign_payload(body, WEBHOOK_SECRET, NOW)}
        )

        assert outcome.http_status == 400
        assert outcome.reason == "missing event type"
        handler.handle_event.assert_not_called()


class TestFromSettings:
    def test_builds_verifier_from_settings(self):
        settings = StripeSettings(_env_file=None, webhook_secret=WEBHOOK_SECRET, webhook_tolerance_seconds=60)
        gateway = WebhookGateway.from_settings(settings, RegistryBuilder().build())
        assert gateway.registry is not None

    def test_missing_secret_fails_at_startup(self):
        settings = StripeSettings(_env_file=None, webhook_secret="")
        with pytest.raises(InvalidSecretFormat):
            WebhookGateway.from_settings(settings, RegistryBuilder().build())
