"""Full request flow through the FastAPI webhook route."""

from __future__ import annotations

import json
from unittest.mock import MagicMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from pin_stripe.webhooks.gateway import WebhookGateway
from pin_stripe.webhooks.registry import RegistryBuilder
from pin_stripe.webhooks.routes import create_webhook_router
from pin_stripe.webhooks.signature import SignatureVerifier, sign_payload

WEBHOOK_SECRET = "whsec_test"
NOW = 1_700_000_000


@pytest.fixture()
def handler() -> MagicMock:
    return MagicMock()


@pytest.fixture()
def http(handler) -> TestClient:
    registry = RegistryBuilder().handle("invoice.paid", handler).build()
    gateway = WebhookGateway(SignatureVerifier(WEBHOOK_SECRET, clock=lambda: NOW), registry)
    app = FastAPI()
    app.include_router(create_webhook_router(gateway))
    return TestClient(app)


def _post(http: TestClient, body: bytes, signature: str | None):
    headers = {"content-type": "application/json"}
    if signature is not None:
        headers["stripe-signature"] = signature
    return http.post("/webhooks/stripe", content=body, headers=headers)


class TestWebhookRoute:
    def test_valid_delivery(self, http, handler):
        body = json.dumps({"id": "evt_1", "type": "invoice.paid"}).encode()

        resp = _post(http, body, sign_payload(body, WEBHOOK_SECRET, NOW))

        assert resp.status_code == 200
        assert resp.content == b""
        handler.handle_event.assert_called_once_with({"id": "evt_1", "type": "invoice.paid"})

    def test_unhandled_type_is_200(self, http, handler):
        body = json.dumps({"type": "customer.created"}).encode()
        resp = _post(http, body, sign_payload(body, WEBHOOK_SECRET, NOW))
        assert resp.status_code == 200
        handler.handle_event.assert_not_called()

    def test_invalid_signature(self, http, handler):
        body = json.dumps({"type": "invoice.paid"}).encode()

        resp = _post(http, body, sign_payload(body, "whsec_wrong", NOW))

        assert resp.status_code == 400
        assert resp.text == "invalid signature"
        handler.handle_event.assert_not_called()

    def test_missing_signature(self, http):
        resp = _post(http, b'{"type": "invoice.paid"}', None)
        assert resp.status_code == 400
        assert resp.text == "no signature"

    def test_missing_event_type(self, http):
        body = b'{"id": "evt_1"}'
        resp = _post(http, body, sign_payload(body, WEBHOOK_SECRET, NOW))
        assert resp.status_code == 400
        assert resp.text == "missing event type"

    def test_handler_crash_still_200(self, http, handler):
        handler.handle_event.side_effect = RuntimeError("boom")
        body = json.dumps({"type": "invoice.paid"}).encode()
        resp = _post(http, body, sign_payload(body, WEBHOOK_SECRET, NOW))
        assert resp.status_code == 200

    def test_body_verified_byte_for_byte(self, http):
        body = b'{"type":  "invoice.paid"}'
        signature = sign_payload(body, WEBHOOK_SECRET, NOW)
        resp = _post(http, b'{"type": "invoice.paid"}', signature)
        assert resp.status_code == 400

    def test_custom_path(self):
        gateway = WebhookGateway(SignatureVerifier(WEBHOOK_SECRET), RegistryBuilder().build())
        app = FastAPI()
        app.include_router(create_webhook_router(gateway, path="/hooks/billing"))
        resp = TestClient(app).post("/hooks/billing", content=b"{}")
        assert resp.status_code == 400
