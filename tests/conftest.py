"""Shared fixtures for the pin_stripe test suite."""

from __future__ import annotations

import pytest

from pin_stripe.testing import StripeMock
from pin_stripe.webhooks.registry import RegistryBuilder
from pin_stripe.webhooks.signature import SignatureVerifier

WEBHOOK_SECRET = "whsec_test"
NOW = 1_700_000_000


@pytest.fixture()
def stripe_mock() -> StripeMock:
    """Fresh Stripe API double per test."""
    return StripeMock()


@pytest.fixture()
def client(stripe_mock: StripeMock):
    """StripeClient answered by ``stripe_mock``."""
    with stripe_mock.client() as c:
        yield c


@pytest.fixture()
def verifier() -> SignatureVerifier:
    """Verifier pinned to ``NOW`` so signatures never go stale mid-test."""
    return SignatureVerifier(WEBHOOK_SECRET, clock=lambda: NOW)


@pytest.fixture()
def builder() -> RegistryBuilder:
    return RegistryBuilder()


@pytest.fixture()
def customer_list():
    """Handler serving ``cus_10``..``cus_1`` with Stripe's newest-first cursor rules."""
    ids = [f"cus_{n}" for n in range(10, 0, -1)]

    def handler(request):
        params = request.url.params
        limit = int(params.get("limit", 10))
        if "starting_after" in params:
            start = ids.index(params["starting_after"]) + 1
            page, has_more = ids[start:start + limit], start + limit < len(ids)
        elif "ending_before" in params:
            end = ids.index(params["ending_before"])
            page, has_more = ids[max(0, end - limit):end], end - limit > 0
        else:
            page, has_more = ids[:limit], limit < len(ids)
        return StripeMock.json({"object": "list", "data": [{"id": i} for i in page], "has_more": has_more})

    return handler
