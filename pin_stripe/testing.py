"""In-process Stripe API double for tests.

Wraps ``httpx.MockTransport`` so application tests exercise the real client,
resolver and encoding without a network::

    mock = StripeMock()
    mock.stub_read("cus_123", {"id": "cus_123", "email": "a@b.com"})
    client = mock.client()
    assert client.read("cus_123").unwrap().body["id"] == "cus_123"

Lookup order for each request:
1. pending ``expect()`` handlers, oldest first, each for its declared count
2. routes from ``stub_read`` / ``stub_create`` / ... , most recent first
3. the generic ``stub()`` handler (last one set wins)

A request nothing answers raises ``AssertionError``.
"""

from __future__ import annotations

import json as jsonlib
import threading
from collections import deque
from typing import Any, Callable

import httpx

from pin_stripe.client import AsyncStripeClient, StripeClient
from pin_stripe.resources import Collection, EntityResolver, default_resolver
from pin_stripe.transport import AsyncHttpxTransport, HttpxTransport

__all__ = ["Handler", "StripeMock"]

Handler = Callable[[httpx.Request], "httpx.Response | None"]

MOCK_BASE_URL = "https://api.stripe.test"
MOCK_API_KEY = "sk_test_mock"

_TRANSPORT_ERRORS: dict[str, type[httpx.TransportError]] = {
    "timeout": httpx.ReadTimeout,
    "connect": httpx.ConnectError,
    "econnrefused": httpx.ConnectError,
    "network": httpx.ReadError,
}


class StripeMock:
    """Programmable fake of the Stripe HTTP API."""

    def __init__(self, resolver: EntityResolver | None = None) -> None:
        self._resolver = resolver or default_resolver()
        self._lock = threading.Lock()
        self._stub: Handler | None = None
        self._routes: list[tuple[str | None, str, Handler]] = []
        self._expectations: deque[list[Any]] = deque()
        self.requests: list[httpx.Request] = []

    # ── Response helpers ────────────────────────────────────────────────

    @staticmethod
    def json(data: Any, status: int = 200, headers: dict[str, str] | None = None) -> httpx.Response:
        """JSON response with Stripe's content type."""
        merged = {"content-type": "application/json; charset=utf-8", **(headers or {})}
        return httpx.Response(status, headers=merged, content=jsonlib.dumps(data).encode("utf-8"))

    @staticmethod
    def transport_error(request: httpx.Request, reason: str = "connect") -> httpx.Response:
        """Simulate a network failure (``timeout``, ``connect``, ``network``)."""
        exc_type = _TRANSPORT_ERRORS.get(reason, httpx.ConnectError)
        raise exc_type(f"simulated {reason}", request=request)

    # ── Programming ─────────────────────────────────────────────────────

    def stub(self, handler: Handler) -> None:
        """Answer every otherwise unmatched request with *handler*."""
        with self._lock:
            self._stub = handler

    def expect(self, handler: Handler, count: int = 1) -> None:
        """Answer exactly *count* upcoming requests with *handler*."""
        if count < 1:
            raise ValueError("count must be >= 1")
        with self._lock:
            self._expectations.append([handler, count])

    def verify(self) -> None:
        """Fail if any ``expect()`` handler was called fewer times than declared."""
        with self._lock:
            missing = sum(remaining for _, remaining in self._expectations)
        if missing:
            raise AssertionError(f"{missing} expected Stripe request(s) were not made")

    def _path(self, target: Any) -> str:
        return self._resolver.resolve(target).unwrap().path

    def _route(self, method: str | None, target: Any, handler: Handler) -> None:
        with self._lock:
            self._routes.append((method, self._path(target), handler))

    def stub_read(self, target: Any, body: Any) -> None:
        """``GET`` on an object ID or a ``Collection`` returns *body*."""
        self._route("GET", target, lambda request: self.json(body))

    def stub_create(self, collection: Collection, body: Any) -> None:
        self._route("POST", collection, lambda request: self.json(body))

    def stub_update(self, identifier: str, body: Any) -> None:
        self._route("POST", identifier, lambda request: self.json(body))

    def stub_delete(self, identifier: str, body: Any) -> None:
        self._route("DELETE", identifier, lambda request: self.json(body))

    def stub_error(self, target: Any, status: int, body: Any) -> None:
        """Any method on *target*'s path answers *status* with *body*."""
        self._route(None, target, lambda request: self.json(body, status=status))

    # ── Transport plumbing ──────────────────────────────────────────────

    def _next_expectation(self) -> Handler | None:
        with self._lock:
            if not self._expectations:
                return None
            entry = self._expectations[0]
            entry[1] -= 1
            if entry[1] == 0:
                self._expectations.popleft()
            return entry[0]

    def _matching_route(self, request: httpx.Request) -> Handler | None:
        with self._lock:
            routes = list(reversed(self._routes))
        for method, path, handler in routes:
            if path == request.url.path and method in (None, request.method):
                return handler
        return None

    def handle(self, request: httpx.Request) -> httpx.Response:
        with self._lock:
            self.requests.append(request)
        handler = self._next_expectation() or self._matching_route(request) or self._stub
        if handler is None:
            raise AssertionError(f"No Stripe stub for {request.method} {request.url.path}")
        response = handler(request)
        if response is None:
            raise AssertionError(f"Stripe stub returned nothing for {request.method} {request.url.path}")
        return response

    @property
    def last_request(self) -> httpx.Request:
        if not self.requests:
            raise AssertionError("No Stripe requests were made")
        return self.requests[-1]

    def client(self, **kwargs: Any) -> StripeClient:
        """A ``StripeClient`` whose requests are answered by this mock."""
        http = httpx.Client(transport=httpx.MockTransport(self.handle), base_url=MOCK_BASE_URL)
        kwargs.setdefault("resolver", self._resolver)
        return StripeClient(
            kwargs.pop("api_key", MOCK_API_KEY),
            transport=HttpxTransport(MOCK_BASE_URL, client=http),
            **kwargs,
        )

    def async_client(self, **kwargs: Any) -> AsyncStripeClient:
        http = httpx.AsyncClient(transport=httpx.MockTransport(self.handle), base_url=MOCK_BASE_URL)
        kwargs.setdefault("resolver", self._resolver)
        return AsyncStripeClient(
            kwargs.pop("api_key", MOCK_API_KEY),
            transport=AsyncHttpxTransport(MOCK_BASE_URL, client=http),
            **kwargs,
        )
