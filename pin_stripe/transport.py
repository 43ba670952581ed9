"""HTTP transport — httpx-backed request execution.

Security contract:
- Transports never log headers (the Authorization header carries the API key)
- Network-level failures surface as ``TransportFailure`` with a reason code;
  any HTTP response, including 4xx/5xx, is returned as a ``Response``
- No retries here: each ``send`` is exactly one attempt
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Mapping, Protocol
from urllib.parse import urlencode

import httpx

from pin_stripe.encoding import flatten_params
from pin_stripe.errors import TransportFailure, TransportFailureReason

logger = logging.getLogger(__name__)

__all__ = [
    "AsyncHttpxTransport",
    "AsyncTransport",
    "HttpxTransport",
    "Request",
    "Response",
    "Transport",
]

_FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"


@dataclass(frozen=True)
class Request:
    """One outbound API call. GET/DELETE params go to the query string, POST to the body."""

    method: str
    path: str
    params: Mapping[str, Any] = field(default_factory=dict)
    headers: Mapping[str, str] = field(default_factory=dict)

    @property
    def has_body(self) -> bool:
        return self.method == "POST"


@dataclass(frozen=True)
class Response:
    """A completed HTTP exchange.

    ``headers`` maps lowercased names to every value received, in order.
    """

    status: int
    headers: dict[str, list[str]]
    body: Any

    def header(self, name: str) -> list[str]:
        return self.headers.get(name.lower(), [])

    @classmethod
    def from_httpx(cls, response: httpx.Response) -> Response:
        headers: dict[str, list[str]] = {}
        for name, value in response.headers.multi_items():
            headers.setdefault(name.lower(), []).append(value)
        return cls(status=response.status_code, headers=headers, body=_decode_body(response))


def _decode_body(response: httpx.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


def _build_kwargs(request: Request, timeout: float | None) -> dict[str, Any]:
    pairs = flatten_params(request.params)
    headers = dict(request.headers)
    kwargs: dict[str, Any] = {"headers": headers}
    if timeout is not None:
        kwargs["timeout"] = timeout
    if request.has_body:
        headers["Content-Type"] = _FORM_CONTENT_TYPE
        kwargs["content"] = urlencode(pairs)
    elif pairs:
        kwargs["params"] = pairs
    return kwargs


def _failure(exc: httpx.TransportError) -> TransportFailure:
    if isinstance(exc, httpx.TimeoutException):
        reason = TransportFailureReason.TIMEOUT
    elif isinstance(exc, httpx.ConnectError):
        reason = TransportFailureReason.CONNECT
    else:
        reason = TransportFailureReason.NETWORK
    return TransportFailure(reason, type(exc).__name__)


class Transport(Protocol):
    """Synchronous transport contract."""

    def send(self, request: Request, *, timeout: float | None = None) -> Response: ...


class AsyncTransport(Protocol):
    """Asynchronous transport contract."""

    async def send(self, request: Request, *, timeout: float | None = None) -> Response: ...


class HttpxTransport:
    """Blocking transport over an ``httpx.Client``.

    Pass ``client`` (already carrying its ``base_url``) to share a connection
    pool or to plug in an ``httpx.MockTransport`` under test.
    """

    def __init__(self, base_url: str, client: httpx.Client | None = None) -> None:
        self._client = client or httpx.Client(base_url=base_url)

    def send(self, request: Request, *, timeout: float | None = None) -> Response:
        start = time.monotonic()
        try:
            raw = self._client.request(request.method, request.path, **_build_kwargs(request, timeout))
        except httpx.TransportError as exc:
            failure = _failure(exc)
            logger.warning("%s %s failed: %s", request.method, request.path, failure.message)
            raise failure from exc
        response = Response.from_httpx(raw)
        logger.debug(
            "%s %s -> %d in %.1fms",
            request.method,
            request.path,
            response.status,
            (time.monotonic() - start) * 1000,
        )
        return response

    def close(self) -> None:
        self._client.close()


class AsyncHttpxTransport:
    """Non-blocking transport over an ``httpx.AsyncClient``.

    Cancelling the awaiting task surfaces as ``TransportFailure(cancelled)``.
    """

    def __init__(self, base_url: str, client: httpx.AsyncClient | None = None) -> None:
        self._client = client or httpx.AsyncClient(base_url=base_url)

    async def send(self, request: Request, *, timeout: float | None = None) -> Response:
        start = time.monotonic()
        try:
            raw = await self._client.request(
                request.method, request.path, **_build_kwargs(request, timeout)
            )
        except httpx.TransportError as exc:
            failure = _failure(exc)
            logger.warning("%s %s failed: %s", request.method, request.path, failure.message)
            raise failure from exc
        except asyncio.CancelledError as exc:
            logger.info("%s %s cancelled", request.method, request.path)
            raise TransportFailure(TransportFailureReason.CANCELLED) from exc
        response = Response.from_httpx(raw)
        logger.debug(
            "%s %s -> %d in %.1fms",
            request.method,
            request.path,
            response.status,
            (time.monotonic() - start) * 1000,
        )
        return response

    async def aclose(self) -> None:
        await self._client.aclose()
