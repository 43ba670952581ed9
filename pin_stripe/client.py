"""Stripe REST client — entity-resolving CRUD over the transport.

Targets are resolved from the identifier alone (``"cus_123"`` lives under
``/v1/customers``) or from a ``Collection`` token for collection-level calls::

    client = StripeClient(api_key="sk_test_...")
    client.read("cus_123")                                # GET    /v1/customers/cus_123
    client.read(Collection("customers"), {"limit": 10})   # GET    /v1/customers?limit=10
    client.create(Collection("customers"), {"email": e})  # POST   /v1/customers
    client.update("cus_123", {"name": "New"})             # POST   /v1/customers/cus_123
    client.delete("cus_123")                              # DELETE /v1/customers/cus_123

Result contract:
- ``Ok(Response)`` when the server answers with status < 400
- ``Err(HttpStatusError)`` for status >= 400, body preserved
- ``Err(TransportFailure)`` when no response arrived (timeout, connect, cancelled)
- ``Err(UnrecognizedEntityType)`` when resolution fails; no request is sent
- The ``*_or_raise`` forms return the ``Response`` or raise the carried error
"""

from __future__ import annotations

import logging
from typing import Any, AsyncIterator, Iterator, Mapping

from pin_stripe.config import StripeSettings, api_key_mode
from pin_stripe.errors import ConfigurationError, HttpStatusError, PinStripeError, TransportFailure
from pin_stripe.resources import Collection, EntityResolver, ResolvedResource, default_resolver
from pin_stripe.result import Err, Ok, Result
from pin_stripe.transport import (
    AsyncHttpxTransport,
    AsyncTransport,
    HttpxTransport,
    Request,
    Response,
    Transport,
)

logger = logging.getLogger(__name__)

__all__ = ["AsyncStripeClient", "StripeClient"]

DEFAULT_BASE_URL = "https://api.stripe.com"
DEFAULT_TIMEOUT_SECONDS = 30.0

_ALLOWED_METHODS = frozenset({"GET", "POST", "DELETE"})

CallResult = Result[Response, PinStripeError]


class _RequestPlanner:
    """Resolution and request composition shared by the sync and async clients."""

    def __init__(
        self,
        api_key: str,
        *,
        api_version: str | None = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        list_limit: int | None = None,
        resolver: EntityResolver | None = None,
    ) -> None:
        if not api_key:
            raise ConfigurationError("No Stripe API key configured")
        self._api_key = api_key
        self._api_version = api_version
        self._timeout = timeout
        self._list_limit = list_limit
        self._resolver = resolver or default_resolver()
        logger.debug("Stripe client ready (mode=%s)", api_key_mode(api_key) or "unknown")

    @property
    def resolver(self) -> EntityResolver:
        return self._resolver

    def _headers(self) -> dict[str, str]:
        headers = {"Authorization": f"Bearer {self._api_key}"}
        if self._api_version:
            headers["Stripe-Version"] = self._api_version
        return headers

    def _build(self, method: str, path: str, params: Mapping[str, Any] | None = None) -> Request:
        return Request(method=method, path=path, params=dict(params or {}), headers=self._headers())

    def _plan_read(self, target: Any, options: Mapping[str, Any] | None) -> Result[Request, PinStripeError]:
        resolved = self._resolver.resolve(target)
        if isinstance(resolved, Err):
            return resolved
        resource: ResolvedResource = resolved.value
        query = dict(options or {})
        if resource.instance_id is None and self._list_limit is not None:
            query.setdefault("limit", self._list_limit)
        return Ok(self._build("GET", resource.path, query))

    def _plan_create(self, target: Any, params: Mapping[str, Any] | None) -> Result[Request, PinStripeError]:
        resolved = self._resolver.resolve_collection(target)
        if isinstance(resolved, Err):
            return resolved
        return Ok(self._build("POST", resolved.value.path, params))

    def _plan_update(self, target: Any, params: Mapping[str, Any] | None) -> Result[Request, PinStripeError]:
        resolved = self._resolver.resolve_instance(target)
        if isinstance(resolved, Err):
            return resolved
        return Ok(self._build("POST", resolved.value.path, params))

    def _plan_delete(self, target: Any) -> Result[Request, PinStripeError]:
        resolved = self._resolver.resolve_instance(target)
        if isinstance(resolved, Err):
            return resolved
        return Ok(self._build("DELETE", resolved.value.path))

    def _plan_raw(self, method: str, path: str, params: Mapping[str, Any] | None) -> Request:
        method = method.upper()
        if method not in _ALLOWED_METHODS:
            raise ValueError(f"Unsupported method {method!r}; expected one of {sorted(_ALLOWED_METHODS)}")
        if not path.startswith("/"):
            path = f"/{path}"
        return self._build(method, path, params)

    def _timeout_for(self, timeout: float | None) -> float:
        return self._timeout if timeout is None else timeout

    @staticmethod
    def _classify(request: Request, response: Response) -> CallResult:
        if response.status >= 400:
            logger.info("Stripe %s %s failed with status %d", request.method, request.path, response.status)
            return Err(HttpStatusError(response.status, response.body, response.headers))
        return Ok(response)


def _pages_backward(options: Mapping[str, Any] | None) -> bool:
    """True when *options* walk toward newer objects (``ending_before`` only)."""
    options = options or {}
    return options.get("ending_before") is not None and options.get("starting_after") is None


def _page_items(options: Mapping[str, Any] | None, body: Any) -> list[Any]:
    """Objects of one list page in walk order; empty when *body* is not a list object.

    Stripe returns every page newest first, so a backward walk reverses each page.
    """
    if not isinstance(body, dict):
        return []
    data = body.get("data") or []
    return list(reversed(data)) if _pages_backward(options) else list(data)


def _next_page_options(options: Mapping[str, Any] | None, body: Any) -> dict[str, Any] | None:
    """Cursor for the following page, or None when the list is exhausted."""
    if not isinstance(body, dict) or not body.get("has_more"):
        return None
    data = body.get("data") or []
    if not data:
        return None
    next_options = dict(options or {})
    if _pages_backward(options):
        next_options["ending_before"] = data[0]["id"]
    else:
        next_options.pop("ending_before", None)
        next_options["starting_after"] = data[-1]["id"]
    return next_options



class StripeClient(_RequestPlanner):
    """Blocking Stripe client. Safe to share across threads."""

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = DEFAULT_BASE_URL,
        api_version: str | None = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        list_limit: int | None = None,
        resolver: EntityResolver | None = None,
        transport: Transport | None = None,
    ) -> None:
        super().__init__(
            api_key,
            api_version=api_version,
            timeout=timeout,
            list_limit=list_limit,
            resolver=resolver,
        )
        self._transport = transport or HttpxTransport(base_url)

    @classmethod
    def from_settings(cls, settings: StripeSettings, **kwargs: Any) -> StripeClient:
        return cls(
            settings.api_key,
            base_url=settings.base_url,
            api_version=settings.api_version,
            timeout=settings.timeout_seconds,
            list_limit=settings.list_limit,
            **kwargs,
        )

    def _execute(self, planned: Result[Request, PinStripeError], timeout: float | None) -> CallResult:
        if isinstance(planned, Err):
            logger.debug("Not sending request: %s", planned.error.message)
            return planned
        request = planned.value
        try:
            response = self._transport.send(request, timeout=self._timeout_for(timeout))
        except TransportFailure as exc:
            return Err(exc)
        return self._classify(request, response)

    # ── Result-returning calls ──────────────────────────────────────────

    def read(self, target: Any, options: Mapping[str, Any] | None = None, *, timeout: float | None = None) -> CallResult:
        """Retrieve one object by ID, or list a ``Collection`` with ``options`` as query."""
        return self._execute(self._plan_read(target, options), timeout)

    def create(self, target: Any, params: Mapping[str, Any] | None = None, *, timeout: float | None = None) -> CallResult:
        """Create an object in the ``Collection`` named by *target*."""
        return self._execute(self._plan_create(target, params), timeout)

    def update(self, target: Any, params: Mapping[str, Any] | None = None, *, timeout: float | None = None) -> CallResult:
        """Update the object with ID *target* (Stripe updates are POSTs)."""
        return self._execute(self._plan_update(target, params), timeout)

    def delete(self, target: Any, *, timeout: float | None = None) -> CallResult:
        """Delete the object with ID *target*."""
        return self._execute(self._plan_delete(target), timeout)

    def request(
        self,
        path: str,
        params: Mapping[str, Any] | None = None,
        *,
        method: str = "GET",
        timeout: float | None = None,
    ) -> CallResult:
        """Call an arbitrary path (``"/v1/balance"``) with the same result contract."""
        return self._execute(Ok(self._plan_raw(method, path, params)), timeout)

    # ── Raising calls ───────────────────────────────────────────────────

    def read_or_raise(self, target: Any, options: Mapping[str, Any] | None = None, *, timeout: float | None = None) -> Response:
        return self.read(target, options, timeout=timeout).unwrap()

    def create_or_raise(self, target: Any, params: Mapping[str, Any] | None = None, *, timeout: float | None = None) -> Response:
        return self.create(target, params, timeout=timeout).unwrap()

    def update_or_raise(self, target: Any, params: Mapping[str, Any] | None = None, *, timeout: float | None = None) -> Response:
        return self.update(target, params, timeout=timeout).unwrap()

    def delete_or_raise(self, target: Any, *, timeout: float | None = None) -> Response:
        return self.delete(target, timeout=timeout).unwrap()

    # ── Pagination ──────────────────────────────────────────────────────

    def iter_all(self, collection: Collection, options: Mapping[str, Any] | None = None) -> Iterator[Any]:
        """Yield every object of a list, following ``has_more`` cursors.

        With an ``ending_before`` cursor (and no ``starting_after``) the walk
        goes toward newer objects, yielding them oldest first. A 2xx body that
        is not a list object ends the walk. Raises the first error encountered.
        """
        page_options: dict[str, Any] | None = dict(options or {})
        while page_options is not None:
            body = self.read_or_raise(collection, page_options).body
            yield from _page_items(page_options, body)
            page_options = _next_page_options(page_options, body)

    def close(self) -> None:
        close = getattr(self._transport, "close", None)
        if close is not None:
            close()

    def __enter__(self) -> StripeClient:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


class AsyncStripeClient(_RequestPlanner):
    """asyncio Stripe client with the same calls as ``StripeClient``, awaited."""

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = DEFAULT_BASE_URL,
        api_version: str | None = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        list_limit: int | None = None,
        resolver: EntityResolver | None = None,
        transport: AsyncTransport | None = None,
    ) -> None:
        super().__init__(
            api_key,
            api_version=api_version,
            timeout=timeout,
            list_limit=list_limit,
            resolver=resolver,
        )
        self._transport = transport or AsyncHttpxTransport(base_url)

    @classmethod
    def from_settings(cls, settings: StripeSettings, **kwargs: Any) -> AsyncStripeClient:
        return cls(
            settings.api_key,
            base_url=settings.base_url,
            api_version=settings.api_version,
            timeout=settings.timeout_seconds,
            list_limit=settings.list_limit,
            **kwargs,
        )

    async def _execute(self, planned: Result[Request, PinStripeError], timeout: float | None) -> CallResult:
        if isinstance(planned, Err):
            logger.debug("Not sending request: %s", planned.error.message)
            return planned
        request = planned.value
        try:
            response = await self._transport.send(request, timeout=self._timeout_for(timeout))
        except TransportFailure as exc:
            return Err(exc)
        return self._classify(request, response)

    async def read(self, target: Any, options: Mapping[str, Any] | None = None, *, timeout: float | None = None) -> CallResult:
        return await self._execute(self._plan_read(target, options), timeout)

    async def create(self, target: Any, params: Mapping[str, Any] | None = None, *, timeout: float | None = None) -> CallResult:
        return await self._execute(self._plan_create(target, params), timeout)

    async def update(self, target: Any, params: Mapping[str, Any] | None = None, *, timeout: float | None = None) -> CallResult:
        return await self._execute(self._plan_update(target, params), timeout)

    async def delete(self, target: Any, *, timeout: float | None = None) -> CallResult:
        return await self._execute(self._plan_delete(target), timeout)

    async def request(
        self,
        path: str,
        params: Mapping[str, Any] | None = None,
        *,
        method: str = "GET",
        timeout: float | None = None,
    ) -> CallResult:
        return await self._execute(Ok(self._plan_raw(method, path, params)), timeout)

    async def read_or_raise(self, target: Any, options: Mapping[str, Any] | None = None, *, timeout: float | None = None) -> Response:
        return (await self.read(target, options, timeout=timeout)).unwrap()

    async def create_or_raise(self, target: Any, params: Mapping[str, Any] | None = None, *, timeout: float | None = None) -> Response:
        return (await self.create(target, params, timeout=timeout)).unwrap()

    async def update_or_raise(self, target: Any, params: Mapping[str, Any] | None = None, *, timeout: float | None = None) -> Response:
        return (await self.update(target, params, timeout=timeout)).unwrap()

    async def delete_or_raise(self, target: Any, *, timeout: float | None = None) -> Response:
        return (await self.delete(target, timeout=timeout)).unwrap()

    async def iter_all(self, collection: Collection, options: Mapping[str, Any] | None = None) -> AsyncIterator[Any]:
        page_options: dict[str, Any] | None = dict(options or {})
        while page_options is not None:
            body = (await self.read_or_raise(collection, page_options)).body
            for item in _page_items(page_options, body):
                yield item
            page_options = _next_page_options(page_options, body)

    async def aclose(self) -> None:
        aclose = getattr(self._transport, "aclose", None)
        if aclose is not None:
            await aclose()

    async def __aenter__(self) -> AsyncStripeClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()
