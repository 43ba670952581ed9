"""FastAPI route for inbound Stripe webhooks.

The route reads the raw body (signature verification needs the exact bytes),
hands it to the gateway in the threadpool and maps the outcome:
- accepted -> 200, empty body
- rejected -> 400 with a short reason (``invalid signature``, ``no signature``,
  ``missing event type``, ``invalid payload``); never error details
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Request
from fastapi.responses import PlainTextResponse, Response
from starlette.concurrency import run_in_threadpool

from pin_stripe.webhooks.gateway import WebhookGateway

logger = logging.getLogger(__name__)

DEFAULT_WEBHOOK_PATH = "/webhooks/stripe"


def create_webhook_router(gateway: WebhookGateway, path: str = DEFAULT_WEBHOOK_PATH) -> APIRouter:
    """Build a router exposing ``POST {path}`` for *gateway*."""
    router = APIRouter(tags=["webhooks"])

    @router.post(path)
    async def stripe_webhook(request: Request) -> Response:
        """Receive Stripe webhooks (signature-verified)."""
        body = await request.body()
        outcome = await run_in_threadpool(gateway.handle_delivery, body, dict(request.headers))
        if outcome.accepted:
            return Response(status_code=200)
        return PlainTextResponse(outcome.reason, status_code=outcome.http_status)

    logger.info("Stripe webhook route registered: POST %s", path)
    return router
