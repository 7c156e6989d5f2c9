from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse, PlainTextResponse, Response

from portal import environment
from portal.dependencies import get_connection, get_identity_client
from portal.identity import WebhookVerificationError
from portal.identity.webhooks import (
    MissingWebhookHeadersError,
    handle_event,
    verify_webhook,
)

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/webhooks/identity")
async def identity_webhook(
    request: Request,
    connection=Depends(get_connection),
    provider=Depends(get_identity_client),
) -> Response:
    secret = environment.get_identity_webhook_secret()
    if not secret:
        logger.error("IDENTITY_WEBHOOK_SECRET is not configured")
        return PlainTextResponse(
            "Webhook secret not configured",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    body = await request.body()
    try:
        event = verify_webhook(secret, request.headers, body)
    except MissingWebhookHeadersError:
        return PlainTextResponse(
            "Missing required webhook headers", status_code=status.HTTP_400_BAD_REQUEST
        )
    except WebhookVerificationError as exc:
        logger.warning("Rejected identity webhook: %s", exc)
        return PlainTextResponse(
            "Invalid webhook signature", status_code=status.HTTP_400_BAD_REQUEST
        )

    # Verified events always answer 200.
    try:
        handled = await handle_event(connection, provider, event)
    except Exception:
        logger.exception("Identity webhook handler failed for %s", event.get("type"))
        return JSONResponse(content={"error": "Internal error"})
    return JSONResponse(content={"received": True, "handled": handled})
