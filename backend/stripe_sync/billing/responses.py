"""Turn webhook outcomes into the responses Stripe sees."""

import logging
from typing import NoReturn

from fastapi import HTTPException, status
from fastapi.responses import JSONResponse, PlainTextResponse

from stripe_sync.exceptions import (
    CustomerLinkConflictError,
    RecordLookupError,
    VerificationError,
    WebhookError,
)
from stripe_sync.schemas.stripe_events import WebhookEvent

logger = logging.getLogger(__name__)

# Stripe only looks at the status code, but this body is part of the contract.
ACK_BODY = {"message": "nice!"}


def acknowledge() -> JSONResponse:
    """200 for a projected event or an event type we ignore."""
    return JSONResponse(ACK_BODY, status_code=status.HTTP_200_OK)


def reject(exc: VerificationError) -> PlainTextResponse:
    """400 carrying the verifier's message as text, never a reason code."""
    logger.warning("Webhook signature verification failed")
    return PlainTextResponse(str(exc), status_code=status.HTTP_400_BAD_REQUEST)


def fail(event: WebhookEvent, exc: WebhookError) -> NoReturn:
    """Raise a 500 so Stripe redelivers the event."""
    if isinstance(exc, (RecordLookupError, CustomerLinkConflictError)):
        # Redelivery rarely fixes a broken join; this needs a human.
        logger.error(
            "Data integrity failure for webhook event %s (%s): %s", event.id, event.type, exc
        )
    else:
        logger.exception("Error processing webhook event %s (%s)", event.id, event.type)
    raise HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail="Webhook processing failed",
    ) from exc
