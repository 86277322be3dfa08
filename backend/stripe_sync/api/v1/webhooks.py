"""Stripe webhook endpoint — receives and projects Stripe events."""

import logging

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from stripe_sync.billing.responses import acknowledge, fail, reject
from stripe_sync.billing.router import dispatch_event, resolve_route
from stripe_sync.billing.store import DataStore, session_scope
from stripe_sync.billing.verifier import construct_webhook_event
from stripe_sync.database import get_session_factory
from stripe_sync.exceptions import VerificationError, WebhookError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/webhooks", tags=["webhooks"])


@router.post("/stripe")
async def stripe_webhook(
    request: Request,
    session_factory: async_sessionmaker[AsyncSession] | None = Depends(get_session_factory),
) -> Response:
    """Receive and process Stripe webhook events."""
    # 1. Read raw body (MUST be raw bytes for signature verification)
    payload = await request.body()
    sig_header = request.headers.get("stripe-signature")

    # 2. Verify signature
    try:
        event = construct_webhook_event(payload, sig_header)
    except VerificationError as e:
        return reject(e)

    # 3. Ignore types we do not model, without touching the store
    if resolve_route(event) is None:
        logger.debug("Ignoring webhook event %s (id=%s)", event.type, event.id)
        return acknowledge()

    logger.info("Processing webhook event: %s (id=%s)", event.type, event.id)

    # 4. One transaction per event (webhook has no auth context)
    try:
        async with session_scope(session_factory) as session:
            await dispatch_event(DataStore(session), event)
    except WebhookError as e:
        fail(event, e)

    return acknowledge()
