"""Stripe webhook signature verification."""

import logging

import stripe
from pydantic import ValidationError

from stripe_sync.config import settings
from stripe_sync.exceptions import VerificationError
from stripe_sync.schemas.stripe_events import WebhookEvent

logger = logging.getLogger(__name__)


def construct_webhook_event(
    payload: bytes,
    sig_header: str | None,
    secret: str | None = None,
    tolerance: int | None = None,
) -> WebhookEvent:
    """Verify the raw request body against its Stripe-Signature header.

    ``payload`` must be the exact bytes received; parsing and re-serializing
    the JSON before this call breaks the signature. Every failure is raised
    as ``VerificationError`` with Stripe's message and nothing more specific.
    """
    if secret is None:
        secret = settings.stripe_webhook_signing_secret
    if tolerance is None:
        tolerance = settings.stripe_webhook_tolerance

    if not sig_header:
        raise VerificationError("No Stripe-Signature header provided")
    if not secret:
        raise VerificationError("Webhook signing secret is not configured")

    try:
        body = payload.decode("utf-8")
        stripe.WebhookSignature.verify_header(body, sig_header, secret, tolerance)
    except stripe.SignatureVerificationError as e:
        raise VerificationError(str(e.user_message or e)) from e
    except UnicodeDecodeError as e:
        raise VerificationError("Webhook payload is not valid UTF-8") from e

    try:
        return WebhookEvent.model_validate_json(payload)
    except ValidationError as e:
        raise VerificationError("Invalid webhook payload") from e
