"""Map Stripe event types to their payload schema and projection handler."""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel

from stripe_sync.billing.handlers import (
    handle_customer_created,
    handle_price_created,
    handle_price_deleted,
    handle_price_updated,
    handle_product_created,
    handle_product_deleted,
    handle_product_updated,
    handle_subscription_created,
    handle_subscription_updated,
)
from stripe_sync.billing.store import DataStore
from stripe_sync.schemas.stripe_events import (
    StripeCustomer,
    StripePrice,
    StripeProduct,
    StripeSubscription,
    WebhookEvent,
    decode_payload,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EventRoute:
    """Payload schema and handler for one event type."""

    payload_model: type[BaseModel]
    handler: Callable[[DataStore, Any], Awaitable[None]]


# Exact type string -> route. Anything else is acknowledged and ignored.
EVENT_ROUTES: dict[str, EventRoute] = {
    "product.created": EventRoute(StripeProduct, handle_product_created),
    "product.updated": EventRoute(StripeProduct, handle_product_updated),
    "product.deleted": EventRoute(StripeProduct, handle_product_deleted),
    "price.created": EventRoute(StripePrice, handle_price_created),
    "price.updated": EventRoute(StripePrice, handle_price_updated),
    "price.deleted": EventRoute(StripePrice, handle_price_deleted),
    "customer.created": EventRoute(StripeCustomer, handle_customer_created),
    "customer.subscription.created": EventRoute(
        StripeSubscription, handle_subscription_created
    ),
    "customer.subscription.updated": EventRoute(
        StripeSubscription, handle_subscription_updated
    ),
    "customer.subscription.deleted": EventRoute(
        StripeSubscription, handle_subscription_updated
    ),
}


def resolve_route(event: WebhookEvent) -> EventRoute | None:
    """Return the route for ``event.type``, or None for types we do not model."""
    return EVENT_ROUTES.get(event.type)


async def dispatch_event(store: DataStore, event: WebhookEvent) -> bool:
    """Decode and project ``event``. Returns False when the type is ignored."""
    route = resolve_route(event)
    if route is None:
        logger.debug("Unhandled webhook event type: %s", event.type)
        return False

    payload = decode_payload(route.payload_model, event)
    await route.handler(store, payload)
    return True
