"""Stripe webhook event handlers — project events onto local billing tables.

Every handler is keyed on Stripe identifiers so that a redelivered event
leaves the same end state as the first delivery. Lookup and store failures
are raised, never swallowed: Stripe redelivers until we acknowledge.
"""

import logging
from datetime import timezone
from typing import Any

from stripe_sync.billing.store import DataStore
from stripe_sync.billing.timestamps import epoch_to_datetime
from stripe_sync.config import settings
from stripe_sync.exceptions import CustomerLinkConflictError, StoreError
from stripe_sync.models import Customer, Price, Product, Subscription
from stripe_sync.schemas.stripe_events import (
    StripeCustomer,
    StripePrice,
    StripeProduct,
    StripeSubscription,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Row builders
# ---------------------------------------------------------------------------


def _product_row(product: StripeProduct) -> dict[str, Any]:
    return {
        "id": product.id,
        "active": product.active,
        "name": product.name,
        "description": product.description,
        "image": product.image,
        "provider_metadata": product.metadata,
    }


def _price_row(price: StripePrice) -> dict[str, Any]:
    recurring = price.recurring
    return {
        "id": price.id,
        "product_id": price.product,
        "active": price.active,
        "description": price.nickname,
        "unit_amount": price.unit_amount,
        "currency": price.currency,
        "type": price.type,
        "interval": recurring.interval if recurring else None,
        "interval_count": recurring.interval_count if recurring else None,
        "trial_period_days": recurring.trial_period_days if recurring else None,
        "provider_metadata": price.metadata,
    }


def _subscription_quantity(stripe_sub: StripeSubscription) -> int:
    """Fixed quantity unless configured to read the first line item."""
    if settings.subscription_quantity_from_payload:
        quantity = stripe_sub.item_quantity
        if quantity is not None:
            return quantity
    return settings.subscription_default_quantity


def _subscription_patch(stripe_sub: StripeSubscription) -> dict[str, Any]:
    """Subscription columns derived from the payload, excluding ``user_id``."""
    period_start, period_end = stripe_sub.period
    return {
        "stripe_subscription_id": stripe_sub.id,
        "status": stripe_sub.status,
        "price_id": stripe_sub.price_id,
        "quantity": _subscription_quantity(stripe_sub),
        "cancel_at_period_end": stripe_sub.cancel_at_period_end,
        "provider_metadata": stripe_sub.metadata,
        "created": epoch_to_datetime(stripe_sub.created),
        "current_period_start": epoch_to_datetime(period_start),
        "current_period_end": epoch_to_datetime(period_end),
        "trial_start": epoch_to_datetime(stripe_sub.trial_start),
        "trial_end": epoch_to_datetime(stripe_sub.trial_end),
        "cancel_at": epoch_to_datetime(stripe_sub.cancel_at),
        "canceled_at": epoch_to_datetime(stripe_sub.canceled_at),
        "ended_at": epoch_to_datetime(stripe_sub.ended_at),
    }


async def _resolve_customer(store: DataStore, stripe_customer_id: str) -> Customer:
    """The subscription payload names the Stripe customer; join to our user."""
    return await store.select_single(Customer, stripe_customer_id=stripe_customer_id)


# ---------------------------------------------------------------------------
# product.*
# ---------------------------------------------------------------------------


async def handle_product_created(store: DataStore, product: StripeProduct) -> None:
    """Handle product.created — upsert the product."""
    await store.insert(Product, _product_row(product))
    logger.info("Product created: %s (%s)", product.id, product.name)


async def handle_product_updated(store: DataStore, product: StripeProduct) -> None:
    """Handle product.updated — update fields in place, never the id."""
    row = _product_row(product)
    patch = {k: v for k, v in row.items() if k != "id"}
    matched = await store.update(Product, patch, id=product.id)
    if not matched:
        logger.warning("Product %s updated before it was created, inserting", product.id)
        await store.insert(Product, row)
    logger.info("Product updated: %s active=%s", product.id, product.active)


async def handle_product_deleted(store: DataStore, product: StripeProduct) -> None:
    """Handle product.deleted — archive, rows are never removed."""
    matched = await store.update(Product, {"active": False}, id=product.id)
    logger.info("Product archived: %s (matched %d)", product.id, matched)


# ---------------------------------------------------------------------------
# price.*
# ---------------------------------------------------------------------------


async def handle_price_created(store: DataStore, price: StripePrice) -> None:
    """Handle price.created — upsert the price under an existing product."""
    await store.select_single(Product, id=price.product)
    await store.insert(Price, _price_row(price))
    logger.info(
        "Price created: %s for product %s (%s %s)",
        price.id,
        price.product,
        price.unit_amount,
        price.currency,
    )


async def handle_price_updated(store: DataStore, price: StripePrice) -> None:
    """Handle price.updated — update fields in place, never the id."""
    await store.select_single(Product, id=price.product)
    row = _price_row(price)
    patch = {k: v for k, v in row.items() if k != "id"}
    matched = await store.update(Price, patch, id=price.id)
    if not matched:
        logger.warning("Price %s updated before it was created, inserting", price.id)
        await store.insert(Price, row)
    logger.info("Price updated: %s active=%s", price.id, price.active)


async def handle_price_deleted(store: DataStore, price: StripePrice) -> None:
    """Handle price.deleted — archive, rows are never removed."""
    matched = await store.update(Price, {"active": False}, id=price.id)
    logger.info("Price archived: %s (matched %d)", price.id, matched)


# ---------------------------------------------------------------------------
# customer.created
# ---------------------------------------------------------------------------


async def handle_customer_created(store: DataStore, customer: StripeCustomer) -> None:
    """Handle customer.created — link the signup row with this email to Stripe.

    The row must already exist. An email matching zero or several rows is a
    lookup failure, and a row already linked to another Stripe customer is a
    conflict. Neither writes anything.
    """
    existing = await store.select_single(Customer, email=customer.email)
    linked_id = existing.stripe_customer_id
    if linked_id is not None and linked_id != customer.id:
        # The Stripe customer id is stable once set
        raise CustomerLinkConflictError(customer.email, linked_id, customer.id)

    matched = await store.update(
        Customer,
        {"stripe_customer_id": customer.id},
        email=customer.email,
        stripe_customer_id=linked_id,
    )
    if not matched:
        raise StoreError(f"Customer {customer.email!r} changed while linking {customer.id}")
    logger.info(
        "Linked Stripe customer %s to user %s", customer.id, existing.user_id
    )


# ---------------------------------------------------------------------------
# customer.subscription.*
# ---------------------------------------------------------------------------


def _is_superseded(current: Subscription, stripe_sub: StripeSubscription) -> bool:
    """True when the user's row tracks a different subscription created after this one."""
    if current.stripe_subscription_id in (None, stripe_sub.id):
        return False
    if current.created is None or stripe_sub.created is None:
        return False
    current_created = current.created
    if current_created.tzinfo is None:
        current_created = current_created.replace(tzinfo=timezone.utc)
    return current_created > epoch_to_datetime(stripe_sub.created)


async def _project_subscription(
    store: DataStore, stripe_sub: StripeSubscription
) -> bool:
    """Write ``stripe_sub`` onto its user's row. Returns False for a stale event.

    A late or redelivered event for an older subscription must not overwrite
    the subscription that replaced it.
    """
    customer = await _resolve_customer(store, stripe_sub.customer)
    patch = _subscription_patch(stripe_sub)

    current_rows = await store.select(Subscription, user_id=customer.user_id)
    if not current_rows:
        await store.insert(
            Subscription, {"user_id": customer.user_id, **patch}, conflict_keys=["user_id"]
        )
        return True

    current = current_rows[0]
    if _is_superseded(current, stripe_sub):
        logger.info(
            "Skipping event for subscription %s: user %s is on newer subscription %s",
            stripe_sub.id,
            customer.user_id,
            current.stripe_subscription_id,
        )
        return False

    matched = await store.update(
        Subscription,
        patch,
        user_id=customer.user_id,
        stripe_subscription_id=current.stripe_subscription_id,
    )
    if not matched:
        raise StoreError(
            f"Subscription row for user {customer.user_id} changed while applying {stripe_sub.id}"
        )
    return True


async def handle_subscription_created(
    store: DataStore, stripe_sub: StripeSubscription
) -> None:
    """Handle customer.subscription.created — upsert the user's subscription."""
    if await _project_subscription(store, stripe_sub):
        logger.info(
            "Subscription created: %s (customer %s, status=%s, price=%s)",
            stripe_sub.id,
            stripe_sub.customer,
            stripe_sub.status,
            stripe_sub.price_id,
        )


async def handle_subscription_updated(
    store: DataStore, stripe_sub: StripeSubscription
) -> None:
    """Handle customer.subscription.updated (and .deleted) — sync status, price and period.

    An update that arrives before its create inserts the row.
    """
    if await _project_subscription(store, stripe_sub):
        logger.info(
            "Subscription updated: %s → status=%s, price=%s",
            stripe_sub.id,
            stripe_sub.status,
            stripe_sub.price_id,
        )
