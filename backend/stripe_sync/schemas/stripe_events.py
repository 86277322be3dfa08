"""Pydantic v2 schemas for the Stripe event envelope and the payloads we project.

Each handled event type decodes ``data.object`` into one of these models
right after routing, so a missing or malformed field fails as a
``PayloadDecodeError`` instead of deep inside a handler.
"""

from typing import Any, Literal, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from stripe_sync.exceptions import PayloadDecodeError

# --- Envelope ---


class EventData(BaseModel):
    """The ``data`` member of a Stripe event."""

    object: dict[str, Any]
    previous_attributes: dict[str, Any] | None = None


class WebhookEvent(BaseModel):
    """A verified Stripe event. ``data.object`` is still untyped here."""

    model_config = ConfigDict(extra="ignore")

    id: str
    type: str
    created: int | None = None
    livemode: bool = False
    api_version: str | None = None
    data: EventData


# --- Payloads ---


class _StripeObject(BaseModel):
    model_config = ConfigDict(extra="ignore")


class StripeProduct(_StripeObject):
    """``product.*`` data object."""

    id: str
    active: bool = True
    name: str
    description: str | None = None
    images: list[str] = Field(default_factory=list)
    metadata: dict[str, str] = Field(default_factory=dict)

    @property
    def image(self) -> str | None:
        """The first image is the display image."""
        return self.images[0] if self.images else None


class StripeRecurring(_StripeObject):
    """Recurring component of a price."""

    interval: Literal["day", "week", "month", "year"]
    interval_count: int = 1
    trial_period_days: int | None = None


class StripePrice(_StripeObject):
    """``price.*`` data object."""

    id: str
    product: str
    active: bool = True
    nickname: str | None = None
    currency: str
    unit_amount: int | None = None
    type: Literal["one_time", "recurring"]
    recurring: StripeRecurring | None = None
    metadata: dict[str, str] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _require_recurring(self) -> "StripePrice":
        if self.type == "recurring" and self.recurring is None:
            raise ValueError("recurring price is missing its 'recurring' object")
        return self


class StripeCustomer(_StripeObject):
    """``customer.*`` data object. Email is the join key before linkage."""

    id: str
    email: str


class _PriceRef(_StripeObject):
    id: str


class StripeSubscriptionItem(_StripeObject):
    """One line item of a subscription."""

    id: str | None = None
    price: _PriceRef
    quantity: int | None = None
    # Stripe API 2025-08-27 (basil) moved the billing period to the item
    current_period_start: int | None = None
    current_period_end: int | None = None


class StripeSubscriptionItems(_StripeObject):
    data: list[StripeSubscriptionItem] = Field(default_factory=list)


SubscriptionStatus = Literal[
    "incomplete",
    "incomplete_expired",
    "trialing",
    "active",
    "past_due",
    "canceled",
    "unpaid",
    "paused",
]


class StripeSubscription(_StripeObject):
    """``customer.subscription.*`` data object."""

    id: str
    customer: str
    status: SubscriptionStatus
    items: StripeSubscriptionItems | None = None
    plan: _PriceRef | None = None  # legacy single-plan subscriptions
    quantity: int | None = None
    cancel_at_period_end: bool = False
    created: int | None = None
    current_period_start: int | None = None
    current_period_end: int | None = None
    trial_start: int | None = None
    trial_end: int | None = None
    cancel_at: int | None = None
    canceled_at: int | None = None
    ended_at: int | None = None
    metadata: dict[str, str] = Field(default_factory=dict)

    @property
    def first_item(self) -> StripeSubscriptionItem | None:
        if self.items and self.items.data:
            return self.items.data[0]
        return None

    @property
    def price_id(self) -> str | None:
        """Price of the first item, falling back to the legacy plan."""
        item = self.first_item
        if item is not None:
            return item.price.id
        return self.plan.id if self.plan else None

    @property
    def item_quantity(self) -> int | None:
        item = self.first_item
        if item is not None and item.quantity is not None:
            return item.quantity
        return self.quantity

    @property
    def period(self) -> tuple[int | None, int | None]:
        """Current period start/end, read from the first item when absent on the subscription."""
        start, end = self.current_period_start, self.current_period_end
        item = self.first_item
        if item is not None:
            if start is None:
                start = item.current_period_start
            if end is None:
                end = item.current_period_end
        return start, end


PayloadT = TypeVar("PayloadT", bound=BaseModel)


def decode_payload(model: type[PayloadT], event: WebhookEvent) -> PayloadT:
    """Decode ``event.data.object`` into the payload model for its type."""
    try:
        return model.model_validate(event.data.object)
    except ValidationError as e:
        raise PayloadDecodeError(event.type, str(e)) from e
