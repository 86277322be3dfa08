"""Exceptions raised while verifying and projecting Stripe webhook events."""

from typing import Any


class WebhookError(Exception):
    """Base class for webhook processing failures."""


class VerificationError(WebhookError):
    """The request could not be authenticated as a genuine Stripe event."""


class PayloadDecodeError(WebhookError):
    """The event's data object does not have the shape its type promises."""

    def __init__(self, event_type: str, message: str) -> None:
        super().__init__(f"Malformed {event_type} payload: {message}")
        self.event_type = event_type


class RecordLookupError(WebhookError, LookupError):
    """A required join matched zero or more than one row."""

    def __init__(self, table: str, filters: dict[str, Any], matched: int) -> None:
        super().__init__(
            f"Expected exactly one row in {table} matching {filters!r}, found {matched}"
        )
        self.table = table
        self.filters = filters
        self.matched = matched


class CustomerLinkConflictError(WebhookError):
    """The customer row is already linked to a different Stripe customer."""

    def __init__(self, email: str, linked_id: str, incoming_id: str) -> None:
        super().__init__(
            f"Customer {email!r} is linked to {linked_id}, refusing to relink to {incoming_id}"
        )
        self.linked_id = linked_id
        self.incoming_id = incoming_id


class StoreError(WebhookError):
    """The data store reported a failure."""


class StoreNotConfiguredError(StoreError):
    """No database URL was configured for this process."""
