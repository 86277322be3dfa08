"""SQLAlchemy models mirrored from Stripe.

All models are imported here so that Base.metadata knows every table.
If you add a new model, import it in this file.
"""

from stripe_sync.models.customer import Customer
from stripe_sync.models.price import Price
from stripe_sync.models.product import Product
from stripe_sync.models.subscription import Subscription

__all__ = [
    "Customer",
    "Price",
    "Product",
    "Subscription",
]
