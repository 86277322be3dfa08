"""Customer model — links an internal user to a Stripe customer."""

import uuid

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from stripe_sync.database import Base, TimestampMixin


class Customer(TimestampMixin, Base):
    """Created at signup; ``stripe_customer_id`` is attached by the webhook."""

    __tablename__ = "customers"

    user_id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    stripe_customer_id: Mapped[str | None] = mapped_column(
        String(255), unique=True, nullable=True, index=True
    )

    def __repr__(self) -> str:
        return f"<Customer user_id={self.user_id} email={self.email!r} stripe_customer_id={self.stripe_customer_id!r}>"
