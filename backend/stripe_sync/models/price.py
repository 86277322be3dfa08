"""Price model — a priced variant of a Product."""

from typing import Any

from sqlalchemy import JSON, BigInteger, Boolean, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from stripe_sync.database import Base, TimestampMixin


class Price(TimestampMixin, Base):
    """Recurring columns are null for one-time prices."""

    __tablename__ = "prices"

    # Stripe price ID, e.g. price_...
    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    product_id: Mapped[str] = mapped_column(
        ForeignKey("products.id"), nullable=False, index=True
    )
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    description: Mapped[str | None] = mapped_column(String(255), nullable=True)
    unit_amount: Mapped[int | None] = mapped_column(BigInteger, nullable=True)  # smallest currency unit
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    type: Mapped[str] = mapped_column(String(20), nullable=False)  # one_time, recurring
    interval: Mapped[str | None] = mapped_column(String(20), nullable=True)  # day, week, month, year
    interval_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    trial_period_days: Mapped[int | None] = mapped_column(Integer, nullable=True)
    provider_metadata: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)

    def __repr__(self) -> str:
        return f"<Price id={self.id!r} product_id={self.product_id!r} unit_amount={self.unit_amount} {self.currency}>"
