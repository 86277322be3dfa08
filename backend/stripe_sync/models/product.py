"""Product model — a sellable offering mirrored from Stripe."""

from typing import Any

from sqlalchemy import JSON, Boolean, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from stripe_sync.database import Base, TimestampMixin


class Product(TimestampMixin, Base):
    """Archived products stay in place with ``active`` set to false."""

    __tablename__ = "products"

    # Stripe product ID, e.g. prod_...
    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    image: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    provider_metadata: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)

    def __repr__(self) -> str:
        return f"<Product id={self.id!r} name={self.name!r} active={self.active}>"
