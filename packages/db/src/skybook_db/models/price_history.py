"""Per-user search history driving dynamic pricing."""

from __future__ import annotations

import uuid  # noqa: TC003
from datetime import datetime  # noqa: TC003
from decimal import Decimal  # noqa: TC003

from sqlalchemy import (
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin, UUIDPrimaryKeyMixin


class PriceHistory(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """Price history table - search counter keyed by (user, flight)."""

    __tablename__ = "price_history"

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False
    )
    flight_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("flights.id"), nullable=False
    )
    search_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_search_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    original_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    increased_price: Mapped[Decimal | None] = mapped_column(Numeric(12, 2))

    __table_args__ = (
        UniqueConstraint("user_id", "flight_id", name="uq_price_history_user_flight"),
    )

    def __repr__(self) -> str:
        return (
            f"<PriceHistory user={self.user_id} flight={self.flight_id} "
            f"count={self.search_count}>"
        )
