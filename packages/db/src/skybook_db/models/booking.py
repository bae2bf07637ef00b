"""Booking model."""

from __future__ import annotations

import uuid  # noqa: TC003
from datetime import datetime  # noqa: TC003
from decimal import Decimal  # noqa: TC003
from typing import TYPE_CHECKING

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Numeric,
    String,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from skybook_core.schemas.enums import BookingStatus

from .base import Base, JSONType, TimestampMixin, UUIDPrimaryKeyMixin

if TYPE_CHECKING:
    from .flight import Flight
    from .user import User


class Booking(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """Bookings table - one row per reservation, identified publicly by PNR."""

    __tablename__ = "bookings"

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False
    )
    flight_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("flights.id"), nullable=False
    )
    booked_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    passengers: Mapped[list[dict]] = mapped_column(JSONType, nullable=False)
    seat_numbers: Mapped[list[str]] = mapped_column(JSONType, nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    status: Mapped[BookingStatus] = mapped_column(
        nullable=False, default=BookingStatus.CONFIRMED
    )
    pnr: Mapped[str] = mapped_column(String(6), unique=True, nullable=False)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    # Relationships
    user: Mapped[User] = relationship(back_populates="bookings")
    flight: Mapped[Flight] = relationship()

    __table_args__ = (
        CheckConstraint("total_amount >= 0", name="ck_bookings_total_non_negative"),
        Index("ix_bookings_user_id", "user_id"),
        Index("ix_bookings_flight_id", "flight_id"),
    )

    @property
    def passenger_count(self) -> int:
        return len(self.passengers)

    def __repr__(self) -> str:
        return f"<Booking {self.pnr} ({self.status.value})>"
