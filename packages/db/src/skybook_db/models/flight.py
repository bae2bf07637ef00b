"""Flight model."""

from __future__ import annotations

from datetime import datetime  # noqa: TC003
from decimal import Decimal  # noqa: TC003

from sqlalchemy import CheckConstraint, DateTime, Index, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin, UUIDPrimaryKeyMixin


class Flight(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """Flights table - shared seat inventory with base and displayed price."""

    __tablename__ = "flights"

    flight_number: Mapped[str] = mapped_column(
        String(20), unique=True, nullable=False
    )
    airline: Mapped[str] = mapped_column(String(100), nullable=False)
    departure_city: Mapped[str] = mapped_column(String(100), nullable=False)
    departure_airport: Mapped[str] = mapped_column(String(255), nullable=False)
    departure_code: Mapped[str] = mapped_column(String(3), nullable=False)
    arrival_city: Mapped[str] = mapped_column(String(100), nullable=False)
    arrival_airport: Mapped[str] = mapped_column(String(255), nullable=False)
    arrival_code: Mapped[str] = mapped_column(String(3), nullable=False)
    departure_time: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    arrival_time: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False)
    base_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    current_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    seats_available: Mapped[int] = mapped_column(Integer, nullable=False, default=60)
    aircraft: Mapped[str] = mapped_column(String(50), nullable=False)

    __table_args__ = (
        CheckConstraint("seats_available >= 0", name="ck_flights_seats_non_negative"),
        Index("ix_flights_route", "departure_city", "arrival_city"),
        Index("ix_flights_departure_time", "departure_time"),
    )

    def __repr__(self) -> str:
        return (
            f"<Flight {self.flight_number} "
            f"{self.departure_code}-{self.arrival_code}>"
        )
