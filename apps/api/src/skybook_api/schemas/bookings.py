"""Booking request/response schemas."""

from __future__ import annotations

import uuid  # noqa: TC003
from datetime import datetime  # noqa: TC003

from pydantic import BaseModel, ConfigDict, Field

from skybook_api.schemas.common import PageMeta
from skybook_api.schemas.flights import FlightResponse  # noqa: TC001
from skybook_core.schemas import BookingStatus, Passenger


class CreateBookingRequest(BaseModel):
    """Inbound booking: a flight reference (id or flight number) and travellers."""

    flight_id: str = Field(min_length=1, alias="flightId")
    passengers: list[Passenger] = Field(min_length=1, max_length=9)
    model_config = ConfigDict(populate_by_name=True)


class BookingResponse(BaseModel):
    """A booking with its flight."""

    id: uuid.UUID
    pnr: str
    status: BookingStatus
    passengers: list[Passenger]
    seat_numbers: list[str]
    total_amount: float
    booked_at: datetime
    cancelled_at: datetime | None = None
    flight: FlightResponse
    model_config = ConfigDict(from_attributes=True)


class BookingEnvelope(BaseModel):
    booking: BookingResponse


class BookingListResponse(PageMeta):
    """Paginated bookings, newest first."""

    bookings: list[BookingResponse]


class TicketPassengerResponse(BaseModel):
    name: str
    age: int
    gender: str
    seat: str
    model_config = ConfigDict(from_attributes=True)


class TicketResponse(BaseModel):
    """Data for a printable ticket."""

    booking_reference: str
    status: BookingStatus
    airline: str
    flight_number: str
    departure_city: str
    departure_airport: str
    departure_code: str
    arrival_city: str
    arrival_airport: str
    arrival_code: str
    departure_time: datetime
    arrival_time: datetime
    duration_minutes: int
    aircraft: str
    booking_date: datetime
    total_amount: float
    passengers: list[TicketPassengerResponse]


class TicketEnvelope(BaseModel):
    ticket: TicketResponse


class BookingStatsResponse(BaseModel):
    """Aggregates over all of the caller's bookings."""

    total_bookings: int
    upcoming_bookings: int
    cancelled_bookings: int
    total_spent: float
    model_config = ConfigDict(from_attributes=True)


class BookingStatsEnvelope(BaseModel):
    stats: BookingStatsResponse
