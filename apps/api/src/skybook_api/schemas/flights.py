"""Flight search / detail schemas."""

from __future__ import annotations

import uuid  # noqa: TC003
from datetime import datetime  # noqa: TC003

from pydantic import BaseModel, ConfigDict


class FlightResponse(BaseModel):
    """One flight with the price shown to the caller."""

    id: uuid.UUID
    flight_number: str
    airline: str
    departure_city: str
    departure_airport: str
    departure_code: str
    arrival_city: str
    arrival_airport: str
    arrival_code: str
    departure_time: datetime
    arrival_time: datetime
    duration_minutes: int
    base_price: float
    current_price: float
    seats_available: int
    aircraft: str
    model_config = ConfigDict(from_attributes=True)


class FlightSearchResponse(BaseModel):
    """Search results."""

    flights: list[FlightResponse]


class FlightDetailResponse(BaseModel):
    """Single flight lookup."""

    flight: FlightResponse
