"""Flight search criteria."""

from __future__ import annotations

from datetime import date  # noqa: TC003

from pydantic import BaseModel, Field


class FlightSearchCriteria(BaseModel):
    """Search filters; every field is optional."""

    departure_city: str | None = Field(default=None, max_length=100)
    arrival_city: str | None = Field(default=None, max_length=100)
    departure_date: date | None = None
    passengers: int | None = Field(default=None, ge=1, le=9)

    @property
    def describes_route(self) -> bool:
        """True when enough is known to synthesize flights for the route."""
        return bool(
            self.departure_city and self.arrival_city and self.departure_date
        )
