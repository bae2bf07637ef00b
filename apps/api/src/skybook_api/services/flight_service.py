"""Flight inventory - lookup, search, route synthesis and seat counters."""

from __future__ import annotations

import logging
import random
import uuid
from dataclasses import dataclass
from datetime import UTC, date, datetime, time, timedelta
from decimal import Decimal
from typing import TYPE_CHECKING, Protocol

from sqlalchemy import delete, exists, select, update
from sqlalchemy.orm.attributes import set_committed_value

from skybook_api.config import settings
from skybook_api.services.pricing_service import PricingService
from skybook_core.errors import InsufficientSeatsError, NotFoundError, ValidationError
from skybook_db.models import Booking, Flight, PriceHistory

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from skybook_core.schemas import FlightSearchCriteria

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Airport:
    city: str
    name: str
    code: str


AIRPORTS: dict[str, Airport] = {
    a.city.lower(): a
    for a in (
        Airport("Delhi", "Indira Gandhi International Airport", "DEL"),
        Airport("Mumbai", "Chhatrapati Shivaji Maharaj International Airport", "BOM"),
        Airport("Bangalore", "Kempegowda International Airport", "BLR"),
        Airport("Chennai", "Chennai International Airport", "MAA"),
        Airport("Kolkata", "Netaji Subhas Chandra Bose International Airport", "CCU"),
        Airport("Hyderabad", "Rajiv Gandhi International Airport", "HYD"),
        Airport("Ahmedabad", "Sardar Vallabhbhai Patel International Airport", "AMD"),
        Airport("Pune", "Pune Airport", "PNQ"),
        Airport("Jaipur", "Jaipur International Airport", "JAI"),
        Airport("Lucknow", "Chaudhary Charan Singh International Airport", "LKO"),
    )
}

AIRLINES: dict[str, str] = {
    "IndiGo": "6E",
    "SpiceJet": "SG",
    "Air India": "AI",
    "Vistara": "UK",
    "Go First": "G8",
}

AIRCRAFT = ["Airbus A319", "Airbus A320", "Airbus A321", "Boeing 737", "Boeing 777"]

# (low, high) inclusive per-seat base price
PRICE_BANDS: dict[str, tuple[int, int]] = {
    "budget": (2000, 2999),
    "standard": (3000, 4499),
    "premium": (4500, 6499),
}

FIRST_DEPARTURE = time(5, 0)
LAST_DEPARTURE = time(23, 0)


def airport_for(city: str) -> Airport:
    """Catalog airport for *city*, or a generic one derived from the name."""
    key = city.strip().lower()
    if key in AIRPORTS:
        return AIRPORTS[key]
    name = city.strip().title()
    code = "".join(ch for ch in name if ch.isalpha())[:3].upper().ljust(3, "X")
    return Airport(name, f"{name} Airport", code)


class FlightResolver(Protocol):
    """One strategy for turning an external flight reference into a row."""

    async def resolve(self, db: AsyncSession, ref: str) -> Flight | None: ...


class ByPrimaryKey:
    """Resolve references that are flight UUIDs."""

    async def resolve(self, db: AsyncSession, ref: str) -> Flight | None:
        try:
            flight_id = uuid.UUID(ref)
        except ValueError:
            return None
        return await db.get(Flight, flight_id)


class ByFlightNumber:
    """Resolve flight numbers, including demo ids like ``flight_1``."""

    async def resolve(self, db: AsyncSession, ref: str) -> Flight | None:
        return await db.scalar(select(Flight).where(Flight.flight_number == ref))


DEFAULT_RESOLVERS: tuple[FlightResolver, ...] = (ByPrimaryKey(), ByFlightNumber())


class FlightService:
    """Shared flight inventory."""

    def __init__(
        self,
        db: AsyncSession,
        pricing: PricingService | None = None,
        resolvers: tuple[FlightResolver, ...] = DEFAULT_RESOLVERS,
        rng: random.Random | None = None,
    ) -> None:
        self._db = db
        self._pricing = pricing or PricingService(db)
        self._resolvers = resolvers
        self._rng = rng or random.Random()

    async def resolve(self, ref: str | uuid.UUID) -> Flight | None:
        """Find a flight by primary key, then by flight number."""
        ref = str(ref).strip()
        for resolver in self._resolvers:
            flight = await resolver.resolve(self._db, ref)
            if flight is not None:
                return flight
        return None

    async def get_flight(
        self, ref: str | uuid.UUID, user_id: uuid.UUID
    ) -> Flight | None:
        """Flight details with the price this user currently sees."""
        flight = await self.resolve(ref)
        if flight is None:
            logger.info("Flight %s not found", ref)
            return None
        flight.current_price = await self._pricing.price_for(flight.id, user_id)
        await self._db.flush()
        return flight

    async def search(
        self, criteria: FlightSearchCriteria, user_id: uuid.UUID
    ) -> list[Flight]:
        """Matching flights priced for *user_id*; unseen routes are generated."""
        flights = await self._query(criteria)
        if (
            not flights
            and criteria.describes_route
            and not await self._route_exists(criteria)
        ):
            await self.create_route_flights(
                criteria.departure_city,  # type: ignore[arg-type]
                criteria.arrival_city,  # type: ignore[arg-type]
                criteria.departure_date,  # type: ignore[arg-type]
            )
            flights = await self._query(criteria)

        for flight in flights:
            flight.current_price = await self._pricing.price_for(flight.id, user_id)
        await self._db.flush()
        logger.info(
            "Search %s -> %s on %s: %d flight(s)",
            criteria.departure_city,
            criteria.arrival_city,
            criteria.departure_date,
            len(flights),
        )
        return flights

    async def _query(self, criteria: FlightSearchCriteria) -> list[Flight]:
        stmt = select(Flight).where(*self._route_filters(criteria))
        if criteria.passengers:
            stmt = stmt.where(Flight.seats_available >= criteria.passengers)

        stmt = stmt.order_by(Flight.departure_time).limit(settings.search_result_limit)
        result = await self._db.execute(stmt)
        return list(result.scalars().all())

    async def _route_exists(self, criteria: FlightSearchCriteria) -> bool:
        """Any flight on the route that day, full ones included."""
        return bool(
            await self._db.scalar(
                select(exists().where(*self._route_filters(criteria)))
            )
        )

    @staticmethod
    def _route_filters(criteria: FlightSearchCriteria) -> list:
        filters = []
        if criteria.departure_city:
            filters.append(
                Flight.departure_city.ilike(f"%{criteria.departure_city.strip()}%")
            )
        if criteria.arrival_city:
            filters.append(
                Flight.arrival_city.ilike(f"%{criteria.arrival_city.strip()}%")
            )
        if criteria.departure_date:
            start = datetime.combine(criteria.departure_date, time.min, tzinfo=UTC)
            filters.append(Flight.departure_time >= start)
            filters.append(Flight.departure_time < start + timedelta(days=1))
        return filters

    async def create_route_flights(
        self, departure_city: str, arrival_city: str, day: date
    ) -> list[Flight]:
        """Generate 5-8 flights spread across *day* for a route nobody flies yet."""
        origin = airport_for(departure_city)
        destination = airport_for(arrival_city)
        if origin.code == destination.code:
            msg = "Departure and arrival must differ"
            raise ValidationError(msg)

        count = self._rng.randint(5, 8)
        first = datetime.combine(day, FIRST_DEPARTURE, tzinfo=UTC)
        span = datetime.combine(day, LAST_DEPARTURE, tzinfo=UTC) - first
        slot = span / count

        flights = []
        for i in range(count):
            jitter = timedelta(minutes=self._rng.randrange(0, 12) * 5)
            departure = (first + slot * i + min(jitter, slot)).replace(
                second=0, microsecond=0
            )
            flight = await self._new_flight(origin, destination, departure)
            self._db.add(flight)
            flights.append(flight)

        await self._db.flush()
        logger.info(
            "Generated %d flights for %s -> %s on %s",
            len(flights),
            origin.code,
            destination.code,
            day,
        )
        return flights

    async def seed_flights(self, count: int = 20, days_ahead: int = 7) -> int:
        """Populate an empty inventory with a demo flight plus *count* random ones."""
        if await self._db.scalar(select(exists().select_from(Flight))):
            logger.info("Flights already present, skipping seed")
            return 0

        now = datetime.now(UTC).replace(second=0, microsecond=0)
        mumbai, delhi = AIRPORTS["mumbai"], AIRPORTS["delhi"]
        demo_departure = now + timedelta(days=1)
        flights = [
            Flight(
                flight_number="flight_1",
                airline="Test Airline",
                departure_city=mumbai.city,
                departure_airport=mumbai.name,
                departure_code=mumbai.code,
                arrival_city=delhi.city,
                arrival_airport=delhi.name,
                arrival_code=delhi.code,
                departure_time=demo_departure,
                arrival_time=demo_departure + timedelta(minutes=120),
                duration_minutes=120,
                base_price=Decimal("2500"),
                current_price=Decimal("2500"),
                seats_available=50,
                aircraft="Airbus A320",
            )
        ]
        self._db.add(flights[0])

        cities = list(AIRPORTS.values())
        for _ in range(count):
            origin, destination = self._rng.sample(cities, 2)
            departure = datetime.combine(
                (now + timedelta(days=self._rng.randrange(days_ahead))).date(),
                time(self._rng.randrange(24), self._rng.randrange(12) * 5),
                tzinfo=UTC,
            )
            flight = await self._new_flight(origin, destination, departure)
            self._db.add(flight)
            flights.append(flight)

        await self._db.flush()
        logger.info("Seeded %d flights", len(flights))
        return len(flights)

    async def reset_flights(self) -> int:
        """Administrative bulk reset: drop pricing state and every unbooked flight."""
        await self._db.execute(delete(PriceHistory))
        booked = select(Booking.flight_id)
        result = await self._db.execute(
            delete(Flight)
            .where(Flight.id.not_in(booked))
            .execution_options(synchronize_session=False)
        )
        logger.info("Reset inventory: removed %d flight(s)", result.rowcount)
        return result.rowcount

    async def decrement_seats(self, flight_id: uuid.UUID, count: int) -> int:
        """Take *count* seats. Returns the seats left."""
        if count < 1:
            msg = f"Seat count must be positive, got {count}"
            raise ValidationError(msg)
        stmt = (
            update(Flight)
            .where(Flight.id == flight_id, Flight.seats_available >= count)
            .values(seats_available=Flight.seats_available - count)
            .returning(Flight.seats_available)
            .execution_options(synchronize_session=False)
        )
        remaining = (await self._db.execute(stmt)).scalar_one_or_none()
        if remaining is None:
            available = await self._db.scalar(
                select(Flight.seats_available).where(Flight.id == flight_id)
            )
            if available is None:
                msg = f"Flight not found: {flight_id}"
                raise NotFoundError(msg)
            msg = f"Only {available} seats available on this flight"
            raise InsufficientSeatsError(msg)
        self._sync_seats(flight_id, remaining)
        return remaining

    async def increment_seats(self, flight_id: uuid.UUID, count: int) -> int:
        """Give back *count* seats. Returns the seats left."""
        if count < 1:
            msg = f"Seat count must be positive, got {count}"
            raise ValidationError(msg)
        stmt = (
            update(Flight)
            .where(Flight.id == flight_id)
            .values(seats_available=Flight.seats_available + count)
            .returning(Flight.seats_available)
            .execution_options(synchronize_session=False)
        )
        remaining = (await self._db.execute(stmt)).scalar_one_or_none()
        if remaining is None:
            msg = f"Flight not found: {flight_id}"
            raise NotFoundError(msg)
        self._sync_seats(flight_id, remaining)
        return remaining

    def _sync_seats(self, flight_id: uuid.UUID, remaining: int) -> None:
        """Reflect a bulk UPDATE on the in-session Flight, if one is loaded."""
        flight = self._db.identity_map.get(self._db.identity_key(Flight, flight_id))
        if flight is not None:
            set_committed_value(flight, "seats_available", remaining)

    async def _new_flight(
        self, origin: Airport, destination: Airport, departure: datetime
    ) -> Flight:
        airline, code = self._rng.choice(list(AIRLINES.items()))
        low, high = PRICE_BANDS[self._rng.choice(list(PRICE_BANDS))]
        base_price = Decimal(self._rng.randint(low, high))
        duration = self._rng.randint(60, 239)
        return Flight(
            flight_number=await self._unique_flight_number(code),
            airline=airline,
            departure_city=origin.city,
            departure_airport=origin.name,
            departure_code=origin.code,
            arrival_city=destination.city,
            arrival_airport=destination.name,
            arrival_code=destination.code,
            departure_time=departure,
            arrival_time=departure + timedelta(minutes=duration),
            duration_minutes=duration,
            base_price=base_price,
            current_price=base_price,
            seats_available=self._rng.randint(30, 99),
            aircraft=self._rng.choice(AIRCRAFT),
        )

    async def _unique_flight_number(self, airline_code: str) -> str:
        pending = {
            obj.flight_number for obj in self._db.new if isinstance(obj, Flight)
        }
        while True:
            candidate = f"{airline_code}{self._rng.randint(1000, 9999)}"
            if candidate in pending:
                continue
            taken = await self._db.scalar(
                select(exists().where(Flight.flight_number == candidate))
            )
            if not taken:
                return candidate
