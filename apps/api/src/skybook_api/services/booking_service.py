"""Booking orchestrator - bookings across inventory, wallet and pricing."""

from __future__ import annotations

import logging
import random
import string
import uuid
from dataclasses import dataclass
from decimal import ROUND_FLOOR, Decimal
from typing import TYPE_CHECKING

from sqlalchemy import case, exists, func, select, update
from sqlalchemy.orm import selectinload
from sqlalchemy.orm.attributes import set_committed_value

from skybook_api.config import settings
from skybook_api.services.flight_service import FlightService
from skybook_api.services.pricing_service import PricingPolicy, PricingService, utc_now
from skybook_api.services.unit_of_work import UnitOfWork
from skybook_api.services.wallet_service import WalletService
from skybook_core.errors import (
    AlreadyCancelledError,
    InsufficientSeatsError,
    InternalError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from skybook_core.schemas import BookingStatus, Passenger
from skybook_db.models import Booking, Flight

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence
    from datetime import datetime

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

logger = logging.getLogger(__name__)

PNR_ALPHABET = string.ascii_uppercase + string.digits
PNR_LENGTH = 6
SEAT_ROWS = 30
SEAT_LETTERS = "ABCDEF"
UNASSIGNED_SEAT = "Not assigned"


@dataclass(frozen=True, slots=True)
class BookingStats:
    total_bookings: int
    upcoming_bookings: int
    cancelled_bookings: int
    total_spent: Decimal


@dataclass(frozen=True, slots=True)
class TicketPassenger:
    name: str
    age: int
    gender: str
    seat: str


@dataclass(frozen=True, slots=True)
class Ticket:
    booking: Booking
    passengers: list[TicketPassenger]


def refund_for(total_amount: Decimal, ratio: Decimal) -> Decimal:
    """Whole-unit refund after the cancellation penalty."""
    return (total_amount * ratio).quantize(Decimal(1), rounding=ROUND_FLOOR)


class BookingService:
    """Entry point for every booking mutation and read.

    Each public method runs in its own :class:`UnitOfWork`: the booking row,
    the wallet debit/credit and the seat counter change commit together or
    not at all.  A :class:`ConflictRetryError` means the whole call may be
    repeated from the top.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        pricing_policy: PricingPolicy | None = None,
        clock: Callable[[], datetime] = utc_now,
        rng: random.Random | None = None,
        lock_timeout_ms: int | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._pricing_policy = pricing_policy or PricingPolicy.from_settings()
        self._clock = clock
        self._rng = rng or random.SystemRandom()
        self._lock_timeout_ms = (
            settings.lock_timeout_ms if lock_timeout_ms is None else lock_timeout_ms
        )

    def _unit_of_work(self) -> UnitOfWork:
        return UnitOfWork(self._session_factory, lock_timeout_ms=self._lock_timeout_ms)

    def _flights(self, db: AsyncSession) -> FlightService:
        pricing = PricingService(db, self._pricing_policy, clock=self._clock)
        return FlightService(db, pricing=pricing)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def create_booking(
        self,
        user_id: uuid.UUID,
        flight_ref: str | uuid.UUID,
        passengers: Sequence[Passenger | dict],
    ) -> Booking:
        """Book *passengers* on a flight, paying from the user's wallet."""
        travellers = self._validate_passengers(passengers)

        async with self._unit_of_work() as uow:
            db = uow.session
            pricing = PricingService(db, self._pricing_policy, clock=self._clock)
            flights = FlightService(db, pricing=pricing)
            flight = await flights.resolve(flight_ref)
            if flight is None:
                msg = f"Flight not found: {flight_ref}"
                raise NotFoundError(msg)

            count = len(travellers)
            if flight.seats_available < count:
                msg = f"Only {flight.seats_available} seats available on this flight"
                raise InsufficientSeatsError(msg)

            seat_price = await pricing.price_for(flight.id, user_id)
            total_amount = seat_price * count

            booking = Booking(
                user_id=user_id,
                flight=flight,
                booked_at=self._clock(),
                passengers=[p.model_dump() for p in travellers],
                seat_numbers=self._assign_seats(count),
                total_amount=total_amount,
                status=BookingStatus.CONFIRMED,
                pnr=await self._unique_pnr(db),
            )
            db.add(booking)
            await db.flush()

            await WalletService(db).debit(
                user_id,
                total_amount,
                f"Flight booking: {flight.flight_number} from "
                f"{flight.departure_city} to {flight.arrival_city}",
            )
            await flights.decrement_seats(flight.id, count)

        logger.info(
            "Booking %s created: user %s, flight %s, %d seat(s), %s",
            booking.pnr,
            user_id,
            flight.flight_number,
            count,
            total_amount,
        )
        return booking

    async def cancel_booking(
        self, booking_id: str | uuid.UUID, user_id: uuid.UUID
    ) -> Booking:
        """Cancel a confirmed booking: refund the wallet and release the seats."""
        async with self._unit_of_work() as uow:
            db = uow.session
            booking = await self._owned_booking(db, booking_id, user_id, lock=True)
            if booking.status == BookingStatus.CANCELLED:
                msg = f"Booking {booking.pnr} is already cancelled"
                raise AlreadyCancelledError(msg)

            now = self._clock()
            flipped = (
                await db.execute(
                    update(Booking)
                    .where(
                        Booking.id == booking.id,
                        Booking.status == BookingStatus.CONFIRMED,
                    )
                    .values(status=BookingStatus.CANCELLED, cancelled_at=now)
                    .returning(Booking.id)
                    .execution_options(synchronize_session=False)
                )
            ).scalar_one_or_none()
            if flipped is None:
                msg = f"Booking {booking.pnr} is already cancelled"
                raise AlreadyCancelledError(msg)
            set_committed_value(booking, "status", BookingStatus.CANCELLED)
            set_committed_value(booking, "cancelled_at", now)

            refund = refund_for(
                Decimal(booking.total_amount), settings.cancellation_refund_ratio
            )
            await self._flights(db).increment_seats(
                booking.flight_id, booking.passenger_count
            )
            if refund > 0:
                await WalletService(db).credit(
                    user_id,
                    refund,
                    f"Refund for cancelled booking: {booking.pnr}",
                )

        logger.info(
            "Booking %s cancelled by user %s, refunded %s",
            booking.pnr,
            user_id,
            refund,
        )
        return booking

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_user_bookings(
        self,
        user_id: uuid.UUID,
        page: int = 1,
        limit: int = 10,
    ) -> tuple[list[Booking], int]:
        """Fetch a page of the user's bookings, newest first."""
        if page < 1 or limit < 1:
            msg = "page and limit must be >= 1"
            raise ValidationError(msg)

        async with self._unit_of_work() as uow:
            db = uow.session
            total = await db.scalar(
                select(func.count())
                .select_from(Booking)
                .where(Booking.user_id == user_id)
            )
            result = await db.execute(
                select(Booking)
                .where(Booking.user_id == user_id)
                .options(selectinload(Booking.flight))
                .order_by(Booking.booked_at.desc(), Booking.pnr)
                .offset((page - 1) * limit)
                .limit(limit)
            )
            bookings = list(result.scalars().all())
        return bookings, total or 0

    async def get_booking_by_id(
        self, booking_id: str | uuid.UUID, user_id: uuid.UUID
    ) -> Booking:
        """Fetch one booking the user owns."""
        async with self._unit_of_work() as uow:
            return await self._owned_booking(uow.session, booking_id, user_id)

    async def get_ticket(
        self, booking_id: str | uuid.UUID, user_id: uuid.UUID
    ) -> Ticket:
        """Printable ticket data: the booking plus each passenger's seat."""
        booking = await self.get_booking_by_id(booking_id, user_id)
        seats = list(booking.seat_numbers or [])
        passengers = [
            TicketPassenger(
                name=p["name"],
                age=p["age"],
                gender=p["gender"],
                seat=seats[i] if i < len(seats) else UNASSIGNED_SEAT,
            )
            for i, p in enumerate(booking.passengers)
        ]
        return Ticket(booking=booking, passengers=passengers)

    async def get_user_booking_stats(self, user_id: uuid.UUID) -> BookingStats:
        """Totals across all of the user's bookings."""
        now = self._clock()
        upcoming = (Booking.status == BookingStatus.CONFIRMED) & (
            Flight.departure_time > now
        )
        cancelled = Booking.status == BookingStatus.CANCELLED

        async with self._unit_of_work() as uow:
            row = (
                await uow.session.execute(
                    select(
                        func.count(Booking.id).label("total"),
                        func.count(case((upcoming, 1))).label("upcoming"),
                        func.count(case((cancelled, 1))).label("cancelled"),
                        func.coalesce(func.sum(Booking.total_amount), 0).label(
                            "spent"
                        ),
                    )
                    .select_from(Booking)
                    .join(Flight, Flight.id == Booking.flight_id)
                    .where(Booking.user_id == user_id)
                )
            ).one()

        return BookingStats(
            total_bookings=row.total,
            upcoming_bookings=row.upcoming,
            cancelled_bookings=row.cancelled,
            total_spent=Decimal(str(row.spent)),
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _validate_passengers(passengers: Sequence[Passenger | dict]) -> list[Passenger]:
        if not passengers:
            msg = "At least one passenger is required"
            raise ValidationError(msg)
        if len(passengers) > settings.max_passengers_per_booking:
            msg = (
                f"At most {settings.max_passengers_per_booking} passengers "
                "per booking"
            )
            raise ValidationError(msg)
        try:
            return [
                p if isinstance(p, Passenger) else Passenger.model_validate(p)
                for p in passengers
            ]
        except ValueError as exc:
            raise ValidationError(f"Invalid passenger: {exc}") from exc

    async def _owned_booking(
        self,
        db: AsyncSession,
        booking_id: str | uuid.UUID,
        user_id: uuid.UUID,
        *,
        lock: bool = False,
    ) -> Booking:
        try:
            key = (
                booking_id
                if isinstance(booking_id, uuid.UUID)
                else uuid.UUID(booking_id)
            )
        except ValueError as exc:
            msg = f"Booking not found: {booking_id}"
            raise NotFoundError(msg) from exc

        stmt = (
            select(Booking)
            .where(Booking.id == key)
            .options(selectinload(Booking.flight))
            .execution_options(populate_existing=True)
        )
        if lock:
            stmt = stmt.with_for_update(of=Booking)
        booking = (await db.execute(stmt)).scalar_one_or_none()
        if booking is None:
            msg = f"Booking not found: {booking_id}"
            raise NotFoundError(msg)
        if booking.user_id != user_id:
            logger.warning(
                "User %s denied access to booking %s", user_id, booking.pnr
            )
            msg = "Not authorized to access this booking"
            raise UnauthorizedError(msg)
        return booking

    def _assign_seats(self, count: int) -> list[str]:
        capacity = SEAT_ROWS * len(SEAT_LETTERS)
        if count > capacity:
            msg = f"Cannot assign {count} seats"
            raise ValidationError(msg)
        seats: list[str] = []
        while len(seats) < count:
            seat = f"{self._rng.randint(1, SEAT_ROWS)}{self._rng.choice(SEAT_LETTERS)}"
            if seat not in seats:
                seats.append(seat)
        return seats

    async def _unique_pnr(self, db: AsyncSession) -> str:
        # The unique index still catches a concurrent duplicate; the unit of
        # work reports it as a ConflictRetryError.
        for _ in range(10):
            pnr = "".join(self._rng.choice(PNR_ALPHABET) for _ in range(PNR_LENGTH))
            if not await db.scalar(select(exists().where(Booking.pnr == pnr))):
                return pnr
        msg = "Could not allocate a booking reference"
        raise InternalError(msg)

