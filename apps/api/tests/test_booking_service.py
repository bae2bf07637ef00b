"""Booking orchestrator: all-or-nothing create / cancel and read paths."""

from __future__ import annotations

import asyncio
import random
import uuid
from datetime import UTC, datetime
from decimal import Decimal

import pytest
from sqlalchemy import func, select, update

from skybook_api.retry import retry_on_conflict
from skybook_api.schemas.bookings import BookingResponse
from skybook_api.services.booking_service import (
    PNR_ALPHABET,
    UNASSIGNED_SEAT,
    BookingService,
    refund_for,
)
from skybook_api.services.flight_service import FlightService
from skybook_api.services.pricing_service import PricingPolicy, PricingService
from skybook_core.errors import (
    AlreadyCancelledError,
    InsufficientSeatsError,
    InsufficientWalletBalanceError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from skybook_core.schemas import BookingStatus, Passenger
from skybook_db.models import Booking, Flight, PriceHistory


def passengers(n: int) -> list[dict]:
    return [{"name": f"Traveller {i}", "age": 30 + i, "gender": "F"} for i in range(n)]


@pytest.fixture
def service(session_factory, clock) -> BookingService:
    return BookingService(
        session_factory, PricingPolicy(), clock=clock, rng=random.Random(7)
    )


async def _count(session_factory, model) -> int:
    async with session_factory() as s:
        return await s.scalar(select(func.count()).select_from(model))


async def test_booking_debits_wallet_and_takes_seats(
    service, make_user, make_flight, read_state
):
    user = await make_user(balance=50000)
    flight = await make_flight(base_price=2500, seats=50)

    booking = await service.create_booking(user.id, flight.id, passengers(2))

    assert booking.total_amount == Decimal("5000")
    assert booking.status == BookingStatus.CONFIRMED
    assert len(booking.pnr) == 6
    assert set(booking.pnr) <= set(PNR_ALPHABET)
    assert len(booking.seat_numbers) == len(set(booking.seat_numbers)) == 2
    assert booking.flight.seats_available == 48

    state = await read_state(user, flight)
    assert state["balance"] == Decimal("45000")
    assert state["seats"] == 48
    assert state["ledger"][-1] == ("debit", Decimal("5000"))


async def test_booking_by_flight_number(service, make_user, make_flight):
    user = await make_user()
    await make_flight(flight_number="flight_1")

    booking = await service.create_booking(user.id, "flight_1", passengers(1))

    assert booking.flight.flight_number == "flight_1"


async def test_cancel_refunds_ninety_percent_and_restores_seats(
    service, make_user, make_flight, read_state, session_factory
):
    user = await make_user(balance=50000)
    flight = await make_flight(base_price=2500, seats=50)
    before = await read_state(user, flight)
    booking = await service.create_booking(user.id, flight.id, passengers(2))

    cancelled = await service.cancel_booking(booking.id, user.id)

    assert cancelled.status == BookingStatus.CANCELLED
    assert cancelled.cancelled_at is not None
    state = await read_state(user, flight)
    assert state["seats"] == before["seats"]
    assert state["balance"] == Decimal("49500")
    assert state["ledger"][-1] == ("credit", Decimal("4500"))

    async with session_factory() as s:
        stored = await s.get(Booking, booking.id)
        assert stored.status == BookingStatus.CANCELLED


def test_refund_is_floored():
    assert refund_for(Decimal("5000"), Decimal("0.90")) == Decimal("4500")
    assert refund_for(Decimal("3333.33"), Decimal("0.90")) == Decimal("2999")


async def test_not_enough_seats(
    service, make_user, make_flight, read_state, session_factory
):
    user = await make_user()
    flight = await make_flight(seats=2)
    before = await read_state(user, flight)

    with pytest.raises(InsufficientSeatsError):
        await service.create_booking(user.id, flight.id, passengers(3))

    assert await read_state(user, flight) == before
    assert await _count(session_factory, Booking) == 0


async def test_insufficient_balance_rolls_everything_back(
    service, make_user, make_flight, read_state, session_factory
):
    user = await make_user(balance=1000)
    flight = await make_flight(base_price=2500, seats=50)
    before = await read_state(user, flight)

    with pytest.raises(InsufficientWalletBalanceError):
        await service.create_booking(user.id, flight.id, passengers(1))

    assert await read_state(user, flight) == before
    assert await _count(session_factory, Booking) == 0
    assert await _count(session_factory, PriceHistory) == 0


async def test_failure_after_debit_leaves_no_trace(
    service, make_user, make_flight, read_state, session_factory, monkeypatch
):
    user = await make_user()
    flight = await make_flight(seats=10)
    before = await read_state(user, flight)

    async def broken_decrement(self, flight_id, count):
        raise RuntimeError("storage went away")

    monkeypatch.setattr(FlightService, "decrement_seats", broken_decrement)

    with pytest.raises(RuntimeError, match="storage went away"):
        await service.create_booking(user.id, flight.id, passengers(2))

    assert await read_state(user, flight) == before
    assert await _count(session_factory, Booking) == 0


@pytest.mark.parametrize("travellers", [[], passengers(10)])
async def test_passenger_count_is_validated(
    service, make_user, make_flight, travellers
):
    user = await make_user()
    flight = await make_flight()
    with pytest.raises(ValidationError):
        await service.create_booking(user.id, flight.id, travellers)


async def test_malformed_passenger(service, make_user, make_flight):
    user = await make_user()
    flight = await make_flight()
    with pytest.raises(ValidationError):
        await service.create_booking(
            user.id, flight.id, [{"name": " ", "age": 20, "gender": "M"}]
        )


async def test_unknown_flight(service, make_user):
    user = await make_user()
    with pytest.raises(NotFoundError):
        await service.create_booking(user.id, "XX9999", passengers(1))


async def test_booking_locks_in_surged_price(
    service, make_user, make_flight, clock, session_factory
):
    user = await make_user()
    flight = await make_flight(base_price=2000)
    for _ in range(2):
        async with session_factory() as s:
            pricing = PricingService(s, PricingPolicy(), clock=clock)
            await FlightService(s, pricing=pricing).get_flight(flight.id, user.id)
            await s.commit()
        clock.advance(minutes=1)

    booking = await service.create_booking(
        user.id, flight.id, [Passenger(name="Asha", age=41, gender="F")]
    )

    assert booking.total_amount == Decimal("2200")


async def test_cancel_twice_refunds_once(service, make_user, make_flight, read_state):
    user = await make_user()
    flight = await make_flight(base_price=2500)
    booking = await service.create_booking(user.id, flight.id, passengers(1))
    await service.cancel_booking(booking.id, user.id)
    after_first = await read_state(user, flight)

    with pytest.raises(AlreadyCancelledError):
        await service.cancel_booking(booking.id, user.id)

    assert await read_state(user, flight) == after_first


async def test_other_users_cannot_touch_booking(service, make_user, make_flight):
    owner = await make_user()
    stranger = await make_user()
    flight = await make_flight()
    booking = await service.create_booking(owner.id, flight.id, passengers(1))

    with pytest.raises(UnauthorizedError):
        await service.get_booking_by_id(booking.id, stranger.id)
    with pytest.raises(UnauthorizedError):
        await service.cancel_booking(booking.id, stranger.id)
    with pytest.raises(UnauthorizedError):
        await service.get_ticket(booking.id, stranger.id)

    assert (await service.get_booking_by_id(booking.id, owner.id)).status == (
        BookingStatus.CONFIRMED
    )


@pytest.mark.parametrize("ref", [uuid.uuid4(), "not-a-uuid"])
async def test_missing_booking(service, make_user, ref):
    user = await make_user()
    with pytest.raises(NotFoundError):
        await service.get_booking_by_id(ref, user.id)
    with pytest.raises(NotFoundError):
        await service.cancel_booking(ref, user.id)


async def test_get_booking_is_idempotent(service, make_user, make_flight):
    user = await make_user()
    flight = await make_flight()
    booking = await service.create_booking(user.id, flight.id, passengers(2))

    first = await service.get_booking_by_id(str(booking.id), user.id)
    second = await service.get_booking_by_id(str(booking.id), user.id)

    assert (
        BookingResponse.model_validate(first).model_dump()
        == BookingResponse.model_validate(second).model_dump()
    )


async def test_bookings_listed_newest_first(service, make_user, make_flight, clock):
    user = await make_user()
    flight = await make_flight()
    created = []
    for _ in range(3):
        booking = await service.create_booking(user.id, flight.id, passengers(1))
        created.append(booking)
        clock.advance(hours=1)

    page1, total = await service.get_user_bookings(user.id, page=1, limit=2)
    page2, _ = await service.get_user_bookings(user.id, page=2, limit=2)

    assert total == 3
    assert [b.pnr for b in page1 + page2] == [b.pnr for b in reversed(created)]
    assert page1[0].flight.flight_number == flight.flight_number


async def test_booking_stats(service, make_user, make_flight, clock):
    user = await make_user()
    upcoming = await make_flight(base_price=2000)
    past = await make_flight(
        base_price=3000, departure=datetime(2026, 3, 1, 8, 0, tzinfo=UTC)
    )
    await service.create_booking(user.id, upcoming.id, passengers(1))
    kept = await service.create_booking(user.id, past.id, passengers(1))
    dropped = await service.create_booking(user.id, upcoming.id, passengers(2))
    await service.cancel_booking(dropped.id, user.id)

    stats = await service.get_user_booking_stats(user.id)

    assert kept.status == BookingStatus.CONFIRMED
    assert stats.total_bookings == 3
    assert stats.upcoming_bookings == 1
    assert stats.cancelled_bookings == 1
    assert stats.total_spent == Decimal("9000")


async def test_ticket_pairs_passengers_with_seats(
    service, make_user, make_flight, session_factory
):
    user = await make_user()
    flight = await make_flight()
    booking = await service.create_booking(user.id, flight.id, passengers(2))

    ticket = await service.get_ticket(booking.id, user.id)
    assert [p.seat for p in ticket.passengers] == booking.seat_numbers
    assert ticket.booking.flight.flight_number == flight.flight_number

    async with session_factory() as s:
        await s.execute(
            update(Booking)
            .where(Booking.id == booking.id)
            .values(seat_numbers=booking.seat_numbers[:1])
        )
        await s.commit()

    ticket = await service.get_ticket(booking.id, user.id)
    assert ticket.passengers[1].seat == UNASSIGNED_SEAT


@pytest.mark.timeout(60)
async def test_concurrent_bookings_never_oversell(
    service, make_user, make_flight, session_factory
):
    flight = await make_flight(seats=3)
    users = [await make_user() for _ in range(3)]

    results = await asyncio.gather(
        *(
            retry_on_conflict(
                service.create_booking,
                u.id,
                flight.id,
                passengers(2),
                max_retries=20,
            )
            for u in users
        ),
        return_exceptions=True,
    )

    booked = [r for r in results if isinstance(r, Booking)]
    refused = [r for r in results if isinstance(r, InsufficientSeatsError)]
    assert (len(booked), len(refused)) == (1, 2), results

    async with session_factory() as s:
        seats = await s.scalar(
            select(Flight.seats_available).where(Flight.id == flight.id)
        )
    assert seats == 1
