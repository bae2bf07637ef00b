"""Search-driven pricing: surge, reset and per-user isolation."""

from __future__ import annotations

import asyncio
from decimal import Decimal

import pytest
from sqlalchemy import select

from skybook_api.retry import retry_on_conflict
from skybook_api.services.pricing_service import PricingPolicy, PricingService
from skybook_api.services.unit_of_work import UnitOfWork
from skybook_core.errors import NotFoundError
from skybook_db.models import Flight, PriceHistory


async def _history(session, user, flight) -> PriceHistory:
    return await session.scalar(
        select(PriceHistory)
        .where(PriceHistory.user_id == user.id, PriceHistory.flight_id == flight.id)
        .execution_options(populate_existing=True)
    )


async def test_first_search_returns_base_price(session, make_user, make_flight, clock):
    user = await make_user()
    flight = await make_flight(base_price=2000)
    pricing = PricingService(session, PricingPolicy(), clock=clock)

    assert await pricing.price_for(flight.id, user.id) == Decimal("2000")

    history = await _history(session, user, flight)
    assert history.search_count == 1
    assert history.original_price == Decimal("2000")
    assert history.increased_price is None


async def test_third_search_within_window_surges(
    session, make_user, make_flight, clock
):
    user = await make_user()
    flight = await make_flight(base_price=2000)
    pricing = PricingService(session, PricingPolicy(), clock=clock)

    first = await pricing.price_for(flight.id, user.id)
    clock.advance(minutes=1)
    second = await pricing.price_for(flight.id, user.id)
    clock.advance(minutes=1)
    third = await pricing.price_for(flight.id, user.id)

    assert (first, second, third) == (
        Decimal("2000"),
        Decimal("2000"),
        Decimal("2200"),
    )
    stored = await session.get(Flight, flight.id)
    assert stored.current_price == Decimal("2200")
    history = await _history(session, user, flight)
    assert history.search_count == 3
    assert history.increased_price == Decimal("2200")


async def test_long_gap_resets_counter_and_price(
    session, make_user, make_flight, clock
):
    user = await make_user()
    flight = await make_flight(base_price=2000)
    pricing = PricingService(session, PricingPolicy(), clock=clock)

    await pricing.price_for(flight.id, user.id)
    clock.advance(minutes=1)
    await pricing.price_for(flight.id, user.id)
    clock.advance(minutes=11)
    price = await pricing.price_for(flight.id, user.id)

    assert price == Decimal("2000")
    history = await _history(session, user, flight)
    assert history.search_count == 1
    stored = await session.get(Flight, flight.id)
    assert stored.current_price == Decimal("2000")


async def test_price_sequence_is_deterministic(session, make_user, make_flight, clock):
    user = await make_user()
    flight = await make_flight(base_price=2000)
    pricing = PricingService(session, PricingPolicy(), clock=clock)

    # (minutes since previous search, expected price)
    steps = [
        (0, "2000"),   # first search
        (1, "2000"),   # count 2
        (1, "2200"),   # count 3, surge
        (1, "2200"),   # count 4, still surging
        (6, "2000"),   # count 5 but gap > surge window
        (1, "2200"),   # count 6, back inside the window
        (15, "2000"),  # gap > reset window, counter back to 1
        (2, "2000"),   # count 2
    ]
    observed = []
    for gap, _ in steps:
        clock.advance(minutes=gap)
        observed.append(await pricing.price_for(flight.id, user.id))

    assert observed == [Decimal(expected) for _, expected in steps]


async def test_surge_is_tracked_per_user(session, make_user, make_flight, clock):
    alice = await make_user()
    bob = await make_user()
    flight = await make_flight(base_price=2000)
    pricing = PricingService(session, PricingPolicy(), clock=clock)

    for _ in range(3):
        await pricing.price_for(flight.id, alice.id)
        clock.advance(seconds=30)

    assert await pricing.price_for(flight.id, bob.id) == Decimal("2000")


async def test_custom_policy(session, make_user, make_flight, clock):
    user = await make_user()
    flight = await make_flight(base_price=1000)
    policy = PricingPolicy(surge_threshold=2, surge_multiplier=Decimal("1.25"))
    pricing = PricingService(session, policy, clock=clock)

    await pricing.price_for(flight.id, user.id)
    clock.advance(minutes=1)
    assert await pricing.price_for(flight.id, user.id) == Decimal("1250")


def test_surged_price_rounds_to_cents():
    assert PricingPolicy().surged(Decimal("2499.99")) == Decimal("2749.99")
    assert PricingPolicy().surged(Decimal("0.05")) == Decimal("0.06")


async def test_unknown_flight_raises(session, make_user, clock):
    import uuid

    user = await make_user()
    pricing = PricingService(session, PricingPolicy(), clock=clock)
    with pytest.raises(NotFoundError):
        await pricing.price_for(uuid.uuid4(), user.id)


@pytest.mark.timeout(60)
async def test_concurrent_first_searches_share_one_history_row(
    session_factory, make_user, make_flight, clock
):
    user = await make_user()
    flight = await make_flight(base_price=2000)

    async def _search() -> Decimal:
        async with UnitOfWork(session_factory) as uow:
            pricing = PricingService(uow.session, PricingPolicy(), clock=clock)
            return await pricing.price_for(flight.id, user.id)

    prices = await asyncio.gather(
        *(retry_on_conflict(_search, max_retries=20) for _ in range(5))
    )

    assert sorted(prices) == [Decimal("2000")] * 2 + [Decimal("2200")] * 3
    async with session_factory() as s:
        rows = (
            await s.execute(
                select(PriceHistory).where(
                    PriceHistory.user_id == user.id,
                    PriceHistory.flight_id == flight.id,
                )
            )
        ).scalars().all()
    assert len(rows) == 1
    assert rows[0].search_count == 5
    assert rows[0].increased_price == Decimal("2200")
