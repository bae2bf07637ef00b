"""Shared fixtures and helpers for the booking core tests."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from typing import TYPE_CHECKING

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import create_async_engine

from skybook_api.services.pricing_service import PricingPolicy
from skybook_api.services.unit_of_work import UnitOfWork
from skybook_api.services.wallet_service import WalletService
from skybook_db.database import create_schema, make_session_factory
from skybook_db.models import Flight, User, Wallet, WalletTransaction

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker


class FakeClock:
    """Settable clock injected wherever the code asks for 'now'."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


@pytest.fixture
async def engine(tmp_path):
    """Throwaway SQLite database with the full schema."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'skybook.db'}")
    await create_schema(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return make_session_factory(engine)


@pytest.fixture
async def session(session_factory):
    """Bare session for direct service tests; rolled back afterwards."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2026, 3, 2, 9, 0, tzinfo=UTC))


@pytest.fixture
def policy() -> PricingPolicy:
    return PricingPolicy()


@pytest.fixture
def make_user(session_factory):
    """Factory fixture: a committed user with an opened wallet."""

    async def _make(balance: Decimal | int = Decimal("50000")) -> User:
        async with UnitOfWork(session_factory) as uow:
            user = User(
                email=f"{uuid.uuid4().hex[:10]}@example.com",
                name="Test Traveller",
            )
            uow.session.add(user)
            await uow.session.flush()
            await WalletService(uow.session).open_wallet(user.id, Decimal(balance))
        return user

    return _make


@pytest.fixture
def make_flight(session_factory):
    """Factory fixture: a committed flight departing the day after the clock start."""

    async def _make(
        *,
        base_price: Decimal | int = Decimal("2500"),
        seats: int = 50,
        flight_number: str | None = None,
        departure: datetime | None = None,
        departure_city: str = "Mumbai",
        arrival_city: str = "Delhi",
    ) -> Flight:
        departure = departure or datetime(2026, 3, 3, 10, 0, tzinfo=UTC)
        flight = Flight(
            flight_number=flight_number or f"6E{uuid.uuid4().int % 9000 + 1000}",
            airline="IndiGo",
            departure_city=departure_city,
            departure_airport=f"{departure_city} Airport",
            departure_code=departure_city[:3].upper(),
            arrival_city=arrival_city,
            arrival_airport=f"{arrival_city} Airport",
            arrival_code=arrival_city[:3].upper(),
            departure_time=departure,
            arrival_time=departure + timedelta(minutes=125),
            duration_minutes=125,
            base_price=Decimal(base_price),
            current_price=Decimal(base_price),
            seats_available=seats,
            aircraft="Airbus A320",
        )
        async with UnitOfWork(session_factory) as uow:
            uow.session.add(flight)
        return flight

    return _make


@pytest.fixture
def read_state(session_factory):
    """Fresh-session snapshot of wallet balance, ledger size and flight seats."""

    async def _read(user: User, flight: Flight | None = None) -> dict:
        async with session_factory() as s:
            wallet = await s.scalar(select(Wallet).where(Wallet.user_id == user.id))
            ledger = (
                await s.execute(
                    select(WalletTransaction)
                    .where(WalletTransaction.wallet_id == wallet.id)
                    .order_by(WalletTransaction.id)
                )
            ).scalars().all()
            seats = None
            if flight is not None:
                seats = await s.scalar(
                    select(Flight.seats_available).where(Flight.id == flight.id)
                )
        return {
            "balance": Decimal(str(wallet.balance)),
            "ledger": [(t.type.value, Decimal(str(t.amount))) for t in ledger],
            "seats": seats,
        }

    return _read
