"""Flight search and lookup endpoints."""

from __future__ import annotations

from datetime import date  # noqa: TC003
from typing import TYPE_CHECKING, Annotated
from uuid import UUID  # noqa: TC003

from fastapi import APIRouter, Depends, Query

from skybook_api.config import settings
from skybook_api.dependencies import get_session_factory, require_user_id
from skybook_api.retry import retry_on_conflict
from skybook_api.schemas.flights import (
    FlightDetailResponse,
    FlightResponse,
    FlightSearchResponse,
)
from skybook_api.services.flight_service import FlightService
from skybook_api.services.unit_of_work import UnitOfWork
from skybook_core.errors import NotFoundError
from skybook_core.schemas import FlightSearchCriteria

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

router = APIRouter(prefix="/flights", tags=["flights"])

SessionFactoryDep = Annotated[
    "async_sessionmaker[AsyncSession]", Depends(get_session_factory)
]
UserId = Annotated[UUID, Depends(require_user_id)]


async def _search(
    session_factory: async_sessionmaker[AsyncSession],
    criteria: FlightSearchCriteria,
    user_id: UUID,
) -> FlightSearchResponse:
    async with UnitOfWork(
        session_factory, lock_timeout_ms=settings.lock_timeout_ms
    ) as uow:
        flights = await FlightService(uow.session).search(criteria, user_id)
        return FlightSearchResponse(
            flights=[FlightResponse.model_validate(f) for f in flights]
        )


@router.get("/search", response_model=FlightSearchResponse)
async def search_flights(
    user_id: UserId,
    session_factory: SessionFactoryDep,
    departure_city: Annotated[str | None, Query(alias="departureCity")] = None,
    arrival_city: Annotated[str | None, Query(alias="arrivalCity")] = None,
    departure_date: Annotated[date | None, Query(alias="departureDate")] = None,
    passengers: Annotated[int | None, Query(ge=1, le=9)] = None,
) -> FlightSearchResponse:
    """Search flights; prices reflect the caller's recent searches."""
    criteria = FlightSearchCriteria(
        departure_city=departure_city,
        arrival_city=arrival_city,
        departure_date=departure_date,
        passengers=passengers,
    )
    return await retry_on_conflict(_search, session_factory, criteria, user_id)


@router.get("/{flight_ref}", response_model=FlightDetailResponse)
async def get_flight(
    flight_ref: str,
    user_id: UserId,
    session_factory: SessionFactoryDep,
) -> FlightDetailResponse:
    """Look a flight up by id or flight number."""
    async with UnitOfWork(
        session_factory, lock_timeout_ms=settings.lock_timeout_ms
    ) as uow:
        flight = await FlightService(uow.session).get_flight(flight_ref, user_id)
        if flight is None:
            msg = f"Flight not found: {flight_ref}"
            raise NotFoundError(msg)
        return FlightDetailResponse(flight=FlightResponse.model_validate(flight))
