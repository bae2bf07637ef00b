"""Booking endpoints - create, list, inspect, ticket, cancel, stats."""

from __future__ import annotations

from typing import Annotated
from uuid import UUID  # noqa: TC003

from fastapi import APIRouter, Depends, Query

from skybook_api.dependencies import get_booking_service, require_user_id
from skybook_api.retry import retry_on_conflict
from skybook_api.schemas.bookings import (
    BookingEnvelope,
    BookingListResponse,
    BookingResponse,
    BookingStatsEnvelope,
    BookingStatsResponse,
    CreateBookingRequest,
    TicketEnvelope,
    TicketPassengerResponse,
    TicketResponse,
)
from skybook_api.schemas.common import PageMeta
from skybook_api.services.booking_service import BookingService, Ticket

router = APIRouter(prefix="/bookings", tags=["bookings"])

BookingDep = Annotated[BookingService, Depends(get_booking_service)]
UserId = Annotated[UUID, Depends(require_user_id)]


def _ticket_response(ticket: Ticket) -> TicketResponse:
    booking, flight = ticket.booking, ticket.booking.flight
    return TicketResponse(
        booking_reference=booking.pnr,
        status=booking.status,
        airline=flight.airline,
        flight_number=flight.flight_number,
        departure_city=flight.departure_city,
        departure_airport=flight.departure_airport,
        departure_code=flight.departure_code,
        arrival_city=flight.arrival_city,
        arrival_airport=flight.arrival_airport,
        arrival_code=flight.arrival_code,
        departure_time=flight.departure_time,
        arrival_time=flight.arrival_time,
        duration_minutes=flight.duration_minutes,
        aircraft=flight.aircraft,
        booking_date=booking.booked_at,
        total_amount=booking.total_amount,
        passengers=[
            TicketPassengerResponse.model_validate(p) for p in ticket.passengers
        ],
    )


@router.post("", response_model=BookingEnvelope, status_code=201)
async def create_booking(
    request: CreateBookingRequest,
    user_id: UserId,
    service: BookingDep,
) -> BookingEnvelope:
    """Book seats on a flight, paid from the caller's wallet."""
    booking = await retry_on_conflict(
        service.create_booking, user_id, request.flight_id, request.passengers
    )
    return BookingEnvelope(booking=BookingResponse.model_validate(booking))


@router.get("", response_model=BookingListResponse)
async def list_bookings(
    user_id: UserId,
    service: BookingDep,
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=100)] = 10,
) -> BookingListResponse:
    """Return the caller's bookings, newest first."""
    bookings, total = await service.get_user_bookings(user_id, page, limit)
    return BookingListResponse(
        bookings=[BookingResponse.model_validate(b) for b in bookings],
        total=total,
        page=page,
        pages=PageMeta.pages_for(total, limit),
    )


@router.get("/stats", response_model=BookingStatsEnvelope)
async def booking_stats(user_id: UserId, service: BookingDep) -> BookingStatsEnvelope:
    """Return booking counts and total spend for the caller."""
    stats = await service.get_user_booking_stats(user_id)
    return BookingStatsEnvelope(stats=BookingStatsResponse.model_validate(stats))


@router.get("/{booking_id}", response_model=BookingEnvelope)
async def get_booking(
    booking_id: str,
    user_id: UserId,
    service: BookingDep,
) -> BookingEnvelope:
    """Return one of the caller's bookings."""
    booking = await service.get_booking_by_id(booking_id, user_id)
    return BookingEnvelope(booking=BookingResponse.model_validate(booking))


@router.get("/{booking_id}/ticket", response_model=TicketEnvelope)
async def get_ticket(
    booking_id: str,
    user_id: UserId,
    service: BookingDep,
) -> TicketEnvelope:
    """Return the data needed to print a ticket."""
    ticket = await service.get_ticket(booking_id, user_id)
    return TicketEnvelope(ticket=_ticket_response(ticket))


@router.post("/{booking_id}/cancel", response_model=BookingEnvelope)
async def cancel_booking(
    booking_id: str,
    user_id: UserId,
    service: BookingDep,
) -> BookingEnvelope:
    """Cancel a booking and refund the wallet minus the cancellation fee."""
    booking = await retry_on_conflict(service.cancel_booking, booking_id, user_id)
    return BookingEnvelope(booking=BookingResponse.model_validate(booking))
