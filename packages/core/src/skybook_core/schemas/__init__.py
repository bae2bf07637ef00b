"""Core schemas for Skybook."""

from .booking import Passenger
from .enums import BookingStatus, TransactionType
from .search import FlightSearchCriteria

__all__ = [
    "BookingStatus",
    "FlightSearchCriteria",
    "Passenger",
    "TransactionType",
]
