"""Pydantic-compatible enums shared by the ORM and the API (DB-independent)."""

from enum import StrEnum


class BookingStatus(StrEnum):
    """Booking lifecycle state. PENDING is reserved and never assigned."""

    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    PENDING = "pending"


class TransactionType(StrEnum):
    """Direction of a wallet ledger entry."""

    CREDIT = "credit"
    DEBIT = "debit"
