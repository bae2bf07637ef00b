"""SQLAlchemy ORM models for Skybook."""

from .base import Base, TimestampMixin, UUIDPrimaryKeyMixin
from .booking import Booking
from .flight import Flight
from .price_history import PriceHistory
from .user import User
from .wallet import Wallet, WalletTransaction

__all__ = [
    "Base",
    "Booking",
    "Flight",
    "PriceHistory",
    "TimestampMixin",
    "UUIDPrimaryKeyMixin",
    "User",
    "Wallet",
    "WalletTransaction",
]
