"""Typed errors raised by the booking core.

Callers map each class to a user-facing message / status code; only
:class:`ConflictRetryError` is safe to retry automatically.
"""

from __future__ import annotations


class SkybookError(Exception):
    """Base class for every error the core raises on purpose."""

    code = "error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.__class__.__doc__ or self.code)
        self.message = str(self.args[0])


class ValidationError(SkybookError):
    """Malformed or missing input."""

    code = "validation_error"


class NotFoundError(SkybookError):
    """Referenced resource does not exist."""

    code = "not_found"


class UnauthorizedError(SkybookError):
    """Caller does not own the resource."""

    code = "unauthorized"


class InsufficientSeatsError(SkybookError):
    """Not enough seats left on the flight."""

    code = "insufficient_seats"


class InsufficientWalletBalanceError(SkybookError):
    """Insufficient wallet balance."""

    code = "insufficient_wallet_balance"


class AlreadyCancelledError(SkybookError):
    """Booking is already cancelled."""

    code = "already_cancelled"


class ConflictRetryError(SkybookError):
    """Transient concurrency conflict, retry the whole operation."""

    code = "conflict_retry"


class InternalError(SkybookError):
    """Unexpected internal failure."""

    code = "internal_error"
