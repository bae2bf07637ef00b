"""Search-driven dynamic pricing."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert

from skybook_api.config import settings
from skybook_core.errors import NotFoundError
from skybook_db.models import Flight, PriceHistory
from skybook_db.models.base import as_utc

if TYPE_CHECKING:
    from collections.abc import Callable

    from sqlalchemy.ext.asyncio import AsyncSession

    from skybook_api.config import ApiSettings

logger = logging.getLogger(__name__)

_CENT = Decimal("0.01")

_UPSERT_BUILDERS = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}


@dataclass(frozen=True, slots=True)
class PricingPolicy:
    """Surge rules: close-together searches inflate the price; a long gap resets it."""

    surge_threshold: int = 3
    surge_window: timedelta = timedelta(minutes=5)
    reset_after: timedelta = timedelta(minutes=10)
    surge_multiplier: Decimal = Decimal("1.10")

    @classmethod
    def from_settings(cls, cfg: ApiSettings = settings) -> PricingPolicy:
        return cls(
            surge_threshold=cfg.surge_search_threshold,
            surge_window=timedelta(minutes=cfg.surge_window_minutes),
            reset_after=timedelta(minutes=cfg.price_reset_minutes),
            surge_multiplier=cfg.surge_multiplier,
        )

    def surged(self, base_price: Decimal) -> Decimal:
        return (base_price * self.surge_multiplier).quantize(
            _CENT, rounding=ROUND_HALF_UP
        )


def utc_now() -> datetime:
    return datetime.now(UTC)


class PricingService:
    """Computes the per-user price of a flight from that user's search rhythm.

    State lives in the ``price_history`` table, one row per (user, flight).
    Every call records the search, whichever branch decides the price.
    """

    def __init__(
        self,
        db: AsyncSession,
        policy: PricingPolicy | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._db = db
        self._policy = policy or PricingPolicy.from_settings()
        self._clock = clock

    async def price_for(self, flight_id: uuid.UUID, user_id: uuid.UUID) -> Decimal:
        """Return the price *user_id* pays for one seat on *flight_id* right now."""
        flight = await self._db.get(Flight, flight_id)
        if flight is None:
            msg = f"Flight not found: {flight_id}"
            raise NotFoundError(msg)

        now = self._clock()
        base_price = flight.base_price

        if await self._record_first_search(flight, user_id, now):
            logger.debug(
                "First search of %s by %s: base %s",
                flight.flight_number,
                user_id,
                base_price,
            )
            return base_price

        history = await self._locked_history(flight.id, user_id)
        elapsed = now - as_utc(history.last_search_at)

        if elapsed > self._policy.reset_after:
            history.search_count = 1
            history.last_search_at = now
            flight.current_price = base_price
            await self._db.flush()
            logger.debug(
                "Price window for %s/%s expired after %s, reset to base",
                flight.flight_number,
                user_id,
                elapsed,
            )
            return base_price

        history.search_count += 1
        history.last_search_at = now

        price = base_price
        if (
            history.search_count >= self._policy.surge_threshold
            and elapsed <= self._policy.surge_window
        ):
            price = self._policy.surged(base_price)
            history.increased_price = price
            flight.current_price = price
            logger.debug(
                "Surge on %s for %s: search #%d, %s -> %s",
                flight.flight_number,
                user_id,
                history.search_count,
                base_price,
                price,
            )

        await self._db.flush()
        return price

    async def _record_first_search(
        self, flight: Flight, user_id: uuid.UUID, now: datetime
    ) -> bool:
        """Create the history row if absent. Returns True when this call created it."""
        values = {
            "id": uuid.uuid4(),
            "user_id": user_id,
            "flight_id": flight.id,
            "search_count": 1,
            "last_search_at": now,
            "original_price": flight.base_price,
        }
        builder = _UPSERT_BUILDERS.get(self._db.get_bind().dialect.name)
        if builder is None:
            existing = await self._db.scalar(
                select(PriceHistory.id).where(
                    PriceHistory.user_id == user_id,
                    PriceHistory.flight_id == flight.id,
                )
            )
            if existing is not None:
                return False
            self._db.add(PriceHistory(**values))
            await self._db.flush()
            return True

        stmt = (
            builder(PriceHistory)
            .values(**values)
            .on_conflict_do_nothing(index_elements=["user_id", "flight_id"])
        )
        result = await self._db.execute(stmt)
        return result.rowcount == 1

    async def _locked_history(
        self, flight_id: uuid.UUID, user_id: uuid.UUID
    ) -> PriceHistory:
        result = await self._db.execute(
            select(PriceHistory)
            .where(
                PriceHistory.user_id == user_id,
                PriceHistory.flight_id == flight_id,
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one()
