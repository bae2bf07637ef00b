"""Re-run a unit of work that lost a lock race."""

from __future__ import annotations

import asyncio
import logging
import random
from typing import TYPE_CHECKING, TypeVar

from skybook_api.config import settings
from skybook_core.errors import ConflictRetryError

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

T = TypeVar("T")

logger = logging.getLogger(__name__)

BASE_DELAY = 0.05
MAX_DELAY = 1.0


def conflict_backoff(attempt: int) -> float:
    """Jittered exponential delay before retry number *attempt* (0-based)."""
    return min(BASE_DELAY * (2**attempt), MAX_DELAY) * (0.5 + random.random())


async def retry_on_conflict(
    operation: Callable[..., Awaitable[T]],
    *args: object,
    max_retries: int | None = None,
    **kwargs: object,
) -> T:
    """Await ``operation(*args, **kwargs)``, repeating it on ConflictRetryError.

    Every attempt starts from the top, so *operation* must open its own
    :class:`UnitOfWork`. Domain errors and the final conflict propagate.
    """
    retries = settings.conflict_max_retries if max_retries is None else max_retries
    name = getattr(operation, "__qualname__", repr(operation))
    attempt = 0
    while True:
        try:
            return await operation(*args, **kwargs)
        except ConflictRetryError as exc:
            if attempt >= retries:
                logger.warning(
                    "%s still conflicting after %d attempt(s): %s",
                    name,
                    attempt + 1,
                    exc,
                )
                raise
            delay = conflict_backoff(attempt)
            attempt += 1
            logger.warning(
                "Conflict in %s, retry %d/%d in %.2fs", name, attempt, retries, delay
            )
            await asyncio.sleep(delay)
