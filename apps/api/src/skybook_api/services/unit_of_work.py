"""Explicit transactional boundary shared by the core services."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError, IntegrityError

from skybook_core.errors import ConflictRetryError, InternalError

if TYPE_CHECKING:
    from types import TracebackType

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

logger = logging.getLogger(__name__)

# lock_not_available, serialization_failure, deadlock_detected, unique_violation
_TRANSIENT_SQLSTATES = frozenset({"55P03", "40001", "40P01", "23505"})


def _sqlstate(exc: DBAPIError) -> str | None:
    orig = exc.orig
    for candidate in (orig, getattr(orig, "__cause__", None)):
        code = getattr(candidate, "sqlstate", None) or getattr(
            candidate, "pgcode", None
        )
        if code:
            return str(code)
    return None


def is_transient(exc: DBAPIError) -> bool:
    """True for lock contention / races that succeed when retried."""
    if _sqlstate(exc) in _TRANSIENT_SQLSTATES:
        return True
    message = str(exc.orig).lower()
    if "database is locked" in message:
        return True
    # SQLite reports unique races without a SQLSTATE.
    return isinstance(exc, IntegrityError) and "unique" in message


def translate_db_error(exc: DBAPIError) -> Exception:
    if is_transient(exc):
        return ConflictRetryError(f"Concurrent update conflict: {exc.orig}")
    return InternalError(f"Storage failure: {exc.orig}")


class UnitOfWork:
    """One session, one transaction: commit on success, roll back on error.

    Usage::

        async with UnitOfWork(session_factory) as uow:
            wallet = WalletService(uow.session)
            await wallet.debit(user_id, amount, "...")

    Domain errors raised inside the block propagate unchanged after the
    rollback; database errors are re-raised as ``ConflictRetryError`` or
    ``InternalError``.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        lock_timeout_ms: int | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._lock_timeout_ms = lock_timeout_ms
        self._session: AsyncSession | None = None

    @property
    def session(self) -> AsyncSession:
        if self._session is None:
            msg = "UnitOfWork used outside of 'async with'"
            raise RuntimeError(msg)
        return self._session

    async def __aenter__(self) -> UnitOfWork:
        self._session = self._session_factory()
        if self._lock_timeout_ms and self._dialect_name() == "postgresql":
            await self._session.execute(
                text(f"SET LOCAL lock_timeout = {int(self._lock_timeout_ms)}")
            )
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        session = self.session
        try:
            if exc is None:
                try:
                    await session.commit()
                except DBAPIError as err:
                    await session.rollback()
                    raise translate_db_error(err) from err
                return
            await session.rollback()
            if isinstance(exc, DBAPIError):
                logger.warning("Unit of work rolled back: %s", exc.orig)
                raise translate_db_error(exc) from exc
        finally:
            await session.close()
            self._session = None

    def _dialect_name(self) -> str:
        return self.session.get_bind().dialect.name
