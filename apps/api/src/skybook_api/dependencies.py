"""FastAPI dependency injection providers."""

from __future__ import annotations

from typing import TYPE_CHECKING, Annotated
from uuid import UUID

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from skybook_api.config import settings
from skybook_api.services.booking_service import BookingService
from skybook_db.database import async_session_factory
from skybook_db.database import get_db as _db_dependency

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

# Re-export the DB dependency unchanged.
get_db = _db_dependency

_bearer_scheme = HTTPBearer(auto_error=False)


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Session factory for services that manage their own unit of work."""
    return async_session_factory


SessionFactoryDep = Annotated[
    "async_sessionmaker[AsyncSession]", Depends(get_session_factory)
]


def get_booking_service(session_factory: SessionFactoryDep) -> BookingService:
    return BookingService(session_factory)


async def get_current_user(
    credentials: Annotated[
        HTTPAuthorizationCredentials | None, Depends(_bearer_scheme)
    ],
) -> dict | None:
    """Decode a JWT and return its payload, or *None* if unauthenticated."""
    if credentials is None:
        return None
    try:
        payload = jwt.decode(
            credentials.credentials,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
        )
    except jwt.PyJWTError:
        return None
    return payload


async def require_current_user(
    user: Annotated[dict | None, Depends(get_current_user)],
) -> dict:
    """Same as :func:`get_current_user` but raises 401 when absent."""
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
        )
    return user


def user_id_from_token(user: dict | None) -> UUID | None:
    """Extract the user UUID from a decoded JWT payload."""
    if user is None:
        return None
    raw = user.get("sub") or user.get("user_id")
    if raw is None:
        return None
    try:
        return UUID(str(raw))
    except ValueError:
        return None


async def require_user_id(
    user: Annotated[dict, Depends(require_current_user)],
) -> UUID:
    """Authenticated caller's id; 401 when the token carries none."""
    uid = user_id_from_token(user)
    if uid is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token subject",
        )
    return uid
