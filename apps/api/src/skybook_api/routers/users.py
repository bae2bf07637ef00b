"""User profile endpoints."""

from __future__ import annotations

from typing import TYPE_CHECKING, Annotated
from uuid import UUID  # noqa: TC003

from fastapi import APIRouter, Depends

from skybook_api.dependencies import get_db, require_user_id
from skybook_api.schemas.users import UserResponse
from skybook_api.services.user_service import UserService
from skybook_core.errors import NotFoundError

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(prefix="/users", tags=["users"])

DbDep = Annotated["AsyncSession", Depends(get_db)]
UserId = Annotated[UUID, Depends(require_user_id)]


@router.get("/me", response_model=UserResponse)
async def get_me(user_id: UserId, db: DbDep) -> UserResponse:
    """Return the authenticated user's profile."""
    user = await UserService(db).get_user_by_id(user_id)
    if user is None:
        msg = "User not found"
        raise NotFoundError(msg)
    return UserResponse.model_validate(user)
