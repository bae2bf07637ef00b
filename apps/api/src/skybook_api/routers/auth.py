"""Account endpoints - register opens a wallet, login returns it."""

from __future__ import annotations

from typing import TYPE_CHECKING, Annotated

from fastapi import APIRouter, Depends

from skybook_api.config import settings
from skybook_api.dependencies import get_db
from skybook_api.schemas.auth import (
    AccountResponse,
    AuthResponse,
    LoginRequest,
    RegisterRequest,
)
from skybook_api.schemas.wallet import WalletResponse
from skybook_api.services.auth_service import AccountSession, AuthService

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(prefix="/auth", tags=["auth"])

DbDep = Annotated["AsyncSession", Depends(get_db)]


def _auth_response(account: AccountSession) -> AuthResponse:
    return AuthResponse(
        token=account.token,
        expires_in=settings.token_expire_hours * 3600,
        user=AccountResponse.model_validate(account.user),
        wallet=WalletResponse.model_validate(account.wallet),
    )


@router.post("/register", response_model=AuthResponse, status_code=201)
async def register(request: RegisterRequest, db: DbDep) -> AuthResponse:
    account = await AuthService(db).register(
        request.email, request.name, request.password
    )
    return _auth_response(account)


@router.post("/login", response_model=AuthResponse)
async def login(request: LoginRequest, db: DbDep) -> AuthResponse:
    account = await AuthService(db).login(request.email, request.password)
    return _auth_response(account)
