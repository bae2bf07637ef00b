"""Account payloads: registration, login and the session they hand back."""

from __future__ import annotations

import uuid  # noqa: TC003

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from skybook_api.schemas.wallet import WalletResponse


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1, max_length=128)


class RegisterRequest(LoginRequest):
    """New account; the wallet is opened with the standard balance."""

    name: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=8, max_length=128)


class AccountResponse(BaseModel):
    id: uuid.UUID
    email: str
    name: str
    model_config = ConfigDict(from_attributes=True)


class AuthResponse(BaseModel):
    """Bearer token plus the account and wallet it unlocks."""

    token: str
    token_type: str = "bearer"
    expires_in: int
    user: AccountResponse
    wallet: WalletResponse
