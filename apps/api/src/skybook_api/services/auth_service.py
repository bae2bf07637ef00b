"""Accounts - a user, their wallet and the bearer token that identifies them."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

import bcrypt
import jwt
from fastapi import HTTPException, status
from sqlalchemy import select

from skybook_api.config import settings
from skybook_api.services.wallet_service import WalletService
from skybook_core.errors import NotFoundError
from skybook_db.models import User, Wallet

if TYPE_CHECKING:
    from uuid import UUID

    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class AccountSession:
    user: User
    wallet: Wallet
    token: str


def issue_token(user_id: UUID) -> str:
    """Signed bearer token whose subject is the user id."""
    expires = datetime.now(UTC) + timedelta(hours=settings.token_expire_hours)
    return jwt.encode(
        {"sub": str(user_id), "exp": expires},
        settings.jwt_secret,
        algorithm=settings.jwt_algorithm,
    )


class AuthService:
    """Opens accounts and signs users in."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db
        self.wallets = WalletService(db)

    async def register(self, email: str, name: str, password: str) -> AccountSession:
        """Create the user and open their wallet in the caller's transaction."""
        if await self._find(email) is not None:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Email already registered",
            )

        hashed = bcrypt.hashpw(password.encode(), bcrypt.gensalt()).decode()
        user = User(email=email, name=name, password_hash=hashed)
        self.db.add(user)
        await self.db.flush()
        wallet = await self.wallets.open_wallet(user.id)
        logger.info("Registered user %s", user.id)
        return AccountSession(user=user, wallet=wallet, token=issue_token(user.id))

    async def login(self, email: str, password: str) -> AccountSession:
        user = await self._find(email)
        if user is None or not user.password_hash or not bcrypt.checkpw(
            password.encode(), user.password_hash.encode()
        ):
            logger.warning("Failed login for %s", email)
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid email or password",
            )

        wallet = await self.wallets.get_wallet(user.id)
        if wallet is None:
            msg = f"Wallet not found for user {user.id}"
            raise NotFoundError(msg)
        return AccountSession(user=user, wallet=wallet, token=issue_token(user.id))

    async def _find(self, email: str) -> User | None:
        return await self.db.scalar(select(User).where(User.email == email))
