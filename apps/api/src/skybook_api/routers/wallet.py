"""Wallet endpoints - balance, ledger, summary."""

from __future__ import annotations

from typing import TYPE_CHECKING, Annotated
from uuid import UUID  # noqa: TC003

from fastapi import APIRouter, Depends, Query

from skybook_api.dependencies import get_db, require_user_id
from skybook_api.schemas.common import PageMeta
from skybook_api.schemas.wallet import (
    TransactionListResponse,
    TransactionResponse,
    WalletEnvelope,
    WalletResponse,
    WalletSummaryResponse,
)
from skybook_api.services.wallet_service import WalletService
from skybook_core.errors import NotFoundError

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(prefix="/wallet", tags=["wallet"])

DbDep = Annotated["AsyncSession", Depends(get_db)]
UserId = Annotated[UUID, Depends(require_user_id)]


@router.get("", response_model=WalletEnvelope)
async def get_wallet(user_id: UserId, db: DbDep) -> WalletEnvelope:
    """Return the caller's wallet and balance."""
    wallet = await WalletService(db).get_wallet(user_id)
    if wallet is None:
        msg = "Wallet not found"
        raise NotFoundError(msg)
    return WalletEnvelope(wallet=WalletResponse.model_validate(wallet))


@router.get("/transactions", response_model=TransactionListResponse)
async def list_transactions(
    user_id: UserId,
    db: DbDep,
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=100)] = 10,
) -> TransactionListResponse:
    """Return the caller's ledger, newest first."""
    items, total = await WalletService(db).list_transactions(user_id, page, limit)
    return TransactionListResponse(
        transactions=[TransactionResponse.model_validate(t) for t in items],
        total=total,
        page=page,
        pages=PageMeta.pages_for(total, limit),
    )


@router.get("/summary", response_model=WalletSummaryResponse)
async def wallet_summary(user_id: UserId, db: DbDep) -> WalletSummaryResponse:
    """Return credit / debit totals for the caller's wallet."""
    summary = await WalletService(db).summary(user_id)
    return WalletSummaryResponse.model_validate(summary)
