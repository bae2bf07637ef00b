"""Wallet schemas."""

from __future__ import annotations

import uuid  # noqa: TC003
from datetime import datetime  # noqa: TC003

from pydantic import BaseModel, ConfigDict

from skybook_api.schemas.common import PageMeta
from skybook_core.schemas import TransactionType


class WalletResponse(BaseModel):
    """The caller's wallet."""

    id: uuid.UUID
    user_id: uuid.UUID
    balance: float
    model_config = ConfigDict(from_attributes=True)


class WalletEnvelope(BaseModel):
    wallet: WalletResponse


class TransactionResponse(BaseModel):
    """One ledger entry."""

    id: int
    type: TransactionType
    amount: float
    description: str
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


class TransactionListResponse(PageMeta):
    """Paginated ledger, newest first."""

    transactions: list[TransactionResponse]


class WalletSummaryResponse(BaseModel):
    """Credit / debit totals plus the current balance."""

    balance: float
    total_credited: float
    total_debited: float
    credit_count: int
    debit_count: int
    model_config = ConfigDict(from_attributes=True)
