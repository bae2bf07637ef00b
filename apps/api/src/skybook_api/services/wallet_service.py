"""Wallet ledger - balances and the append-only transaction log."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import case, func, select, update

from skybook_api.config import settings
from skybook_core.errors import (
    InsufficientWalletBalanceError,
    NotFoundError,
    ValidationError,
)
from skybook_core.schemas.enums import TransactionType
from skybook_db.models import Wallet, WalletTransaction

if TYPE_CHECKING:
    from uuid import UUID

    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

OPENING_DESCRIPTION = "Initial wallet balance"


@dataclass(frozen=True, slots=True)
class WalletSummary:
    balance: Decimal
    total_credited: Decimal
    total_debited: Decimal
    credit_count: int
    debit_count: int


def _require_positive(amount: Decimal) -> Decimal:
    amount = Decimal(amount)
    if not amount.is_finite() or amount <= 0:
        msg = f"Amount must be positive, got {amount}"
        raise ValidationError(msg)
    return amount


class WalletService:
    """Credit / debit a user's wallet inside the caller's transaction.

    Both mutations are a single conditional ``UPDATE ... RETURNING`` so two
    concurrent calls against one wallet never act on the same stale balance.
    Each successful mutation appends exactly one ledger row.
    """

    def __init__(self, db: AsyncSession) -> None:
        self._db = db

    async def get_wallet(self, user_id: UUID) -> Wallet | None:
        """Fetch the wallet for a user with its current balance."""
        result = await self._db.execute(
            select(Wallet)
            .where(Wallet.user_id == user_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def open_wallet(
        self,
        user_id: UUID,
        opening_balance: Decimal | None = None,
    ) -> Wallet:
        """Create the user's wallet with its opening credit."""
        if await self.get_wallet(user_id) is not None:
            msg = f"Wallet already exists for user {user_id}"
            raise ValidationError(msg)

        amount = _require_positive(
            settings.opening_wallet_balance
            if opening_balance is None
            else opening_balance
        )
        wallet = Wallet(user_id=user_id, balance=amount)
        self._db.add(wallet)
        await self._db.flush()
        self._db.add(
            WalletTransaction(
                wallet_id=wallet.id,
                type=TransactionType.CREDIT,
                amount=amount,
                description=OPENING_DESCRIPTION,
            )
        )
        await self._db.flush()
        logger.info("Opened wallet for user %s with %s", user_id, amount)
        return wallet

    async def debit(self, user_id: UUID, amount: Decimal, description: str) -> Decimal:
        """Take *amount* out of the wallet. Returns the new balance."""
        amount = _require_positive(amount)
        stmt = (
            update(Wallet)
            .where(Wallet.user_id == user_id, Wallet.balance >= amount)
            .values(balance=Wallet.balance - amount)
            .returning(Wallet.id, Wallet.balance)
            .execution_options(synchronize_session=False)
        )
        row = (await self._db.execute(stmt)).one_or_none()
        if row is None:
            wallet = await self.get_wallet(user_id)
            if wallet is None:
                msg = f"Wallet not found for user {user_id}"
                raise NotFoundError(msg)
            logger.warning(
                "Debit of %s refused for user %s: balance %s",
                amount,
                user_id,
                wallet.balance,
            )
            msg = (
                f"Insufficient wallet balance: {wallet.balance} available, "
                f"{amount} required"
            )
            raise InsufficientWalletBalanceError(msg)

        await self._append(row.id, TransactionType.DEBIT, amount, description)
        return Decimal(str(row.balance))

    async def credit(self, user_id: UUID, amount: Decimal, description: str) -> Decimal:
        """Add *amount* to the wallet. Returns the new balance."""
        amount = _require_positive(amount)
        stmt = (
            update(Wallet)
            .where(Wallet.user_id == user_id)
            .values(balance=Wallet.balance + amount)
            .returning(Wallet.id, Wallet.balance)
            .execution_options(synchronize_session=False)
        )
        row = (await self._db.execute(stmt)).one_or_none()
        if row is None:
            msg = f"Wallet not found for user {user_id}"
            raise NotFoundError(msg)

        await self._append(row.id, TransactionType.CREDIT, amount, description)
        return Decimal(str(row.balance))

    async def list_transactions(
        self,
        user_id: UUID,
        page: int = 1,
        page_size: int = 10,
    ) -> tuple[list[WalletTransaction], int]:
        """Fetch a page of ledger entries, newest first."""
        if page < 1 or page_size < 1:
            msg = "page and page_size must be >= 1"
            raise ValidationError(msg)

        wallet_id = await self._wallet_id(user_id)
        total = await self._db.scalar(
            select(func.count())
            .select_from(WalletTransaction)
            .where(WalletTransaction.wallet_id == wallet_id)
        )
        result = await self._db.execute(
            select(WalletTransaction)
            .where(WalletTransaction.wallet_id == wallet_id)
            .order_by(WalletTransaction.id.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        return list(result.scalars().all()), total or 0

    async def summary(self, user_id: UUID) -> WalletSummary:
        """Totals per direction plus the current balance."""
        wallet = await self.get_wallet(user_id)
        if wallet is None:
            msg = f"Wallet not found for user {user_id}"
            raise NotFoundError(msg)

        is_credit = WalletTransaction.type == TransactionType.CREDIT
        is_debit = WalletTransaction.type == TransactionType.DEBIT
        row = (
            await self._db.execute(
                select(
                    func.coalesce(
                        func.sum(case((is_credit, WalletTransaction.amount))), 0
                    ).label("credited"),
                    func.coalesce(
                        func.sum(case((is_debit, WalletTransaction.amount))), 0
                    ).label("debited"),
                    func.count(case((is_credit, 1))).label("credits"),
                    func.count(case((is_debit, 1))).label("debits"),
                ).where(WalletTransaction.wallet_id == wallet.id)
            )
        ).one()
        return WalletSummary(
            balance=Decimal(wallet.balance),
            total_credited=Decimal(str(row.credited)),
            total_debited=Decimal(str(row.debited)),
            credit_count=row.credits,
            debit_count=row.debits,
        )

    async def _wallet_id(self, user_id: UUID):
        wallet_id = await self._db.scalar(
            select(Wallet.id).where(Wallet.user_id == user_id)
        )
        if wallet_id is None:
            msg = f"Wallet not found for user {user_id}"
            raise NotFoundError(msg)
        return wallet_id

    async def _append(
        self,
        wallet_id: UUID,
        kind: TransactionType,
        amount: Decimal,
        description: str,
    ) -> None:
        self._db.add(
            WalletTransaction(
                wallet_id=wallet_id,
                type=kind,
                amount=amount,
                description=description,
            )
        )
        await self._db.flush()
        logger.info("Wallet %s %s %s: %s", wallet_id, kind.value, amount, description)
