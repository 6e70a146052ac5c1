"""SQLAlchemy implementation for the wallet store.

This is the only module that writes ``wallets.balance`` or appends to
``ledger_transactions``; every call happens inside a coordinator scope.
"""

from __future__ import annotations

import logging
from typing import Optional, Sequence

from sqlalchemy import desc, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from credit_ledger.domain.common.errors import ConflictError, InsufficientBalanceError
from credit_ledger.infrastructure.database.models import LedgerTransaction, Wallet

logger = logging.getLogger(__name__)


class SqlWalletRepository:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_wallet(
        self, user_id: str, wallet_type: str, *, for_update: bool = False
    ) -> Wallet | None:
        stmt = select(Wallet).where(Wallet.user_id == user_id, Wallet.wallet_type == wallet_type)
        if for_update:
            stmt = stmt.with_for_update()
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def get_or_create(
        self, user_id: str, wallet_type: str, *, for_update: bool = False
    ) -> Wallet:
        wallet = await self.get_wallet(user_id, wallet_type, for_update=for_update)
        if wallet is not None:
            return wallet
        wallet = Wallet(user_id=user_id, wallet_type=wallet_type, balance=0)
        self.session.add(wallet)
        try:
            await self.session.flush()
        except IntegrityError as exc:
            # another process created the row between our read and insert
            raise ConflictError("Wallet is being created by another request; retry") from exc
        logger.info("Created %s wallet for %s", wallet_type, user_id)
        return wallet

    async def list_wallets(self, user_id: str) -> Sequence[Wallet]:
        stmt = select(Wallet).where(Wallet.user_id == user_id).order_by(Wallet.wallet_type)
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def apply_delta(
        self,
        wallet: Wallet,
        delta: int,
        *,
        transaction_type: str,
        description: Optional[str] = None,
        reference_id: Optional[str] = None,
    ) -> LedgerTransaction:
        if delta == 0:
            raise ValueError("Ledger postings must move a non-zero amount")
        if wallet.balance + delta < 0:
            raise InsufficientBalanceError(
                f"{wallet.wallet_type} wallet balance {wallet.balance} does not cover {-delta}"
            )
        wallet.balance = wallet.balance + delta
        tx = LedgerTransaction(
            wallet_id=wallet.id,
            user_id=wallet.user_id,
            amount=delta,
            transaction_type=transaction_type,
            description=description,
            reference_id=reference_id,
        )
        self.session.add(tx)
        await self.session.flush()
        return tx

    async def list_transactions(
        self,
        user_id: str,
        wallet_type: Optional[str],
        limit: int,
        offset: int,
    ) -> Sequence[tuple[LedgerTransaction, str]]:
        stmt = (
            select(LedgerTransaction, Wallet.wallet_type)
            .join(Wallet, Wallet.id == LedgerTransaction.wallet_id)
            .where(LedgerTransaction.user_id == user_id)
        )
        if wallet_type:
            stmt = stmt.where(Wallet.wallet_type == wallet_type)
        stmt = stmt.order_by(desc(LedgerTransaction.id)).offset(offset).limit(limit)
        result = await self.session.execute(stmt)
        return [(row[0], row[1]) for row in result.all()]

    async def liquidity_by_type(self) -> dict[str, int]:
        stmt = select(Wallet.wallet_type, func.coalesce(func.sum(Wallet.balance), 0)).group_by(
            Wallet.wallet_type
        )
        result = await self.session.execute(stmt)
        return {wallet_type: int(total) for wallet_type, total in result.all()}

    async def ledger_sum(self, wallet_id: str) -> int:
        stmt = select(func.coalesce(func.sum(LedgerTransaction.amount), 0)).where(
            LedgerTransaction.wallet_id == wallet_id
        )
        result = await self.session.execute(stmt)
        return int(result.scalar_one())
