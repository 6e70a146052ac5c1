"""Wallet domain service"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional, Sequence

from credit_ledger.domain.common.clock import as_utc
from credit_ledger.domain.common.errors import InvalidInputError
from credit_ledger.domain.notifications.sink import NotificationSink, emit
from credit_ledger.infrastructure.database.models import (
    LedgerTransaction as LedgerTransactionModel,
    Wallet as WalletModel,
)
from credit_ledger.infrastructure.database.repositories.wallet_repository import SqlWalletRepository
from credit_ledger.infrastructure.locks import wallet_key

from .coordinator import TransferCoordinator
from .models import (
    MEMBER_WALLET_TYPES,
    LedgerEntry,
    TransactionType,
    TransferResult,
    WalletBalances,
    WalletSnapshot,
)

if TYPE_CHECKING:
    from credit_ledger.domain.members.service import MemberService

logger = logging.getLogger(__name__)


def parse_wallet_type(value: str) -> str:
    allowed = {wallet_type.value for wallet_type in MEMBER_WALLET_TYPES}
    if value not in allowed:
        raise InvalidInputError(f"Unknown wallet type {value!r}; expected one of {sorted(allowed)}")
    return value


def require_amount(amount: object) -> int:
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise InvalidInputError("Amount must be a positive whole number")
    return amount


@dataclass(slots=True)
class WalletService:
    coordinator: TransferCoordinator
    members: MemberService
    sink: Optional[NotificationSink] = None

    async def get_balances(self, user_id: str) -> WalletBalances:
        await self.members.require(user_id)
        async with self.coordinator.reader() as session:
            wallets = await SqlWalletRepository(session).list_wallets(user_id)
        return self._to_balances(user_id, wallets)

    async def get_wallets(self, user_id: str) -> list[WalletSnapshot]:
        await self.members.require(user_id)
        async with self.coordinator.reader() as session:
            wallets = await SqlWalletRepository(session).list_wallets(user_id)
        return [self._to_snapshot(wallet) for wallet in wallets]

    async def transfer(self, user_id: str, from_type: str, to_type: str, amount: int) -> TransferResult:
        amount = require_amount(amount)
        from_type = parse_wallet_type(from_type)
        to_type = parse_wallet_type(to_type)
        if from_type == to_type:
            raise InvalidInputError("Cannot transfer a wallet to itself")
        await self.members.require(user_id)

        async with self.coordinator.scope(
            wallet_key(user_id, from_type), wallet_key(user_id, to_type)
        ) as scope:
            await scope.move(
                source=(user_id, from_type),
                target=(user_id, to_type),
                amount=amount,
                out_type=TransactionType.TRANSFER_OUT,
                in_type=TransactionType.TRANSFER_IN,
                description=f"Transfer {from_type} -> {to_type}",
            )
            wallets = await scope.wallets.list_wallets(user_id)
            balances = self._to_balances(user_id, wallets)
            entry_ids = [posting.transaction_id for posting in scope.postings]

        logger.info("Transfer %s: %s -> %s amount=%d", user_id, from_type, to_type, amount)
        await emit(
            self.sink,
            "wallet.transfer",
            {
                "user_id": user_id,
                "from": from_type,
                "to": to_type,
                "amount": amount,
                "balances": balances.as_dict(),
            },
        )
        return TransferResult(
            user_id=user_id,
            from_type=from_type,
            to_type=to_type,
            amount=amount,
            balances=balances,
            entry_ids=entry_ids,
        )

    async def reconcile(self, user_id: str) -> dict[str, bool]:
        """Per wallet type, whether the balance equals the sum of its ledger rows."""
        async with self.coordinator.reader() as session:
            repository = SqlWalletRepository(session)
            wallets = await repository.list_wallets(user_id)
            return {
                wallet.wallet_type: await repository.ledger_sum(wallet.id) == wallet.balance
                for wallet in wallets
            }

    async def liquidity(self) -> dict[str, int]:
        """Total balance held per wallet type across all members."""
        async with self.coordinator.reader() as session:
            return await SqlWalletRepository(session).liquidity_by_type()

    async def list_transactions(
        self,
        user_id: str,
        wallet_type: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[LedgerEntry]:
        if wallet_type is not None:
            wallet_type = parse_wallet_type(wallet_type)
        await self.members.require(user_id)
        async with self.coordinator.reader() as session:
            rows = await SqlWalletRepository(session).list_transactions(
                user_id, wallet_type, limit, offset
            )
        return [self._to_entry(row, row_type) for row, row_type in rows]

    @staticmethod
    def _to_balances(user_id: str, wallets: Sequence[WalletModel]) -> WalletBalances:
        balances = WalletBalances(user_id=user_id)
        for wallet in wallets:
            if wallet.wallet_type in ("main", "task", "royalty"):
                setattr(balances, wallet.wallet_type, wallet.balance)
        return balances

    @staticmethod
    def _to_snapshot(model: WalletModel) -> WalletSnapshot:
        return WalletSnapshot(
            id=model.id,
            user_id=model.user_id,
            wallet_type=model.wallet_type,
            balance=model.balance,
            updated_at=as_utc(model.updated_at),
        )

    @staticmethod
    def _to_entry(model: LedgerTransactionModel, wallet_type: Optional[str]) -> LedgerEntry:
        return LedgerEntry(
            id=model.id,
            wallet_id=model.wallet_id,
            user_id=model.user_id,
            wallet_type=wallet_type,
            amount=model.amount,
            transaction_type=model.transaction_type,
            description=model.description,
            reference_id=model.reference_id,
            created_at=as_utc(model.created_at),
        )
