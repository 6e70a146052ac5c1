"""Repository protocol for wallet operations."""

from __future__ import annotations

from typing import Optional, Protocol, Sequence

from credit_ledger.infrastructure.database.models import (
    LedgerTransaction as LedgerTransactionModel,
    Wallet as WalletModel,
)


class WalletRepository(Protocol):
    async def get_wallet(
        self, user_id: str, wallet_type: str, *, for_update: bool = False
    ) -> WalletModel | None:
        ...

    async def get_or_create(
        self, user_id: str, wallet_type: str, *, for_update: bool = False
    ) -> WalletModel:
        ...

    async def list_wallets(self, user_id: str) -> Sequence[WalletModel]:
        ...

    async def apply_delta(
        self,
        wallet: WalletModel,
        delta: int,
        *,
        transaction_type: str,
        description: Optional[str] = None,
        reference_id: Optional[str] = None,
    ) -> LedgerTransactionModel:
        ...

    async def list_transactions(
        self,
        user_id: str,
        wallet_type: Optional[str],
        limit: int,
        offset: int,
    ) -> Sequence[tuple[LedgerTransactionModel, str]]:
        ...
