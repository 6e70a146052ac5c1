"""Transfer coordinator: keyed locks plus one database transaction per move."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from credit_ledger.domain.common.errors import InsufficientBalanceError, InvalidInputError
from credit_ledger.infrastructure.database.models import LedgerTransaction, Wallet
from credit_ledger.infrastructure.database.repositories.wallet_repository import SqlWalletRepository
from credit_ledger.infrastructure.locks import KeyedLockManager, wallet_key

from .models import TransactionType
from .repository import WalletRepository

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class Posting:
    user_id: str
    wallet_type: str
    amount: int
    balance_after: int
    transaction_id: int


class LedgerScope:
    """Unit of work handed out by :meth:`TransferCoordinator.scope`.

    Every wallet touched through the scope must have been named when the
    scope was opened; balances are only ever changed via :meth:`move`,
    :meth:`credit` or :meth:`debit`.
    """

    def __init__(self, session: AsyncSession, keys: frozenset[str]) -> None:
        self.session = session
        self.keys = keys
        self.wallets: WalletRepository = SqlWalletRepository(session)
        self.postings: list[Posting] = []

    async def wallet(self, user_id: str, wallet_type: str) -> Wallet:
        self._require_locked(wallet_key(user_id, wallet_type))
        return await self.wallets.get_or_create(user_id, wallet_type, for_update=True)

    async def balance(self, user_id: str, wallet_type: str) -> int:
        wallet = await self.wallet(user_id, wallet_type)
        return wallet.balance

    async def move(
        self,
        *,
        source: tuple[str, str],
        target: tuple[str, str],
        amount: int,
        out_type: TransactionType,
        in_type: TransactionType,
        reference_id: Optional[str] = None,
        description: Optional[str] = None,
    ) -> tuple[Wallet, Wallet]:
        """Move ``amount`` between two wallets, writing one ledger row per leg."""
        _check_amount(amount)
        if source == target:
            raise InvalidInputError("Source and destination wallets must differ")
        source_wallet = await self.wallet(*source)
        target_wallet = await self.wallet(*target)
        if source_wallet.balance < amount:
            raise InsufficientBalanceError(
                f"Insufficient {source[1]} balance: {source_wallet.balance} < {amount}"
            )
        out_row = await self.wallets.apply_delta(
            source_wallet,
            -amount,
            transaction_type=out_type.value,
            description=description,
            reference_id=reference_id,
        )
        in_row = await self.wallets.apply_delta(
            target_wallet,
            amount,
            transaction_type=in_type.value,
            description=description,
            reference_id=reference_id,
        )
        self._record(source_wallet, out_row)
        self._record(target_wallet, in_row)
        return source_wallet, target_wallet

    async def credit(
        self,
        user_id: str,
        wallet_type: str,
        amount: int,
        *,
        transaction_type: TransactionType,
        reference_id: Optional[str] = None,
        description: Optional[str] = None,
    ) -> Wallet:
        """Single-leg posting from the external rail into a wallet."""
        _check_amount(amount)
        wallet = await self.wallet(user_id, wallet_type)
        row = await self.wallets.apply_delta(
            wallet,
            amount,
            transaction_type=transaction_type.value,
            description=description,
            reference_id=reference_id,
        )
        self._record(wallet, row)
        return wallet

    async def debit(
        self,
        user_id: str,
        wallet_type: str,
        amount: int,
        *,
        transaction_type: TransactionType,
        reference_id: Optional[str] = None,
        description: Optional[str] = None,
    ) -> Wallet:
        """Single-leg posting from a wallet out to the external rail."""
        _check_amount(amount)
        wallet = await self.wallet(user_id, wallet_type)
        if wallet.balance < amount:
            raise InsufficientBalanceError(
                f"Insufficient {wallet_type} balance: {wallet.balance} < {amount}"
            )
        row = await self.wallets.apply_delta(
            wallet,
            -amount,
            transaction_type=transaction_type.value,
            description=description,
            reference_id=reference_id,
        )
        self._record(wallet, row)
        return wallet

    def _require_locked(self, key: str) -> None:
        if key not in self.keys:
            raise RuntimeError(f"Wallet {key} is not covered by this scope's locks")

    def _record(self, wallet: Wallet, row: LedgerTransaction) -> None:
        self.postings.append(
            Posting(
                user_id=wallet.user_id,
                wallet_type=wallet.wallet_type,
                amount=row.amount,
                balance_after=wallet.balance,
                transaction_id=row.id,
            )
        )


@dataclass(slots=True)
class TransferCoordinator:
    session_factory: async_sessionmaker[AsyncSession]
    locks: KeyedLockManager

    @asynccontextmanager
    async def scope(self, *keys: str) -> AsyncIterator[LedgerScope]:
        """Lock ``keys`` and run the body inside one committed transaction.

        Any exception raised in the body rolls back every write made through
        the scope before the locks are released.
        """
        async with self.locks.hold(*keys) as held:
            async with self.session_factory() as session:
                async with session.begin():
                    scope = LedgerScope(session, held)
                    yield scope
            if scope.postings:
                logger.info(
                    "Committed %d ledger postings under %s",
                    len(scope.postings),
                    ",".join(sorted(held)),
                )

    @asynccontextmanager
    async def reader(self) -> AsyncIterator[AsyncSession]:
        """Unlocked session for read-only queries."""
        async with self.session_factory() as session:
            yield session


def _check_amount(amount: int) -> None:
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise InvalidInputError("Amount must be a positive whole number")


__all__ = ["LedgerScope", "Posting", "TransferCoordinator"]
