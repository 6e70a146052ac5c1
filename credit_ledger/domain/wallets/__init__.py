"""Wallet domain exports"""

from .coordinator import LedgerScope, Posting, TransferCoordinator
from .models import (
    MEMBER_WALLET_TYPES,
    LedgerEntry,
    TransactionType,
    TransferResult,
    WalletBalances,
    WalletSnapshot,
    WalletType,
)
from .service import WalletService

__all__ = [
    "MEMBER_WALLET_TYPES",
    "LedgerEntry",
    "LedgerScope",
    "Posting",
    "TransactionType",
    "TransferCoordinator",
    "TransferResult",
    "WalletBalances",
    "WalletService",
    "WalletSnapshot",
    "WalletType",
]
