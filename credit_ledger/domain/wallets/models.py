"""Domain models for wallet operations."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional


class WalletType(str, Enum):
    MAIN = "main"
    TASK = "task"
    ROYALTY = "royalty"
    ESCROW = "escrow"


MEMBER_WALLET_TYPES: tuple[WalletType, ...] = (WalletType.MAIN, WalletType.TASK, WalletType.ROYALTY)


class TransactionType(str, Enum):
    TRANSFER_OUT = "transfer_out"
    TRANSFER_IN = "transfer_in"
    CASH_IN = "cash_in"
    CASH_OUT = "cash_out"
    LOAN_ESCROW_OUT = "loan_escrow_out"
    LOAN_ESCROW_IN = "loan_escrow_in"
    LOAN_DISBURSEMENT = "loan_disbursement"
    LOAN_REPAYMENT_OUT = "loan_repayment_out"
    LOAN_REPAYMENT_IN = "loan_repayment_in"
    ESCROW_REFUND_OUT = "escrow_refund_out"
    ESCROW_REFUND_IN = "escrow_refund_in"


@dataclass(slots=True)
class WalletSnapshot:
    id: str
    user_id: str
    wallet_type: str
    balance: int
    updated_at: Optional[datetime]


@dataclass(slots=True)
class WalletBalances:
    user_id: str
    main: int = 0
    task: int = 0
    royalty: int = 0

    @property
    def total(self) -> int:
        return self.main + self.task + self.royalty

    def as_dict(self) -> dict[str, int]:
        return {"main": self.main, "task": self.task, "royalty": self.royalty}


@dataclass(slots=True)
class LedgerEntry:
    id: int
    wallet_id: str
    user_id: str
    wallet_type: Optional[str]
    amount: int
    transaction_type: str
    description: Optional[str]
    reference_id: Optional[str]
    created_at: datetime


@dataclass(slots=True)
class TransferResult:
    user_id: str
    from_type: str
    to_type: str
    amount: int
    balances: WalletBalances
    entry_ids: list[int] = field(default_factory=list)
