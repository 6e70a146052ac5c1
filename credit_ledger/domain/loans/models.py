"""Domain models for peer-to-peer loans."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import ROUND_FLOOR, Decimal
from enum import Enum
from typing import Optional


class LoanStatus(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"
    REPAID = "repaid"
    DEFAULTED = "defaulted"
    CANCELLED = "cancelled"


@dataclass(slots=True, frozen=True)
class LoanTerms:
    principal: int
    interest_rate: float
    interest_amount: int
    processing_fee: int
    total_repayment: int

    @classmethod
    def compute(cls, principal: int, interest_rate: float, fee_rate: float) -> "LoanTerms":
        """Interest accrues on the principal first; the fee is then taken off the gross."""
        interest = _floor(Decimal(principal) * Decimal(str(interest_rate)))
        fee = _floor(Decimal(principal) * Decimal(str(fee_rate)))
        return cls(
            principal=principal,
            interest_rate=interest_rate,
            interest_amount=interest,
            processing_fee=fee,
            total_repayment=principal + interest - fee,
        )


@dataclass(slots=True)
class Loan:
    id: str
    lender_id: str
    borrower_id: Optional[str]
    principal_amount: int
    interest_rate: float
    interest_amount: int
    processing_fee: int
    total_repayment: int
    term_days: int
    status: str
    escrow_wallet_id: Optional[str]
    created_at: Optional[datetime]
    accepted_at: Optional[datetime]
    due_at: Optional[datetime]
    repaid_at: Optional[datetime]
    defaulted_at: Optional[datetime]
    cancelled_at: Optional[datetime]


@dataclass(slots=True)
class SweepSummary:
    repaid_count: int = 0
    defaulted_count: int = 0
    total_repaid: int = 0
    errors: list[str] = field(default_factory=list)
    skipped: bool = False


@dataclass(slots=True)
class LoanStats:
    counts: dict[str, int] = field(default_factory=dict)
    outstanding_principal: int = 0
    escrowed_principal: int = 0


def _floor(value: Decimal) -> int:
    return int(value.to_integral_value(rounding=ROUND_FLOOR))
