"""Domain models for cash-in / cash-out requests."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional


class Direction(str, Enum):
    CASH_IN = "cash_in"
    CASH_OUT = "cash_out"


class CashRequestStatus(str, Enum):
    PENDING = "pending"
    ON_HOLD = "on_hold"
    FLAGGED = "flagged"
    PROCESSING = "processing"
    APPROVED = "approved"
    REJECTED = "rejected"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({CashRequestStatus.APPROVED, CashRequestStatus.REJECTED})
OPEN_STATUSES = tuple(status for status in CashRequestStatus if status not in TERMINAL_STATUSES)


class Decision(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"
    HOLD = "hold"
    FLAG = "flag"
    PROCESS = "process"
    RELEASE = "release"


@dataclass(slots=True)
class CashRequest:
    id: str
    user_id: str
    direction: str
    amount: int
    fee_amount: int
    net_amount: int
    payment_method: str
    proof_ref: Optional[str]
    reference_no: Optional[str]
    account_name: Optional[str]
    account_number: Optional[str]
    has_active_loan: bool
    pin_verified: bool
    status: str
    rejection_reason: Optional[str]
    reviewed_by: Optional[str]
    reviewed_at: Optional[datetime]
    created_at: Optional[datetime]
    updated_at: Optional[datetime]


@dataclass(slots=True)
class CashRequestStats:
    counts: dict[str, dict[str, int]] = field(default_factory=dict)
    pending_amount: dict[str, int] = field(default_factory=dict)
    approved_amount: dict[str, int] = field(default_factory=dict)
