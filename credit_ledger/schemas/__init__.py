"""Pydantic schemas used across the project."""
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, StrictInt


class TokenData(BaseModel):
    user_id: str
    role: str = "member"


class ErrorBody(BaseModel):
    kind: str
    message: str


class ErrorResponse(BaseModel):
    success: bool = False
    error: ErrorBody


class WalletBalancesResponse(BaseModel):
    success: bool = True
    user_id: str
    main: int
    task: int
    royalty: int
    total: int

    model_config = ConfigDict(from_attributes=True)


class WalletResponse(BaseModel):
    id: str
    wallet_type: str
    balance: int
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class AdminWalletsResponse(BaseModel):
    success: bool = True
    user_id: str
    wallets: list[WalletResponse] = Field(default_factory=list)
    reconciled: dict[str, bool] = Field(default_factory=dict)


class TransferRequest(BaseModel):
    from_type: str = Field(..., description="main, task or royalty")
    to_type: str = Field(..., description="main, task or royalty")
    amount: StrictInt


class TransferResponse(BaseModel):
    success: bool = True
    from_type: str
    to_type: str
    amount: int
    balances: dict[str, int]
    entry_ids: list[int] = Field(default_factory=list)


class LedgerEntryResponse(BaseModel):
    id: int
    wallet_type: Optional[str] = None
    amount: int
    transaction_type: str
    description: Optional[str] = None
    reference_id: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class LedgerEntryListResponse(BaseModel):
    success: bool = True
    transactions: list[LedgerEntryResponse] = Field(default_factory=list)


class CashRequestCreate(BaseModel):
    direction: str = Field(..., description="cash_in or cash_out")
    amount: StrictInt
    payment_method: str
    proof_ref: Optional[str] = Field(default=None, max_length=255)
    reference_no: Optional[str] = Field(default=None, max_length=100)
    account_name: Optional[str] = Field(default=None, max_length=100)
    account_number: Optional[str] = Field(default=None, max_length=40)
    pin_verified: bool = False


class CashRequestResponse(BaseModel):
    id: str
    user_id: str
    direction: str
    amount: int
    fee_amount: int
    net_amount: int
    payment_method: str
    proof_ref: Optional[str] = None
    reference_no: Optional[str] = None
    account_name: Optional[str] = None
    account_number: Optional[str] = None
    has_active_loan: bool
    pin_verified: bool
    status: str
    rejection_reason: Optional[str] = None
    reviewed_by: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class CashRequestEnvelope(BaseModel):
    success: bool = True
    request: CashRequestResponse


class CashRequestListResponse(BaseModel):
    success: bool = True
    requests: list[CashRequestResponse] = Field(default_factory=list)


class CashDecisionRequest(BaseModel):
    decision: str = Field(..., description="approve, reject, hold, flag, process or release")
    reason: Optional[str] = Field(default=None, max_length=500)


class LoanOfferRequest(BaseModel):
    principal: StrictInt
    interest_rate: Optional[float] = None
    term_days: Optional[StrictInt] = None


class LoanResponse(BaseModel):
    id: str
    lender_id: str
    borrower_id: Optional[str] = None
    principal_amount: int
    interest_rate: float
    interest_amount: int
    processing_fee: int
    total_repayment: int
    term_days: int
    status: str
    created_at: Optional[datetime] = None
    accepted_at: Optional[datetime] = None
    due_at: Optional[datetime] = None
    repaid_at: Optional[datetime] = None
    defaulted_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class LoanEnvelope(BaseModel):
    success: bool = True
    loan: LoanResponse


class LoanListResponse(BaseModel):
    success: bool = True
    loans: list[LoanResponse] = Field(default_factory=list)


class SweepResponse(BaseModel):
    success: bool = True
    repaid_count: int
    defaulted_count: int
    total_repaid: int
    errors: list[str] = Field(default_factory=list)
    skipped: bool = False

    model_config = ConfigDict(from_attributes=True)


class CashRequestStatsBody(BaseModel):
    counts: dict[str, dict[str, int]] = Field(default_factory=dict)
    pending_amount: dict[str, int] = Field(default_factory=dict)
    approved_amount: dict[str, int] = Field(default_factory=dict)

    model_config = ConfigDict(from_attributes=True)


class LoanStatsBody(BaseModel):
    counts: dict[str, int] = Field(default_factory=dict)
    outstanding_principal: int = 0
    escrowed_principal: int = 0

    model_config = ConfigDict(from_attributes=True)


class AdminStatsResponse(BaseModel):
    success: bool = True
    cash_requests: CashRequestStatsBody
    loans: LoanStatsBody
    liquidity: dict[str, int] = Field(default_factory=dict)


class WSMessage(BaseModel):
    type: str
    data: Optional[dict[str, Any]] = None
