"""SQLAlchemy ORM models."""

import uuid

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from credit_ledger.domain.common.clock import utcnow
from credit_ledger.infrastructure.database.base import Base


def generate_uuid() -> str:
    return str(uuid.uuid4())


class Member(Base):
    __tablename__ = "members"

    id = Column(String(36), primary_key=True)
    role = Column(String(20), nullable=False, default="member")
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    last_seen_at = Column(DateTime(timezone=True))


class Wallet(Base):
    __tablename__ = "wallets"
    __table_args__ = (
        UniqueConstraint("user_id", "wallet_type", name="uq_wallets_user_type"),
        CheckConstraint("balance >= 0", name="ck_wallets_balance_non_negative"),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), ForeignKey("members.id"), nullable=False, index=True)
    wallet_type = Column(String(20), nullable=False)
    balance = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    member = relationship("Member")


class LedgerTransaction(Base):
    __tablename__ = "ledger_transactions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    wallet_id = Column(String(36), ForeignKey("wallets.id"), nullable=False, index=True)
    user_id = Column(String(36), nullable=False, index=True)
    amount = Column(Integer, nullable=False)
    transaction_type = Column(String(30), nullable=False)
    description = Column(Text)
    reference_id = Column(String(36), index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    wallet = relationship("Wallet")


class CashRequest(Base):
    __tablename__ = "cash_requests"
    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_cash_requests_amount_positive"),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), ForeignKey("members.id"), nullable=False, index=True)
    direction = Column(String(10), nullable=False, index=True)
    amount = Column(Integer, nullable=False)
    fee_amount = Column(Integer, nullable=False, default=0)
    net_amount = Column(Integer, nullable=False)
    payment_method = Column(String(30), nullable=False)
    proof_ref = Column(String(255))
    reference_no = Column(String(100))
    account_name = Column(String(100))
    account_number = Column(String(30))
    has_active_loan = Column(Boolean, nullable=False, default=False)
    pin_verified = Column(Boolean, nullable=False, default=False)
    status = Column(String(20), nullable=False, default="pending", index=True)
    rejection_reason = Column(Text)
    reviewed_by = Column(String(36))
    reviewed_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


class Loan(Base):
    __tablename__ = "loans"
    __table_args__ = (
        CheckConstraint("principal_amount > 0", name="ck_loans_principal_positive"),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid)
    lender_id = Column(String(36), ForeignKey("members.id"), nullable=False, index=True)
    borrower_id = Column(String(36), ForeignKey("members.id"), index=True)
    principal_amount = Column(Integer, nullable=False)
    interest_rate = Column(Numeric(8, 4, asdecimal=False), nullable=False)
    interest_amount = Column(Integer, nullable=False)
    processing_fee = Column(Integer, nullable=False)
    total_repayment = Column(Integer, nullable=False)
    term_days = Column(Integer, nullable=False)
    status = Column(String(20), nullable=False, default="pending", index=True)
    escrow_wallet_id = Column(String(36), ForeignKey("wallets.id"))
    created_at = Column(DateTime(timezone=True), default=utcnow)
    accepted_at = Column(DateTime(timezone=True))
    due_at = Column(DateTime(timezone=True), index=True)
    repaid_at = Column(DateTime(timezone=True))
    defaulted_at = Column(DateTime(timezone=True))
    cancelled_at = Column(DateTime(timezone=True))

    escrow_wallet = relationship("Wallet")
