"""SQLAlchemy-backed repository implementations."""

from .cash_request_repository import SqlCashRequestRepository
from .loan_repository import SqlLoanRepository
from .member_repository import SqlMemberRepository
from .wallet_repository import SqlWalletRepository

__all__ = [
    "SqlCashRequestRepository",
    "SqlLoanRepository",
    "SqlMemberRepository",
    "SqlWalletRepository",
]
