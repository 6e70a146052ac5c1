"""Loan domain exports"""

from .models import Loan, LoanStats, LoanStatus, LoanTerms, SweepSummary
from .service import LoanService
from .sweeper import LoanSweeper, SweepScheduler

__all__ = [
    "Loan",
    "LoanService",
    "LoanStats",
    "LoanStatus",
    "LoanSweeper",
    "LoanTerms",
    "SweepScheduler",
    "SweepSummary",
]
