"""Cash request domain exports"""

from .models import (
    OPEN_STATUSES,
    TERMINAL_STATUSES,
    CashRequest,
    CashRequestStats,
    CashRequestStatus,
    Decision,
    Direction,
)
from .service import CashRequestService, normalize_account_number

__all__ = [
    "OPEN_STATUSES",
    "TERMINAL_STATUSES",
    "CashRequest",
    "CashRequestService",
    "CashRequestStats",
    "CashRequestStatus",
    "Decision",
    "Direction",
    "normalize_account_number",
]
