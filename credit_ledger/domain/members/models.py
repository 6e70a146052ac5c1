"""Domain model for ledger members."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass(slots=True)
class Member:
    id: str
    role: str
    is_active: bool
    created_at: Optional[datetime]
    last_seen_at: Optional[datetime]
