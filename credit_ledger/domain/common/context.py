"""Request-scoped caller identity passed into every ledger call."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class RequestContext:
    user_id: str
    is_admin: bool = False

    @classmethod
    def system(cls) -> "RequestContext":
        """Context used by scheduled jobs such as the loan sweep."""
        return cls(user_id="system", is_admin=True)
