"""SQLAlchemy implementation of the member repository."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from credit_ledger.domain.common.repository import AsyncRepository
from credit_ledger.infrastructure.database.models import Member


class SqlMemberRepository(AsyncRepository[Member]):
    """Members known to the ledger, keyed by the identity provider's user id."""

    model = Member

    async def upsert(self, user_id: str, *, role: Optional[str], seen_at: datetime) -> Member:
        member = await self.get(user_id, for_update=True)
        if member is None:
            member = Member(id=user_id, role=role or "member", is_active=True, created_at=seen_at)
            self.session.add(member)
        elif role:
            member.role = role
        member.last_seen_at = seen_at
        await self.session.flush()
        return member
