"""SQLAlchemy implementation for cash-in / cash-out requests."""

from __future__ import annotations

from typing import Any, Iterable, Optional, Sequence

from sqlalchemy import desc, func, select

from credit_ledger.domain.common.repository import AsyncRepository
from credit_ledger.infrastructure.database.models import CashRequest


class SqlCashRequestRepository(AsyncRepository[CashRequest]):
    model = CashRequest

    async def create(self, **values: Any) -> CashRequest:
        request = CashRequest(**values)
        return await self.add(request)

    async def list_for_user(
        self,
        user_id: str,
        *,
        status: Optional[str],
        direction: Optional[str],
        limit: int,
        offset: int,
    ) -> Sequence[CashRequest]:
        stmt = select(CashRequest).where(CashRequest.user_id == user_id)
        if status and status != "all":
            stmt = stmt.where(CashRequest.status == status)
        if direction:
            stmt = stmt.where(CashRequest.direction == direction)
        stmt = stmt.order_by(desc(CashRequest.created_at)).offset(offset).limit(limit)
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def list_by_status(
        self,
        statuses: Iterable[str],
        *,
        direction: Optional[str],
        limit: int,
        offset: int,
    ) -> Sequence[CashRequest]:
        stmt = select(CashRequest).where(CashRequest.status.in_(list(statuses)))
        if direction:
            stmt = stmt.where(CashRequest.direction == direction)
        # oldest first so reviewers work the queue in arrival order
        stmt = stmt.order_by(CashRequest.created_at).offset(offset).limit(limit)
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def counts_by_status(self) -> list[tuple[str, str, int, int]]:
        """Rows of ``(direction, status, count, amount_sum)``."""
        stmt = select(
            CashRequest.direction,
            CashRequest.status,
            func.count(CashRequest.id),
            func.coalesce(func.sum(CashRequest.amount), 0),
        ).group_by(CashRequest.direction, CashRequest.status)
        result = await self.session.execute(stmt)
        return [(row[0], row[1], int(row[2]), int(row[3])) for row in result.all()]
