"""SQLAlchemy implementation for peer-to-peer loans."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional, Sequence

from sqlalchemy import desc, func, or_, select, update

from credit_ledger.domain.common.repository import AsyncRepository
from credit_ledger.infrastructure.database.models import Loan


class SqlLoanRepository(AsyncRepository[Loan]):
    model = Loan

    async def create(self, **values: Any) -> Loan:
        return await self.add(Loan(**values))

    async def claim(
        self,
        loan_id: str,
        *,
        borrower_id: str,
        accepted_at: datetime,
        due_at: datetime,
    ) -> bool:
        """Conditionally move a pending, unclaimed offer to ``active``.

        Returns ``False`` when another borrower already holds the loan.
        """
        stmt = (
            update(Loan)
            .where(Loan.id == loan_id, Loan.status == "pending", Loan.borrower_id.is_(None))
            .values(
                borrower_id=borrower_id,
                status="active",
                accepted_at=accepted_at,
                due_at=due_at,
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def list_offers(self, *, exclude_lender: Optional[str], limit: int, offset: int) -> Sequence[Loan]:
        stmt = select(Loan).where(Loan.status == "pending", Loan.borrower_id.is_(None))
        if exclude_lender:
            stmt = stmt.where(Loan.lender_id != exclude_lender)
        stmt = stmt.order_by(desc(Loan.created_at)).offset(offset).limit(limit)
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def list_for_user(
        self,
        user_id: str,
        *,
        status: Optional[str],
        limit: int,
        offset: int,
    ) -> Sequence[Loan]:
        stmt = select(Loan).where(or_(Loan.lender_id == user_id, Loan.borrower_id == user_id))
        if status and status != "all":
            stmt = stmt.where(Loan.status == status)
        stmt = stmt.order_by(desc(Loan.created_at)).offset(offset).limit(limit)
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def list_expired_ids(self, now: datetime) -> list[str]:
        stmt = (
            select(Loan.id)
            .where(Loan.status == "active", Loan.due_at < now)
            .order_by(Loan.due_at)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def has_active_loan(self, borrower_id: str) -> bool:
        stmt = select(func.count(Loan.id)).where(
            Loan.borrower_id == borrower_id, Loan.status == "active"
        )
        result = await self.session.execute(stmt)
        return int(result.scalar_one()) > 0

    async def counts_by_status(self) -> list[tuple[str, int, int]]:
        """Rows of ``(status, count, principal_sum)``."""
        stmt = select(
            Loan.status,
            func.count(Loan.id),
            func.coalesce(func.sum(Loan.principal_amount), 0),
        ).group_by(Loan.status)
        result = await self.session.execute(stmt)
        return [(row[0], int(row[1]), int(row[2])) for row in result.all()]
