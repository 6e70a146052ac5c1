"""Ledger facade: the operations other components call, under one roof.

Every call takes the caller's :class:`RequestContext`; ownership and admin
checks happen here so the engines below only deal with ids.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

from credit_ledger.domain.cash_requests import CashRequest, CashRequestService
from credit_ledger.domain.common.context import RequestContext
from credit_ledger.domain.common.errors import UnauthorizedError
from credit_ledger.domain.loans import Loan, LoanService, LoanSweeper, SweepSummary
from credit_ledger.domain.members import MemberService
from credit_ledger.domain.wallets import TransferResult, WalletBalances, WalletService

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class Ledger:
    members: MemberService
    wallets: WalletService
    cash_requests: CashRequestService
    loans: LoanService
    sweeper: LoanSweeper

    async def get_balances(self, context: RequestContext, user_id: Optional[str] = None) -> WalletBalances:
        return await self.wallets.get_balances(_owner(context, user_id))

    async def transfer(
        self,
        context: RequestContext,
        from_type: str,
        to_type: str,
        amount: int,
        *,
        user_id: Optional[str] = None,
    ) -> TransferResult:
        return await self.wallets.transfer(_owner(context, user_id), from_type, to_type, amount)

    async def create_cash_request(
        self,
        context: RequestContext,
        direction: str,
        amount: int,
        payment_method: str,
        proof_ref: Optional[str] = None,
        **details: Any,
    ) -> CashRequest:
        return await self.cash_requests.create(
            context.user_id,
            direction,
            amount,
            payment_method,
            proof_ref=proof_ref,
            **details,
        )

    async def decide_cash_request(
        self,
        context: RequestContext,
        request_id: str,
        decision: str,
        reason: Optional[str] = None,
    ) -> CashRequest:
        return await self.cash_requests.decide(context, request_id, decision, reason)

    async def offer_loan(
        self,
        context: RequestContext,
        principal: int,
        interest_rate: Optional[float] = None,
        term_days: Optional[int] = None,
    ) -> Loan:
        return await self.loans.offer(context.user_id, principal, interest_rate, term_days)

    async def accept_loan(self, context: RequestContext, loan_id: str) -> Loan:
        return await self.loans.accept(loan_id, context.user_id)

    async def repay_loan(self, context: RequestContext, loan_id: str) -> Loan:
        return await self.loans.repay(loan_id, context)

    async def cancel_loan(self, context: RequestContext, loan_id: str) -> Loan:
        return await self.loans.cancel(loan_id, context.user_id)

    async def sweep_expired_loans(self, context: RequestContext) -> SweepSummary:
        if not context.is_admin:
            raise UnauthorizedError("Only administrators can run the loan sweep")
        logger.info("Loan sweep requested by %s", context.user_id)
        return await self.sweeper.sweep()


def _owner(context: RequestContext, user_id: Optional[str]) -> str:
    if user_id is None or user_id == context.user_id:
        return context.user_id
    if not context.is_admin:
        raise UnauthorizedError("Cannot act on another member's wallets")
    return user_id


__all__ = ["Ledger"]
