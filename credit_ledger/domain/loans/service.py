"""Loan lifecycle: offer, accept, repay, cancel and expiry settlement."""

from __future__ import annotations

import logging
import math
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import ROUND_FLOOR, Decimal
from typing import TYPE_CHECKING, Optional

from credit_ledger.core.config import LoanSettings
from credit_ledger.domain.common.clock import Clock, as_utc, utcnow
from credit_ledger.domain.common.context import RequestContext
from credit_ledger.domain.common.errors import (
    AlreadyAcceptedError,
    InsufficientBalanceError,
    InvalidInputError,
    InvalidStateError,
    NotFoundError,
    UnauthorizedError,
)
from credit_ledger.domain.notifications.sink import NotificationSink, emit
from credit_ledger.domain.wallets.coordinator import TransferCoordinator
from credit_ledger.domain.wallets.models import TransactionType, WalletType
from credit_ledger.domain.wallets.service import require_amount
from credit_ledger.infrastructure.database.models import Loan as LoanModel
from credit_ledger.infrastructure.database.repositories.loan_repository import SqlLoanRepository
from credit_ledger.infrastructure.locks import loan_key, wallet_key

from .models import Loan, LoanStats, LoanStatus, LoanTerms

if TYPE_CHECKING:
    from credit_ledger.domain.members.service import MemberService

logger = logging.getLogger(__name__)

MAIN = WalletType.MAIN.value
ESCROW = WalletType.ESCROW.value
RATE_QUANTUM = Decimal("0.0001")


@dataclass(slots=True)
class LoanService:
    coordinator: TransferCoordinator
    members: MemberService
    settings: LoanSettings
    sink: Optional[NotificationSink] = None
    clock: Clock = utcnow

    def quote(self, principal: int, interest_rate: Optional[float] = None) -> LoanTerms:
        principal = self._check_principal(principal)
        rate = self._check_rate(interest_rate)
        return LoanTerms.compute(principal, rate, self.settings.processing_fee_rate)

    async def offer(
        self,
        lender_id: str,
        principal: int,
        interest_rate: Optional[float] = None,
        term_days: Optional[int] = None,
    ) -> Loan:
        terms = self.quote(principal, interest_rate)
        term = self._check_term(term_days)
        await self.members.require(lender_id)

        loan_id = str(uuid.uuid4())
        async with self.coordinator.scope(
            loan_key(loan_id),
            wallet_key(lender_id, MAIN),
            wallet_key(lender_id, ESCROW),
        ) as scope:
            _, escrow = await scope.move(
                source=(lender_id, MAIN),
                target=(lender_id, ESCROW),
                amount=terms.principal,
                out_type=TransactionType.LOAN_ESCROW_OUT,
                in_type=TransactionType.LOAN_ESCROW_IN,
                reference_id=loan_id,
                description="Loan offer escrow",
            )
            model = await SqlLoanRepository(scope.session).create(
                id=loan_id,
                lender_id=lender_id,
                principal_amount=terms.principal,
                interest_rate=terms.interest_rate,
                interest_amount=terms.interest_amount,
                processing_fee=terms.processing_fee,
                total_repayment=terms.total_repayment,
                term_days=term,
                status=LoanStatus.PENDING.value,
                escrow_wallet_id=escrow.id,
                created_at=self.clock(),
            )
            loan = self._to_domain(model)

        logger.info(
            "Loan %s offered by %s: principal=%d total=%d term=%dd",
            loan.id,
            lender_id,
            loan.principal_amount,
            loan.total_repayment,
            term,
        )
        await emit(self.sink, "loan.offered", _event_payload(loan))
        return loan

    async def accept(self, loan_id: str, borrower_id: str) -> Loan:
        current = await self.get(loan_id)
        if current.lender_id == borrower_id:
            raise InvalidInputError("Lenders cannot accept their own offer")
        _check_acceptable(current.status, current.borrower_id)
        await self.members.require(borrower_id)

        async with self.coordinator.scope(
            loan_key(loan_id),
            wallet_key(current.lender_id, ESCROW),
            wallet_key(borrower_id, MAIN),
        ) as scope:
            repository = SqlLoanRepository(scope.session)
            model = await repository.get(loan_id, for_update=True)
            if model is None:
                raise NotFoundError(f"Loan {loan_id} not found")
            _check_acceptable(model.status, model.borrower_id)

            accepted_at = self.clock()
            due_at = accepted_at + timedelta(days=model.term_days)
            claimed = await repository.claim(
                loan_id, borrower_id=borrower_id, accepted_at=accepted_at, due_at=due_at
            )
            if not claimed:
                raise AlreadyAcceptedError(f"Loan {loan_id} was accepted by another borrower")
            await scope.move(
                source=(model.lender_id, ESCROW),
                target=(borrower_id, MAIN),
                amount=model.principal_amount,
                out_type=TransactionType.LOAN_DISBURSEMENT,
                in_type=TransactionType.LOAN_DISBURSEMENT,
                reference_id=loan_id,
                description="Loan disbursement",
            )
            await scope.session.refresh(model)
            loan = self._to_domain(model)

        logger.info("Loan %s accepted by %s, due %s", loan_id, borrower_id, loan.due_at)
        await emit(self.sink, "loan.accepted", _event_payload(loan))
        return loan

    async def repay(self, loan_id: str, actor: Optional[RequestContext] = None) -> Loan:
        current = await self.get(loan_id)
        if actor is not None and not actor.is_admin and actor.user_id != current.borrower_id:
            raise UnauthorizedError("Only the borrower can repay this loan")
        if current.status != LoanStatus.ACTIVE.value:
            raise InvalidStateError(f"Loan {loan_id} is {current.status}, not active")
        borrower_id = current.borrower_id
        if borrower_id is None:
            raise InvalidStateError(f"Loan {loan_id} is active without a borrower")

        async with self.coordinator.scope(
            loan_key(loan_id),
            wallet_key(borrower_id, MAIN),
            wallet_key(current.lender_id, MAIN),
        ) as scope:
            model = await SqlLoanRepository(scope.session).get(loan_id, for_update=True)
            if model is None:
                raise NotFoundError(f"Loan {loan_id} not found")
            if model.status != LoanStatus.ACTIVE.value:
                raise InvalidStateError(f"Loan {loan_id} is {model.status}, not active")
            await self._collect(scope, model)
            model.status = LoanStatus.REPAID.value
            model.repaid_at = self.clock()
            await scope.session.flush()
            loan = self._to_domain(model)

        logger.info("Loan %s repaid: %d to %s", loan_id, loan.total_repayment, loan.lender_id)
        await emit(self.sink, "loan.repaid", _event_payload(loan))
        return loan

    async def cancel(self, loan_id: str, lender_id: str) -> Loan:
        current = await self.get(loan_id)
        if current.lender_id != lender_id:
            raise UnauthorizedError("Only the lender can cancel this offer")
        if current.status != LoanStatus.PENDING.value:
            raise InvalidStateError(f"Loan {loan_id} is {current.status}, not pending")

        async with self.coordinator.scope(
            loan_key(loan_id),
            wallet_key(lender_id, ESCROW),
            wallet_key(lender_id, MAIN),
        ) as scope:
            model = await SqlLoanRepository(scope.session).get(loan_id, for_update=True)
            if model is None:
                raise NotFoundError(f"Loan {loan_id} not found")
            if model.status != LoanStatus.PENDING.value or model.borrower_id is not None:
                raise InvalidStateError(f"Loan {loan_id} is {model.status}, not pending")
            await scope.move(
                source=(lender_id, ESCROW),
                target=(lender_id, MAIN),
                amount=model.principal_amount,
                out_type=TransactionType.ESCROW_REFUND_OUT,
                in_type=TransactionType.ESCROW_REFUND_IN,
                reference_id=loan_id,
                description="Loan offer cancelled",
            )
            model.status = LoanStatus.CANCELLED.value
            model.cancelled_at = self.clock()
            await scope.session.flush()
            loan = self._to_domain(model)

        logger.info("Loan %s cancelled by %s", loan_id, lender_id)
        await emit(self.sink, "loan.cancelled", _event_payload(loan))
        return loan

    async def settle_expired(self, loan_id: str, now: datetime) -> tuple[str, int]:
        """Repay or default one overdue loan.

        Returns ``(outcome, amount)`` where outcome is ``repaid``,
        ``defaulted`` or ``skipped`` (no longer active or not yet due).
        """
        current = await self.get(loan_id)
        if current.status != LoanStatus.ACTIVE.value or current.borrower_id is None:
            return "skipped", 0

        async with self.coordinator.scope(
            loan_key(loan_id),
            wallet_key(current.borrower_id, MAIN),
            wallet_key(current.lender_id, MAIN),
        ) as scope:
            model = await SqlLoanRepository(scope.session).get(loan_id, for_update=True)
            due_at = as_utc(model.due_at) if model is not None else None
            if model is None or model.status != LoanStatus.ACTIVE.value or due_at is None or due_at >= now:
                return "skipped", 0
            try:
                await self._collect(scope, model)
            except InsufficientBalanceError:
                # the balance check runs before any write, so the transaction is still clean
                model.status = LoanStatus.DEFAULTED.value
                model.defaulted_at = now
                outcome, amount = "defaulted", 0
            else:
                model.status = LoanStatus.REPAID.value
                model.repaid_at = now
                outcome, amount = "repaid", model.total_repayment
            await scope.session.flush()
            loan = self._to_domain(model)

        logger.info("Expired loan %s %s", loan_id, outcome)
        await emit(self.sink, f"loan.{outcome}", _event_payload(loan))
        return outcome, amount

    async def expired_loan_ids(self, now: datetime) -> list[str]:
        async with self.coordinator.reader() as session:
            return await SqlLoanRepository(session).list_expired_ids(now)

    async def get(self, loan_id: str) -> Loan:
        async with self.coordinator.reader() as session:
            model = await SqlLoanRepository(session).get(loan_id)
            if model is None:
                raise NotFoundError(f"Loan {loan_id} not found")
            return self._to_domain(model)

    async def get_for(self, context: RequestContext, loan_id: str) -> Loan:
        loan = await self.get(loan_id)
        visible = (
            context.is_admin
            or context.user_id in (loan.lender_id, loan.borrower_id)
            or loan.status == LoanStatus.PENDING.value
        )
        if not visible:
            raise NotFoundError(f"Loan {loan_id} not found")
        return loan

    async def list_offers(
        self, *, exclude_lender: Optional[str] = None, limit: int = 50, offset: int = 0
    ) -> list[Loan]:
        async with self.coordinator.reader() as session:
            rows = await SqlLoanRepository(session).list_offers(
                exclude_lender=exclude_lender, limit=limit, offset=offset
            )
            return [self._to_domain(row) for row in rows]

    async def list_for_user(
        self, user_id: str, *, status: Optional[str] = None, limit: int = 50, offset: int = 0
    ) -> list[Loan]:
        if status and status != "all":
            try:
                LoanStatus(status)
            except ValueError:
                raise InvalidInputError(f"Invalid loan status {status!r}") from None
        async with self.coordinator.reader() as session:
            rows = await SqlLoanRepository(session).list_for_user(
                user_id, status=status, limit=limit, offset=offset
            )
            return [self._to_domain(row) for row in rows]

    async def stats(self) -> LoanStats:
        async with self.coordinator.reader() as session:
            rows = await SqlLoanRepository(session).counts_by_status()
        stats = LoanStats()
        for status, count, principal in rows:
            stats.counts[status] = count
            if status == LoanStatus.ACTIVE.value:
                stats.outstanding_principal = principal
            elif status == LoanStatus.PENDING.value:
                stats.escrowed_principal = principal
        return stats

    async def _collect(self, scope, model: LoanModel) -> None:
        await scope.move(
            source=(model.borrower_id, MAIN),
            target=(model.lender_id, MAIN),
            amount=model.total_repayment,
            out_type=TransactionType.LOAN_REPAYMENT_OUT,
            in_type=TransactionType.LOAN_REPAYMENT_IN,
            reference_id=model.id,
            description="Loan repayment",
        )

    def _check_principal(self, principal: int) -> int:
        principal = require_amount(principal)
        low, high = self.settings.min_principal, self.settings.max_principal
        if not low <= principal <= high:
            raise InvalidInputError(f"Principal must be between {low} and {high}")
        return principal

    def _check_rate(self, interest_rate: Optional[float]) -> float:
        if interest_rate is None:
            interest_rate = self.settings.default_interest_rate
        if isinstance(interest_rate, bool) or not isinstance(interest_rate, (int, float)):
            raise InvalidInputError("Interest rate must be a number")
        if not math.isfinite(interest_rate) or interest_rate < 0:
            raise InvalidInputError("Interest rate must be zero or positive")
        if interest_rate > self.settings.max_interest_rate:
            raise InvalidInputError(f"Interest rate may not exceed {self.settings.max_interest_rate}")
        # stored with four decimal places
        return float(Decimal(str(interest_rate)).quantize(RATE_QUANTUM, rounding=ROUND_FLOOR))

    def _check_term(self, term_days: Optional[int]) -> int:
        if term_days is None:
            return self.settings.default_term_days
        if isinstance(term_days, bool) or not isinstance(term_days, int) or term_days <= 0:
            raise InvalidInputError("Term must be a positive number of days")
        return term_days

    @staticmethod
    def _to_domain(model: LoanModel) -> Loan:
        return Loan(
            id=model.id,
            lender_id=model.lender_id,
            borrower_id=model.borrower_id,
            principal_amount=model.principal_amount,
            interest_rate=float(model.interest_rate),
            interest_amount=model.interest_amount,
            processing_fee=model.processing_fee,
            total_repayment=model.total_repayment,
            term_days=model.term_days,
            status=model.status,
            escrow_wallet_id=model.escrow_wallet_id,
            created_at=as_utc(model.created_at),
            accepted_at=as_utc(model.accepted_at),
            due_at=as_utc(model.due_at),
            repaid_at=as_utc(model.repaid_at),
            defaulted_at=as_utc(model.defaulted_at),
            cancelled_at=as_utc(model.cancelled_at),
        )


def _check_acceptable(status: str, borrower_id: Optional[str]) -> None:
    if status == LoanStatus.PENDING.value and borrower_id is None:
        return
    if status == LoanStatus.ACTIVE.value or (status == LoanStatus.PENDING.value and borrower_id):
        raise AlreadyAcceptedError("Loan offer was already accepted")
    raise InvalidStateError(f"Loan is {status} and can no longer be accepted")


def _event_payload(loan: Loan) -> dict:
    return {
        "id": loan.id,
        "lender_id": loan.lender_id,
        "borrower_id": loan.borrower_id,
        "principal_amount": loan.principal_amount,
        "total_repayment": loan.total_repayment,
        "status": loan.status,
    }
