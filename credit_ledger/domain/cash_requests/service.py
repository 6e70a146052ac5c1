"""Cash-in / cash-out request workflow."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterable, Optional

from credit_ledger.core.config import CashSettings
from credit_ledger.domain.common.clock import Clock, as_utc, utcnow
from credit_ledger.domain.common.context import RequestContext
from credit_ledger.domain.common.errors import (
    AlreadyFinalizedError,
    CashOutBlockedError,
    InvalidInputError,
    InvalidStateError,
    NotFoundError,
    UnauthorizedError,
)
from credit_ledger.domain.notifications.sink import NotificationSink, emit
from credit_ledger.domain.wallets.coordinator import LedgerScope, TransferCoordinator
from credit_ledger.domain.wallets.models import TransactionType, WalletType
from credit_ledger.domain.wallets.service import require_amount
from credit_ledger.infrastructure.database.models import CashRequest as CashRequestModel
from credit_ledger.infrastructure.database.repositories.cash_request_repository import (
    SqlCashRequestRepository,
)
from credit_ledger.infrastructure.database.repositories.loan_repository import SqlLoanRepository
from credit_ledger.infrastructure.locks import cash_request_key, wallet_key

from .models import (
    OPEN_STATUSES,
    CashRequest,
    CashRequestStats,
    CashRequestStatus,
    Decision,
    Direction,
)

if TYPE_CHECKING:
    from credit_ledger.domain.members.service import MemberService

logger = logging.getLogger(__name__)

DEFAULT_REJECTION_REASON = "Rejected by reviewer"

# decision -> (statuses it may start from, status it lands in)
TRANSITIONS: dict[Decision, tuple[frozenset[CashRequestStatus], CashRequestStatus]] = {
    Decision.APPROVE: (
        frozenset(
            {
                CashRequestStatus.PENDING,
                CashRequestStatus.ON_HOLD,
                CashRequestStatus.FLAGGED,
                CashRequestStatus.PROCESSING,
            }
        ),
        CashRequestStatus.APPROVED,
    ),
    Decision.REJECT: (frozenset(OPEN_STATUSES), CashRequestStatus.REJECTED),
    Decision.HOLD: (frozenset({CashRequestStatus.PENDING}), CashRequestStatus.ON_HOLD),
    Decision.FLAG: (frozenset({CashRequestStatus.PENDING}), CashRequestStatus.FLAGGED),
    Decision.PROCESS: (
        frozenset({CashRequestStatus.PENDING, CashRequestStatus.ON_HOLD, CashRequestStatus.FLAGGED}),
        CashRequestStatus.PROCESSING,
    ),
    Decision.RELEASE: (
        frozenset(
            {CashRequestStatus.ON_HOLD, CashRequestStatus.FLAGGED, CashRequestStatus.PROCESSING}
        ),
        CashRequestStatus.PENDING,
    ),
}

_NON_DIGITS = re.compile(r"\D")


def normalize_account_number(value: Optional[str]) -> Optional[str]:
    """Keep digits only and mask everything but the last four."""
    if value is None or not value.strip():
        return None
    digits = _NON_DIGITS.sub("", value)
    if not 10 <= len(digits) <= 20:
        raise InvalidInputError("Account number must contain 10 to 20 digits")
    return "*" * (len(digits) - 4) + digits[-4:]


@dataclass(slots=True)
class CashRequestService:
    coordinator: TransferCoordinator
    members: MemberService
    settings: CashSettings
    sink: Optional[NotificationSink] = None
    clock: Clock = utcnow

    async def create(
        self,
        user_id: str,
        direction: str,
        amount: int,
        payment_method: str,
        *,
        proof_ref: Optional[str] = None,
        reference_no: Optional[str] = None,
        account_name: Optional[str] = None,
        account_number: Optional[str] = None,
        pin_verified: bool = False,
    ) -> CashRequest:
        amount = require_amount(amount)
        direction_value = _parse(Direction, direction, "direction")
        if payment_method not in self.settings.payment_methods:
            raise InvalidInputError(
                f"Unsupported payment method {payment_method!r}; "
                f"expected one of {list(self.settings.payment_methods)}"
            )
        fee = self._fee_for(direction_value, amount)
        masked_account = normalize_account_number(account_number)
        if direction_value is Direction.CASH_OUT and masked_account is None:
            raise InvalidInputError("Cash-out requires a destination account number")
        await self.members.require(user_id)

        now = self.clock()
        async with self.coordinator.scope(wallet_key(user_id, WalletType.MAIN.value)) as scope:
            has_active_loan = False
            if direction_value is Direction.CASH_OUT:
                has_active_loan = await SqlLoanRepository(scope.session).has_active_loan(user_id)
            model = await SqlCashRequestRepository(scope.session).create(
                user_id=user_id,
                direction=direction_value.value,
                amount=amount,
                fee_amount=fee,
                net_amount=amount - fee,
                payment_method=payment_method,
                proof_ref=proof_ref,
                reference_no=reference_no,
                account_name=account_name,
                account_number=masked_account,
                has_active_loan=has_active_loan,
                pin_verified=pin_verified,
                status=CashRequestStatus.PENDING.value,
                created_at=now,
                updated_at=now,
            )
            request = self._to_domain(model)

        logger.info(
            "Cash request %s created: %s %s amount=%d fee=%d",
            request.id,
            user_id,
            request.direction,
            amount,
            fee,
        )
        await emit(self.sink, "cash_request.created", _event_payload(request))
        return request

    async def decide(
        self,
        context: RequestContext,
        request_id: str,
        decision: str,
        reason: Optional[str] = None,
    ) -> CashRequest:
        if not context.is_admin:
            raise UnauthorizedError("Only administrators can review cash requests")
        decision_value = _parse(Decision, decision, "decision")

        current = await self.get(request_id)
        async with self.coordinator.scope(
            cash_request_key(request_id),
            wallet_key(current.user_id, WalletType.MAIN.value),
        ) as scope:
            repository = SqlCashRequestRepository(scope.session)
            model = await repository.get(request_id, for_update=True)
            if model is None:
                raise NotFoundError(f"Cash request {request_id} not found")
            status = CashRequestStatus(model.status)
            if status.is_terminal:
                raise AlreadyFinalizedError(f"Cash request {request_id} is already {status.value}")
            allowed_from, target = TRANSITIONS[decision_value]
            if status not in allowed_from:
                raise InvalidStateError(
                    f"Cannot {decision_value.value} a request that is {status.value}"
                )

            now = self.clock()
            if decision_value is Decision.APPROVE:
                await self._settle(scope, model)
                model.reviewed_by = context.user_id
                model.reviewed_at = now
            elif decision_value is Decision.PROCESS:
                if model.direction == Direction.CASH_OUT.value:
                    await self._check_cash_out(scope, model)
            elif decision_value is Decision.REJECT:
                model.rejection_reason = (reason or "").strip() or DEFAULT_REJECTION_REASON
                model.reviewed_by = context.user_id
                model.reviewed_at = now
            model.status = target.value
            model.updated_at = now
            await scope.session.flush()
            request = self._to_domain(model)

        logger.info(
            "Cash request %s: %s -> %s by %s",
            request_id,
            status.value,
            target.value,
            context.user_id,
        )
        await emit(self.sink, f"cash_request.{target.value}", _event_payload(request))
        return request

    async def approve(self, context: RequestContext, request_id: str) -> CashRequest:
        return await self.decide(context, request_id, Decision.APPROVE.value)

    async def reject(self, context: RequestContext, request_id: str, reason: Optional[str] = None) -> CashRequest:
        return await self.decide(context, request_id, Decision.REJECT.value, reason)

    async def hold(self, context: RequestContext, request_id: str) -> CashRequest:
        return await self.decide(context, request_id, Decision.HOLD.value)

    async def flag(self, context: RequestContext, request_id: str) -> CashRequest:
        return await self.decide(context, request_id, Decision.FLAG.value)

    async def get(self, request_id: str) -> CashRequest:
        async with self.coordinator.reader() as session:
            model = await SqlCashRequestRepository(session).get(request_id)
            if model is None:
                raise NotFoundError(f"Cash request {request_id} not found")
            return self._to_domain(model)

    async def get_for(self, context: RequestContext, request_id: str) -> CashRequest:
        request = await self.get(request_id)
        if request.user_id != context.user_id and not context.is_admin:
            # do not reveal other members' requests
            raise NotFoundError(f"Cash request {request_id} not found")
        return request

    async def list_for_user(
        self,
        user_id: str,
        *,
        status: Optional[str] = None,
        direction: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[CashRequest]:
        if status and status != "all":
            _parse(CashRequestStatus, status, "status")
        if direction:
            _parse(Direction, direction, "direction")
        async with self.coordinator.reader() as session:
            rows = await SqlCashRequestRepository(session).list_for_user(
                user_id, status=status, direction=direction, limit=limit, offset=offset
            )
            return [self._to_domain(row) for row in rows]

    async def list_for_review(
        self,
        context: RequestContext,
        *,
        direction: Optional[str] = None,
        statuses: Optional[Iterable[str]] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[CashRequest]:
        if not context.is_admin:
            raise UnauthorizedError("Only administrators can review cash requests")
        if direction:
            _parse(Direction, direction, "direction")
        wanted = [
            _parse(CashRequestStatus, status, "status").value
            for status in (statuses or [status.value for status in OPEN_STATUSES])
        ]
        async with self.coordinator.reader() as session:
            rows = await SqlCashRequestRepository(session).list_by_status(
                wanted, direction=direction, limit=limit, offset=offset
            )
            return [self._to_domain(row) for row in rows]

    async def stats(self) -> CashRequestStats:
        async with self.coordinator.reader() as session:
            rows = await SqlCashRequestRepository(session).counts_by_status()
        stats = CashRequestStats()
        for direction, status, count, amount in rows:
            stats.counts.setdefault(direction, {})[status] = count
            if status == CashRequestStatus.PENDING.value:
                stats.pending_amount[direction] = amount
            elif status == CashRequestStatus.APPROVED.value:
                stats.approved_amount[direction] = amount
        return stats

    async def _settle(self, scope: LedgerScope, model: CashRequestModel) -> None:
        if model.direction == Direction.CASH_IN.value:
            await scope.credit(
                model.user_id,
                WalletType.MAIN.value,
                model.amount,
                transaction_type=TransactionType.CASH_IN,
                reference_id=model.id,
                description=f"Cash-in via {model.payment_method}",
            )
            return

        await self._check_cash_out(scope, model)
        await scope.debit(
            model.user_id,
            WalletType.MAIN.value,
            model.amount,
            transaction_type=TransactionType.CASH_OUT,
            reference_id=model.id,
            description=f"Cash-out via {model.payment_method} (net {model.net_amount})",
        )

    async def _check_cash_out(self, scope: LedgerScope, model: CashRequestModel) -> None:
        """Raise :class:`CashOutBlockedError` unless the payout may leave the queue."""
        has_active_loan = await SqlLoanRepository(scope.session).has_active_loan(model.user_id)
        model.has_active_loan = has_active_loan
        if not model.pin_verified:
            raise CashOutBlockedError("Cash-out requires a verified PIN")
        if has_active_loan:
            raise CashOutBlockedError("Cash-out is blocked while the member has an active loan")

    def _fee_for(self, direction: Direction, amount: int) -> int:
        if direction is Direction.CASH_IN:
            fee, low, high = self.settings.cash_in_fee, self.settings.cash_in_min, self.settings.cash_in_max
        else:
            fee, low, high = self.settings.cash_out_fee, self.settings.cash_out_min, self.settings.cash_out_max
        if not low <= amount <= high:
            raise InvalidInputError(f"Amount must be between {low} and {high}")
        if amount <= fee:
            raise InvalidInputError(f"Amount must exceed the {fee} fee")
        return fee

    @staticmethod
    def _to_domain(model: CashRequestModel) -> CashRequest:
        return CashRequest(
            id=model.id,
            user_id=model.user_id,
            direction=model.direction,
            amount=model.amount,
            fee_amount=model.fee_amount,
            net_amount=model.net_amount,
            payment_method=model.payment_method,
            proof_ref=model.proof_ref,
            reference_no=model.reference_no,
            account_name=model.account_name,
            account_number=model.account_number,
            has_active_loan=model.has_active_loan,
            pin_verified=model.pin_verified,
            status=model.status,
            rejection_reason=model.rejection_reason,
            reviewed_by=model.reviewed_by,
            reviewed_at=as_utc(model.reviewed_at),
            created_at=as_utc(model.created_at),
            updated_at=as_utc(model.updated_at),
        )


def _parse(enum_cls, value, label: str):
    try:
        return enum_cls(value)
    except ValueError:
        allowed = [member.value for member in enum_cls]
        raise InvalidInputError(f"Invalid {label} {value!r}; expected one of {allowed}") from None


def _event_payload(request: CashRequest) -> dict:
    return {
        "id": request.id,
        "user_id": request.user_id,
        "direction": request.direction,
        "amount": request.amount,
        "status": request.status,
    }
