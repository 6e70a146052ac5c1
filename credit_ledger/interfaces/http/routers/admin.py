"""Administrative endpoints: request review, loan sweep and aggregate stats."""
from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from credit_ledger.core.security import get_current_admin
from credit_ledger.domain.common.context import RequestContext
from credit_ledger.domain.ledger import Ledger
from credit_ledger.interfaces.http.deps import get_ledger
from credit_ledger.schemas import (
    AdminStatsResponse,
    AdminWalletsResponse,
    CashDecisionRequest,
    CashRequestEnvelope,
    CashRequestListResponse,
    CashRequestResponse,
    CashRequestStatsBody,
    LoanStatsBody,
    SweepResponse,
    WalletResponse,
)

router = APIRouter()


@router.get("/cash-requests", response_model=CashRequestListResponse, summary="Review queue")
async def list_cash_requests(
    direction: Optional[str] = None,
    statuses: Optional[List[str]] = Query(None, alias="status"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    admin: RequestContext = Depends(get_current_admin),
    ledger: Ledger = Depends(get_ledger),
) -> CashRequestListResponse:
    requests = await ledger.cash_requests.list_for_review(
        admin,
        direction=direction,
        statuses=statuses,
        limit=limit,
        offset=offset,
    )
    return CashRequestListResponse(
        requests=[CashRequestResponse.model_validate(request) for request in requests]
    )


@router.post(
    "/cash-requests/{request_id}/decision",
    response_model=CashRequestEnvelope,
    summary="Approve, reject, hold, flag, process or release a request",
)
async def decide_cash_request(
    request_id: str,
    payload: CashDecisionRequest,
    admin: RequestContext = Depends(get_current_admin),
    ledger: Ledger = Depends(get_ledger),
) -> CashRequestEnvelope:
    request = await ledger.decide_cash_request(admin, request_id, payload.decision, payload.reason)
    return CashRequestEnvelope(request=CashRequestResponse.model_validate(request))


@router.get("/stats", response_model=AdminStatsResponse, summary="Aggregate ledger statistics")
async def admin_stats(
    _: RequestContext = Depends(get_current_admin),
    ledger: Ledger = Depends(get_ledger),
) -> AdminStatsResponse:
    cash_stats = await ledger.cash_requests.stats()
    loan_stats = await ledger.loans.stats()
    liquidity = await ledger.wallets.liquidity()
    return AdminStatsResponse(
        cash_requests=CashRequestStatsBody.model_validate(cash_stats),
        loans=LoanStatsBody.model_validate(loan_stats),
        liquidity=liquidity,
    )


@router.post("/loans/sweep", response_model=SweepResponse, summary="Settle overdue loans now")
async def sweep_loans(
    admin: RequestContext = Depends(get_current_admin),
    ledger: Ledger = Depends(get_ledger),
) -> SweepResponse:
    summary = await ledger.sweep_expired_loans(admin)
    return SweepResponse.model_validate(summary)


@router.get("/wallets/{user_id}", response_model=AdminWalletsResponse, summary="A member's wallets")
async def member_wallets(
    user_id: str,
    _: RequestContext = Depends(get_current_admin),
    ledger: Ledger = Depends(get_ledger),
) -> AdminWalletsResponse:
    wallets = await ledger.wallets.get_wallets(user_id)
    reconciled = await ledger.wallets.reconcile(user_id)
    return AdminWalletsResponse(
        user_id=user_id,
        wallets=[WalletResponse.model_validate(wallet) for wallet in wallets],
        reconciled=reconciled,
    )
