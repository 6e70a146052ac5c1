"""Peer-to-peer lending endpoints."""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from credit_ledger.core.security import get_current_context
from credit_ledger.domain.common.context import RequestContext
from credit_ledger.domain.ledger import Ledger
from credit_ledger.interfaces.http.deps import get_ledger
from credit_ledger.schemas import LoanEnvelope, LoanListResponse, LoanOfferRequest, LoanResponse

router = APIRouter()


def _envelope(loan) -> LoanEnvelope:
    return LoanEnvelope(loan=LoanResponse.model_validate(loan))


@router.get("/offers", response_model=LoanListResponse, summary="Open loan offers from other members")
async def list_offers(
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    context: RequestContext = Depends(get_current_context),
    ledger: Ledger = Depends(get_ledger),
) -> LoanListResponse:
    loans = await ledger.loans.list_offers(exclude_lender=context.user_id, limit=limit, offset=offset)
    return LoanListResponse(loans=[LoanResponse.model_validate(loan) for loan in loans])


@router.get("/mine", response_model=LoanListResponse, summary="Loans where the caller is lender or borrower")
async def list_my_loans(
    status_filter: Optional[str] = Query(None, alias="status"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    context: RequestContext = Depends(get_current_context),
    ledger: Ledger = Depends(get_ledger),
) -> LoanListResponse:
    loans = await ledger.loans.list_for_user(
        context.user_id, status=status_filter, limit=limit, offset=offset
    )
    return LoanListResponse(loans=[LoanResponse.model_validate(loan) for loan in loans])


@router.post("", response_model=LoanEnvelope, status_code=status.HTTP_201_CREATED, summary="Post a loan offer")
async def offer_loan(
    payload: LoanOfferRequest,
    context: RequestContext = Depends(get_current_context),
    ledger: Ledger = Depends(get_ledger),
) -> LoanEnvelope:
    loan = await ledger.offer_loan(context, payload.principal, payload.interest_rate, payload.term_days)
    return _envelope(loan)


@router.get("/{loan_id}", response_model=LoanEnvelope, summary="One loan by id")
async def get_loan(
    loan_id: str,
    context: RequestContext = Depends(get_current_context),
    ledger: Ledger = Depends(get_ledger),
) -> LoanEnvelope:
    return _envelope(await ledger.loans.get_for(context, loan_id))


@router.post("/{loan_id}/accept", response_model=LoanEnvelope, summary="Accept an open offer")
async def accept_loan(
    loan_id: str,
    context: RequestContext = Depends(get_current_context),
    ledger: Ledger = Depends(get_ledger),
) -> LoanEnvelope:
    return _envelope(await ledger.accept_loan(context, loan_id))


@router.post("/{loan_id}/repay", response_model=LoanEnvelope, summary="Repay an active loan")
async def repay_loan(
    loan_id: str,
    context: RequestContext = Depends(get_current_context),
    ledger: Ledger = Depends(get_ledger),
) -> LoanEnvelope:
    return _envelope(await ledger.repay_loan(context, loan_id))


@router.post("/{loan_id}/cancel", response_model=LoanEnvelope, summary="Withdraw an unaccepted offer")
async def cancel_loan(
    loan_id: str,
    context: RequestContext = Depends(get_current_context),
    ledger: Ledger = Depends(get_ledger),
) -> LoanEnvelope:
    return _envelope(await ledger.cancel_loan(context, loan_id))
