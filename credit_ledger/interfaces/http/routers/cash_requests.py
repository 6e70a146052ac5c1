"""Member endpoints for cash-in / cash-out requests."""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from credit_ledger.core.security import get_current_context
from credit_ledger.domain.common.context import RequestContext
from credit_ledger.domain.ledger import Ledger
from credit_ledger.interfaces.http.deps import get_ledger
from credit_ledger.schemas import (
    CashRequestCreate,
    CashRequestEnvelope,
    CashRequestListResponse,
    CashRequestResponse,
)

router = APIRouter()


@router.post(
    "",
    response_model=CashRequestEnvelope,
    status_code=status.HTTP_201_CREATED,
    summary="Submit a cash-in or cash-out request",
)
async def create_cash_request(
    payload: CashRequestCreate,
    context: RequestContext = Depends(get_current_context),
    ledger: Ledger = Depends(get_ledger),
) -> CashRequestEnvelope:
    request = await ledger.create_cash_request(
        context,
        payload.direction,
        payload.amount,
        payload.payment_method,
        payload.proof_ref,
        reference_no=payload.reference_no,
        account_name=payload.account_name,
        account_number=payload.account_number,
        pin_verified=payload.pin_verified,
    )
    return CashRequestEnvelope(request=CashRequestResponse.model_validate(request))


@router.get("", response_model=CashRequestListResponse, summary="Own cash requests")
async def list_cash_requests(
    status_filter: Optional[str] = Query(None, alias="status"),
    direction: Optional[str] = None,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    context: RequestContext = Depends(get_current_context),
    ledger: Ledger = Depends(get_ledger),
) -> CashRequestListResponse:
    requests = await ledger.cash_requests.list_for_user(
        context.user_id,
        status=status_filter,
        direction=direction,
        limit=limit,
        offset=offset,
    )
    return CashRequestListResponse(
        requests=[CashRequestResponse.model_validate(request) for request in requests]
    )


@router.get("/{request_id}", response_model=CashRequestEnvelope, summary="One cash request by id")
async def get_cash_request(
    request_id: str,
    context: RequestContext = Depends(get_current_context),
    ledger: Ledger = Depends(get_ledger),
) -> CashRequestEnvelope:
    request = await ledger.cash_requests.get_for(context, request_id)
    return CashRequestEnvelope(request=CashRequestResponse.model_validate(request))
