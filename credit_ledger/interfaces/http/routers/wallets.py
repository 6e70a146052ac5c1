"""Member wallet endpoints: balances, history and internal transfers."""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query

from credit_ledger.core.security import get_current_context
from credit_ledger.domain.common.context import RequestContext
from credit_ledger.domain.ledger import Ledger
from credit_ledger.interfaces.http.deps import get_ledger
from credit_ledger.schemas import (
    LedgerEntryListResponse,
    LedgerEntryResponse,
    TransferRequest,
    TransferResponse,
    WalletBalancesResponse,
)

router = APIRouter()


@router.get("", response_model=WalletBalancesResponse, summary="Current wallet balances")
async def get_balances(
    context: RequestContext = Depends(get_current_context),
    ledger: Ledger = Depends(get_ledger),
) -> WalletBalancesResponse:
    balances = await ledger.get_balances(context)
    return WalletBalancesResponse.model_validate(balances)


@router.get("/transactions", response_model=LedgerEntryListResponse, summary="Ledger history, newest first")
async def list_transactions(
    wallet_type: Optional[str] = None,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    context: RequestContext = Depends(get_current_context),
    ledger: Ledger = Depends(get_ledger),
) -> LedgerEntryListResponse:
    entries = await ledger.wallets.list_transactions(context.user_id, wallet_type, limit, offset)
    return LedgerEntryListResponse(
        transactions=[LedgerEntryResponse.model_validate(entry) for entry in entries]
    )


@router.post("/transfer", response_model=TransferResponse, summary="Move credit between own wallets")
async def transfer(
    payload: TransferRequest,
    context: RequestContext = Depends(get_current_context),
    ledger: Ledger = Depends(get_ledger),
) -> TransferResponse:
    result = await ledger.transfer(context, payload.from_type, payload.to_type, payload.amount)
    return TransferResponse(
        from_type=result.from_type,
        to_type=result.to_type,
        amount=result.amount,
        balances=result.balances.as_dict(),
        entry_ids=result.entry_ids,
    )
