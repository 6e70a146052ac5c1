import asyncio
from datetime import timedelta

import pytest
from sqlalchemy import update

from credit_ledger.domain.common.context import RequestContext
from credit_ledger.domain.common.errors import (
    AlreadyAcceptedError,
    InsufficientBalanceError,
    InvalidInputError,
    InvalidStateError,
    UnauthorizedError,
)
from credit_ledger.domain.loans import LoanTerms
from credit_ledger.infrastructure.database.models import Loan as LoanRow

from .conftest import fund


async def _balances(container, *user_ids):
    return {user_id: (await container.wallets.get_balances(user_id)).main for user_id in user_ids}


async def _escrow(container, user_id):
    wallets = await container.wallets.get_wallets(user_id)
    return next((wallet.balance for wallet in wallets if wallet.wallet_type == "escrow"), 0)


def test_terms_floor_interest_then_subtract_fee():
    terms = LoanTerms.compute(1000, 0.03, 0.008)
    assert (terms.interest_amount, terms.processing_fee, terms.total_repayment) == (30, 8, 1022)

    no_fee = LoanTerms.compute(1000, 0.03, 0)
    assert no_fee.total_repayment == 1030

    odd = LoanTerms.compute(333, 0.0333, 0.008)
    assert (odd.interest_amount, odd.processing_fee) == (11, 2)


@pytest.mark.asyncio
async def test_offer_moves_principal_into_escrow(container, sink):
    await fund(container, "lender", 1500)

    loan = await container.loans.offer("lender", 1000, 0.03, 7)

    assert loan.status == "pending"
    assert loan.interest_amount == 30
    assert loan.total_repayment == 1022
    assert (await _balances(container, "lender"))["lender"] == 500
    assert await _escrow(container, "lender") == 1000
    assert "loan.offered" in sink.types()


@pytest.mark.asyncio
async def test_offer_requires_funds(container):
    await fund(container, "lender", 500)

    with pytest.raises(InsufficientBalanceError):
        await container.loans.offer("lender", 1000)
    assert (await _balances(container, "lender"))["lender"] == 500


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "principal,rate,term",
    [(50, None, None), (1000, -0.1, None), (1000, 2.0, None), (1000, None, 0), (1000.5, None, None)],
)
async def test_offer_validation(container, principal, rate, term):
    await fund(container, "lender", 5000)

    with pytest.raises(InvalidInputError):
        await container.loans.offer("lender", principal, rate, term)


@pytest.mark.asyncio
async def test_accept_disburses_and_sets_due_date(container, clock):
    await fund(container, "lender", 1000)
    await container.members.register("borrower")
    loan = await container.loans.offer("lender", 1000, 0.03, 7)

    accepted = await container.loans.accept(loan.id, "borrower")

    assert accepted.status == "active"
    assert accepted.borrower_id == "borrower"
    assert accepted.due_at == accepted.accepted_at + timedelta(days=7)
    assert accepted.accepted_at == clock.now
    assert (await _balances(container, "borrower"))["borrower"] == 1000
    assert await _escrow(container, "lender") == 0


@pytest.mark.asyncio
async def test_concurrent_accepts_have_one_winner(container):
    await fund(container, "lender", 1000)
    for borrower in ("b1", "b2", "b3"):
        await container.members.register(borrower)
    loan = await container.loans.offer("lender", 1000)

    results = await asyncio.gather(
        *(container.loans.accept(loan.id, borrower) for borrower in ("b1", "b2", "b3")),
        return_exceptions=True,
    )

    winners = [result for result in results if not isinstance(result, Exception)]
    losers = [result for result in results if isinstance(result, Exception)]
    assert len(winners) == 1
    assert all(isinstance(error, AlreadyAcceptedError) for error in losers)
    total = sum((await _balances(container, "b1", "b2", "b3")).values())
    assert total == 1000


@pytest.mark.asyncio
async def test_lender_cannot_accept_own_offer(container):
    await fund(container, "lender", 1000)
    loan = await container.loans.offer("lender", 1000)

    with pytest.raises(InvalidInputError):
        await container.loans.accept(loan.id, "lender")


@pytest.mark.asyncio
async def test_repay_moves_total_to_lender(container):
    await fund(container, "lender", 1000)
    await fund(container, "borrower", 100)
    loan = await container.loans.offer("lender", 1000, 0.03, 7)
    await container.loans.accept(loan.id, "borrower")

    repaid = await container.loans.repay(loan.id, RequestContext(user_id="borrower"))

    assert repaid.status == "repaid"
    assert await _balances(container, "lender", "borrower") == {"lender": 1022, "borrower": 78}
    with pytest.raises(InvalidStateError):
        await container.loans.repay(loan.id)


@pytest.mark.asyncio
async def test_only_borrower_repays(container):
    await fund(container, "lender", 1000)
    await fund(container, "borrower", 100)
    loan = await container.loans.offer("lender", 1000)
    await container.loans.accept(loan.id, "borrower")

    with pytest.raises(UnauthorizedError):
        await container.loans.repay(loan.id, RequestContext(user_id="lender"))


@pytest.mark.asyncio
async def test_repay_rejects_active_loan_without_borrower(container):
    await fund(container, "lender", 1000)
    loan = await container.loans.offer("lender", 1000)
    async with container.session_factory() as session, session.begin():
        await session.execute(update(LoanRow).where(LoanRow.id == loan.id).values(status="active"))

    with pytest.raises(InvalidStateError):
        await container.loans.repay(loan.id)

    assert (await _balances(container, "lender"))["lender"] == 0


@pytest.mark.asyncio
async def test_cancel_refunds_escrow(container):
    await fund(container, "lender", 1000)
    loan = await container.loans.offer("lender", 1000)

    with pytest.raises(UnauthorizedError):
        await container.loans.cancel(loan.id, "someone-else")
    cancelled = await container.loans.cancel(loan.id, "lender")

    assert cancelled.status == "cancelled"
    assert (await _balances(container, "lender"))["lender"] == 1000
    assert await _escrow(container, "lender") == 0
    with pytest.raises(InvalidStateError):
        await container.loans.accept(loan.id, "lender-2")


@pytest.mark.asyncio
async def test_cancel_racing_accept_conserves_principal(container):
    await fund(container, "lender", 1000)
    await container.members.register("borrower")
    loan = await container.loans.offer("lender", 1000)

    results = await asyncio.gather(
        container.loans.cancel(loan.id, "lender"),
        container.loans.accept(loan.id, "borrower"),
        return_exceptions=True,
    )

    assert sum(1 for result in results if not isinstance(result, Exception)) == 1
    balances = await _balances(container, "lender", "borrower")
    assert balances["lender"] + balances["borrower"] + await _escrow(container, "lender") == 1000


@pytest.mark.asyncio
async def test_loan_listing_and_visibility(container):
    await fund(container, "lender", 2000)
    await container.members.register("borrower")
    first = await container.loans.offer("lender", 1000)
    second = await container.loans.offer("lender", 500)
    await container.loans.accept(first.id, "borrower")

    offers = await container.loans.list_offers(exclude_lender="borrower")
    assert [loan.id for loan in offers] == [second.id]
    assert await container.loans.list_offers(exclude_lender="lender") == []

    mine = await container.loans.list_for_user("borrower")
    assert [loan.id for loan in mine] == [first.id]

    stats = await container.loans.stats()
    assert stats.counts == {"active": 1, "pending": 1}
    assert stats.outstanding_principal == 1000
    assert stats.escrowed_principal == 500
