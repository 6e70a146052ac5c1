import asyncio

import pytest

from credit_ledger.domain.common.context import RequestContext
from credit_ledger.domain.common.errors import UnauthorizedError
from credit_ledger.domain.loans import SweepScheduler

from .conftest import ADMIN, fund


async def _active_loan(container, borrower_funds: int, principal: int = 1000):
    await fund(container, "lender", principal)
    await fund(container, "borrower", borrower_funds)
    loan = await container.loans.offer("lender", principal, 0.03, 7)
    return await container.loans.accept(loan.id, "borrower")


@pytest.mark.asyncio
async def test_sweep_ignores_loans_not_yet_due(container, clock):
    await _active_loan(container, 500)
    clock.advance(days=6)

    summary = await container.sweeper.sweep()

    assert (summary.repaid_count, summary.defaulted_count) == (0, 0)


@pytest.mark.asyncio
async def test_sweep_repays_overdue_loan_when_funded(container, clock, sink):
    loan = await _active_loan(container, 500)
    clock.advance(days=7, seconds=1)

    summary = await container.sweeper.sweep()

    assert summary.repaid_count == 1
    assert summary.total_repaid == loan.total_repayment
    assert (await container.loans.get(loan.id)).status == "repaid"
    assert (await container.wallets.get_balances("lender")).main == loan.total_repayment
    assert "loan.repaid" in sink.types()


@pytest.mark.asyncio
async def test_sweep_defaults_when_borrower_is_short(container, clock, sink):
    loan = await _active_loan(container, 100)
    await container.wallets.transfer("borrower", "main", "task", 1000)
    clock.advance(days=8)

    summary = await container.sweeper.sweep()

    assert summary.defaulted_count == 1
    settled = await container.loans.get(loan.id)
    assert settled.status == "defaulted"
    assert settled.defaulted_at == clock.now
    # no recovery: the lender keeps the loss, the borrower keeps the credit
    assert (await container.wallets.get_balances("lender")).main == 0
    borrower = await container.wallets.get_balances("borrower")
    assert (borrower.main, borrower.task) == (100, 1000)
    assert "loan.defaulted" in sink.types()


@pytest.mark.asyncio
async def test_sweep_is_idempotent(container, clock):
    await _active_loan(container, 500)
    clock.advance(days=8)

    first = await container.sweeper.sweep()
    second = await container.sweeper.sweep()

    assert first.repaid_count == 1
    assert (second.repaid_count, second.defaulted_count, second.total_repaid) == (0, 0, 0)
    assert (await container.wallets.get_balances("lender")).main == 1022


@pytest.mark.asyncio
async def test_overlapping_sweeps_skip(container, clock):
    await _active_loan(container, 500)
    clock.advance(days=8)

    first, second = await asyncio.gather(container.sweeper.sweep(), container.sweeper.sweep())

    assert sorted([first.skipped, second.skipped]) == [False, True]
    assert first.repaid_count + second.repaid_count == 1


@pytest.mark.asyncio
async def test_sweep_through_ledger_requires_admin(container):
    with pytest.raises(UnauthorizedError):
        await container.ledger.sweep_expired_loans(RequestContext(user_id="alice"))
    summary = await container.ledger.sweep_expired_loans(ADMIN)
    assert summary.errors == []


@pytest.mark.asyncio
async def test_scheduler_runs_sweeps_in_background(container, clock):
    await _active_loan(container, 500)
    clock.advance(days=8)
    scheduler = SweepScheduler(container.sweeper, interval=0.01)

    scheduler.start()
    try:
        for _ in range(100):
            if (await container.loans.stats()).counts.get("repaid"):
                break
            await asyncio.sleep(0.02)
    finally:
        await scheduler.stop()

    assert (await container.loans.stats()).counts == {"repaid": 1}
