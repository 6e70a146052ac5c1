import asyncio

import pytest

from credit_ledger.domain.common.errors import (
    InsufficientBalanceError,
    InvalidInputError,
    NotFoundError,
)
from credit_ledger.infrastructure.locks import wallet_key
from credit_ledger.domain.wallets import TransactionType

from .conftest import fund


@pytest.mark.asyncio
async def test_transfer_moves_credit_and_writes_two_ledger_rows(container, sink):
    await fund(container, "alice", 100)

    result = await container.wallets.transfer("alice", "main", "task", 40)

    assert result.balances.as_dict() == {"main": 60, "task": 40, "royalty": 0}
    assert len(result.entry_ids) == 2
    entries = await container.wallets.list_transactions("alice")
    transfer_rows = {(entry.wallet_type, entry.amount, entry.transaction_type) for entry in entries[:2]}
    assert transfer_rows == {
        ("main", -40, TransactionType.TRANSFER_OUT.value),
        ("task", 40, TransactionType.TRANSFER_IN.value),
    }
    assert "wallet.transfer" in sink.types()


@pytest.mark.asyncio
async def test_transfer_rejects_overdraft_without_side_effects(container):
    await fund(container, "alice", 100)
    before = await container.wallets.list_transactions("alice")

    with pytest.raises(InsufficientBalanceError):
        await container.wallets.transfer("alice", "main", "royalty", 101)

    balances = await container.wallets.get_balances("alice")
    assert balances.as_dict() == {"main": 100, "task": 0, "royalty": 0}
    assert len(await container.wallets.list_transactions("alice")) == len(before)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "from_type,to_type,amount",
    [
        ("main", "main", 10),
        ("main", "escrow", 10),
        ("savings", "task", 10),
        ("main", "task", 0),
        ("main", "task", -5),
        ("main", "task", 12.5),
        ("main", "task", True),
    ],
)
async def test_transfer_input_validation(container, from_type, to_type, amount):
    await fund(container, "alice", 100)

    with pytest.raises(InvalidInputError):
        await container.wallets.transfer("alice", from_type, to_type, amount)


@pytest.mark.asyncio
async def test_unknown_member_is_not_found(container):
    with pytest.raises(NotFoundError):
        await container.wallets.get_balances("ghost")
    with pytest.raises(NotFoundError):
        await container.wallets.transfer("ghost", "main", "task", 1)


@pytest.mark.asyncio
async def test_concurrent_transfers_never_overdraw(container):
    await fund(container, "alice", 100)

    results = await asyncio.gather(
        *(container.wallets.transfer("alice", "main", "task", 30) for _ in range(5)),
        return_exceptions=True,
    )

    succeeded = [result for result in results if not isinstance(result, Exception)]
    failed = [result for result in results if isinstance(result, Exception)]
    assert len(succeeded) == 3
    assert all(isinstance(error, InsufficientBalanceError) for error in failed)
    balances = await container.wallets.get_balances("alice")
    assert balances.as_dict() == {"main": 10, "task": 90, "royalty": 0}
    assert balances.total == 100


@pytest.mark.asyncio
async def test_balances_match_ledger_after_mixed_activity(container):
    await fund(container, "alice", 500)
    await container.wallets.transfer("alice", "main", "task", 120)
    await container.wallets.transfer("alice", "task", "royalty", 20)
    await container.wallets.transfer("alice", "royalty", "main", 5)

    reconciled = await container.wallets.reconcile("alice")

    assert reconciled == {"main": True, "task": True, "royalty": True}
    liquidity = await container.wallets.liquidity()
    assert liquidity["main"] + liquidity["task"] + liquidity["royalty"] == 500


@pytest.mark.asyncio
async def test_failed_scope_rolls_back_every_write(container):
    await fund(container, "alice", 100)

    with pytest.raises(InsufficientBalanceError):
        async with container.coordinator.scope(
            wallet_key("alice", "main"), wallet_key("alice", "task")
        ) as scope:
            await scope.move(
                source=("alice", "main"),
                target=("alice", "task"),
                amount=60,
                out_type=TransactionType.TRANSFER_OUT,
                in_type=TransactionType.TRANSFER_IN,
            )
            await scope.debit("alice", "main", 60, transaction_type=TransactionType.CASH_OUT)

    balances = await container.wallets.get_balances("alice")
    assert balances.as_dict() == {"main": 100, "task": 0, "royalty": 0}


@pytest.mark.asyncio
async def test_scope_refuses_wallets_it_did_not_lock(container):
    await fund(container, "alice", 100)

    with pytest.raises(RuntimeError):
        async with container.coordinator.scope(wallet_key("alice", "main")) as scope:
            await scope.wallet("alice", "task")
