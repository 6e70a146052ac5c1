import asyncio

import pytest

from credit_ledger.infrastructure.locks import wallet_key


@pytest.mark.asyncio
async def test_ensure_registers_unknown_member(container):
    member = await container.members.ensure("alice", "member")

    assert member.id == "alice"
    assert member.role == "member"
    assert member.is_active


@pytest.mark.asyncio
async def test_ensure_known_member_does_not_wait_for_writers(container):
    await container.members.register("alice", "member")

    async with container.coordinator.scope(wallet_key("bob", "main")):
        member = await asyncio.wait_for(container.members.ensure("alice", "member"), 1)

    assert member.role == "member"


@pytest.mark.asyncio
async def test_ensure_updates_changed_role(container):
    await container.members.register("alice", "member")

    member = await container.members.ensure("alice", "admin")

    assert member.role == "admin"
    assert (await container.members.get("alice")).role == "admin"
