import logging

import pytest

from credit_ledger.core.container import ApplicationContainer
from credit_ledger.domain.notifications import (
    ADMIN_CHANNEL,
    ChangeFeed,
    FeedEvent,
    FeedNotificationSink,
    emit,
)
from credit_ledger.infrastructure.database import init_db

from .conftest import fund


class ExplodingSink:
    async def notify(self, event_type, payload):
        raise RuntimeError("sink down")


@pytest.mark.asyncio
async def test_feed_sink_fans_out_to_parties_and_admins():
    feed = ChangeFeed()
    lender = feed.subscribe("lender")
    borrower = feed.subscribe("borrower")
    admin = feed.subscribe(ADMIN_CHANNEL)
    bystander = feed.subscribe("someone-else")

    await FeedNotificationSink(feed).notify(
        "loan.accepted", {"id": "loan-1", "lender_id": "lender", "borrower_id": "borrower"}
    )

    for queue in (lender, borrower, admin):
        event = queue.get_nowait()
        assert event.event_type == "loan.accepted"
        assert event.as_message()["data"]["id"] == "loan-1"
    assert bystander.empty()


def test_full_queue_drops_oldest_event():
    feed = ChangeFeed(queue_size=2)
    queue = feed.subscribe("alice")

    for index in range(3):
        feed.publish("alice", FeedEvent(event_type="tick", payload={"n": index}))

    assert [queue.get_nowait().payload["n"] for _ in range(2)] == [1, 2]


def test_unsubscribe_removes_channel():
    feed = ChangeFeed()
    queue = feed.subscribe("alice")
    assert feed.subscriber_count("alice") == 1

    feed.unsubscribe("alice", queue)

    assert feed.subscriber_count() == 0
    assert feed.publish("alice", FeedEvent(event_type="tick", payload={})) == 0


@pytest.mark.asyncio
async def test_emit_logs_and_swallows_sink_failures(caplog):
    with caplog.at_level(logging.ERROR):
        await emit(ExplodingSink(), "wallet.transfer", {"user_id": "alice"})
    await emit(None, "wallet.transfer", {"user_id": "alice"})

    assert "wallet.transfer" in caplog.text


@pytest.mark.asyncio
async def test_ledger_operations_survive_a_failing_sink(settings, clock):
    container = ApplicationContainer.from_settings(settings, clock=clock, sink=ExplodingSink())
    await init_db(container.engine)
    try:
        await fund(container, "alice", 100)
        result = await container.wallets.transfer("alice", "main", "task", 10)
    finally:
        await container.shutdown()

    assert result.balances.main == 90
