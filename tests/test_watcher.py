import asyncio

import pytest

from credit_ledger.client import StatusWatcher
from credit_ledger.domain.common.errors import ConflictError


class Source:
    def __init__(self):
        self.items = []
        self.fail = False

    async def __call__(self):
        if self.fail:
            raise ConflictError("offline")
        return [dict(item) for item in self.items]


@pytest.mark.asyncio
async def test_status_changes_are_reported_once():
    source = Source()
    events = []
    watcher = StatusWatcher(source, lambda event_type, payload: events.append((event_type, payload)))

    source.items = [{"id": "r1", "status": "pending"}]
    assert await watcher.poll_once() == []

    source.items = [{"id": "r1", "status": "approved"}, {"id": "r2", "status": "pending"}]
    changes = await watcher.poll_once()
    assert [(change["id"], change["previous_status"], change["status"]) for change in changes] == [
        ("r1", "pending", "approved")
    ]
    assert events[0][0] == "status_changed"

    assert await watcher.poll_once() == []
    assert watcher.known == {"r1": "approved", "r2": "pending"}


@pytest.mark.asyncio
async def test_background_polling_survives_errors():
    source = Source()
    events = []
    watcher = StatusWatcher(
        source, lambda event_type, payload: events.append(payload), interval=0.01, kind="loan"
    )
    source.items = [{"id": "l1", "status": "active"}]

    watcher.start()
    try:
        await asyncio.sleep(0.03)
        source.fail = True
        await asyncio.sleep(0.03)
        source.fail = False
        source.items = [{"id": "l1", "status": "repaid"}]
        for _ in range(50):
            if events:
                break
            await asyncio.sleep(0.01)
    finally:
        await watcher.stop()

    assert events and events[0]["kind"] == "loan"
    assert events[0]["status"] == "repaid"
    assert not watcher.running


def test_poll_interval_comes_from_settings(settings):
    watcher = StatusWatcher.from_settings(Source(), lambda *_: None, settings, kind="loan")

    assert watcher.interval == settings.client.poll_interval_seconds
    assert watcher.kind == "loan"
