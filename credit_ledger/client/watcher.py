"""Polling watcher that reports status changes of cash requests and loans."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Iterable, Optional

from credit_ledger.core.config import Settings
from credit_ledger.domain.common.errors import LedgerError

logger = logging.getLogger(__name__)

Fetch = Callable[[], Awaitable[Iterable[dict[str, Any]]]]
EventSink = Callable[[str, dict[str, Any]], None]


class StatusWatcher:
    """Poll ``fetch`` and emit ``status_changed`` when a known item moves to a new status."""

    def __init__(
        self,
        fetch: Fetch,
        on_event: EventSink,
        *,
        interval: float = 15.0,
        kind: str = "cash_request",
    ) -> None:
        self.fetch = fetch
        self.on_event = on_event
        self.interval = interval
        self.kind = kind
        self._statuses: dict[str, str] = {}
        self._task: Optional[asyncio.Task] = None

    @classmethod
    def from_settings(cls, fetch: Fetch, on_event: EventSink, settings: Settings, **kwargs: Any) -> "StatusWatcher":
        return cls(fetch, on_event, interval=settings.client.poll_interval_seconds, **kwargs)

    @property
    def known(self) -> dict[str, str]:
        return dict(self._statuses)

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def poll_once(self) -> list[dict[str, Any]]:
        items = await self.fetch()
        changes: list[dict[str, Any]] = []
        for item in items:
            item_id = str(item["id"])
            current = item["status"]
            previous = self._statuses.get(item_id)
            self._statuses[item_id] = current
            if previous is None or previous == current:
                continue
            change = {
                "kind": self.kind,
                "id": item_id,
                "previous_status": previous,
                "status": current,
                "item": item,
            }
            changes.append(change)
            self.on_event("status_changed", change)
        return changes

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    async def _run(self) -> None:
        while True:
            try:
                await self.poll_once()
            except LedgerError as exc:
                logger.warning("Status poll for %s failed: %s", self.kind, exc.message)
            await asyncio.sleep(self.interval)


__all__ = ["StatusWatcher"]
