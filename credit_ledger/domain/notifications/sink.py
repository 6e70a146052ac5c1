"""Notification sinks for ledger state changes."""

from __future__ import annotations

import logging
from typing import Any, Iterable, Protocol

from .feed import ADMIN_CHANNEL, ChangeFeed, FeedEvent

logger = logging.getLogger(__name__)


class NotificationSink(Protocol):
    async def notify(self, event_type: str, payload: dict[str, Any]) -> None:
        ...


class FeedNotificationSink:
    """Logs every event and fans it out to the affected users and admins."""

    def __init__(self, feed: ChangeFeed) -> None:
        self.feed = feed

    async def notify(self, event_type: str, payload: dict[str, Any]) -> None:
        logger.info("Event %s: %s", event_type, payload)
        event = FeedEvent(event_type=event_type, payload=payload)
        for channel in _channels(payload):
            self.feed.publish(channel, event)


class RecordingSink:
    """Keeps every event in memory; used by tests and local tooling."""

    def __init__(self) -> None:
        self.events: list[tuple[str, dict[str, Any]]] = []

    async def notify(self, event_type: str, payload: dict[str, Any]) -> None:
        self.events.append((event_type, payload))

    def types(self) -> list[str]:
        return [event_type for event_type, _ in self.events]


async def emit(sink: NotificationSink | None, event_type: str, payload: dict[str, Any]) -> None:
    """Fire-and-forget delivery: sink failures are logged, never raised."""
    if sink is None:
        return
    try:
        await sink.notify(event_type, payload)
    except Exception:  # pylint: disable=broad-except
        logger.exception("Notification sink failed for %s", event_type)


def _channels(payload: dict[str, Any]) -> Iterable[str]:
    seen: list[str] = []
    for key in ("user_id", "lender_id", "borrower_id"):
        value = payload.get(key)
        if value and value not in seen:
            seen.append(value)
    seen.append(ADMIN_CHANNEL)
    return seen
