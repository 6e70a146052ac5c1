"""In-process change feed: one bounded queue per subscriber, keyed by user."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional, Set

from credit_ledger.domain.common.clock import utcnow

logger = logging.getLogger(__name__)

ADMIN_CHANNEL = "admin"


@dataclass(slots=True)
class FeedEvent:
    event_type: str
    payload: dict[str, Any]
    created_at: datetime = field(default_factory=utcnow)

    def as_message(self) -> dict[str, Any]:
        return {
            "type": self.event_type,
            "data": self.payload,
            "created_at": self.created_at.isoformat(),
        }


class ChangeFeed:
    def __init__(self, queue_size: int = 100) -> None:
        self.queue_size = queue_size
        self._subscribers: Dict[str, Set[asyncio.Queue[FeedEvent]]] = {}

    def subscribe(self, channel: str) -> asyncio.Queue[FeedEvent]:
        queue: asyncio.Queue[FeedEvent] = asyncio.Queue(maxsize=self.queue_size)
        self._subscribers.setdefault(channel, set()).add(queue)
        logger.debug("Subscriber added to channel %s", channel)
        return queue

    def unsubscribe(self, channel: str, queue: asyncio.Queue[FeedEvent]) -> None:
        queues = self._subscribers.get(channel)
        if not queues:
            return
        queues.discard(queue)
        if not queues:
            self._subscribers.pop(channel, None)

    def subscriber_count(self, channel: Optional[str] = None) -> int:
        if channel is not None:
            return len(self._subscribers.get(channel, ()))
        return sum(len(queues) for queues in self._subscribers.values())

    def publish(self, channel: str, event: FeedEvent) -> int:
        """Deliver to every subscriber of ``channel``; returns the delivery count."""
        delivered = 0
        for queue in list(self._subscribers.get(channel, ())):
            if queue.full():
                # slow consumer: drop its oldest event rather than block the ledger
                try:
                    queue.get_nowait()
                except asyncio.QueueEmpty:
                    pass
                logger.warning("Feed queue for %s overflowed; oldest event dropped", channel)
            queue.put_nowait(event)
            delivered += 1
        return delivered
