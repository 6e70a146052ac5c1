"""Connection manager for change-feed websocket clients."""
import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, Iterable, Optional

from fastapi import WebSocket

from credit_ledger.domain.common.clock import utcnow
from credit_ledger.domain.notifications.feed import ChangeFeed, FeedEvent

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class FeedConnection:
    websocket: WebSocket
    user_id: str
    queues: Dict[str, "asyncio.Queue[FeedEvent]"] = field(default_factory=dict)
    tasks: list = field(default_factory=list)
    last_heartbeat: datetime = field(default_factory=utcnow)


class ConnectionManager:
    def __init__(self, feed: ChangeFeed, timeout: int = 300, check_interval: int = 30) -> None:
        self.feed = feed
        self.connections: Dict[str, FeedConnection] = {}
        self.timeout = timedelta(seconds=timeout)
        self.check_interval = check_interval

    async def connect(self, websocket: WebSocket, user_id: str, channels: Iterable[str]) -> str:
        await websocket.accept()
        connection_id = str(uuid.uuid4())
        connection = FeedConnection(websocket=websocket, user_id=user_id)
        for channel in channels:
            queue = self.feed.subscribe(channel)
            connection.queues[channel] = queue
            connection.tasks.append(asyncio.create_task(self._pump(connection_id, queue)))
        connection.tasks.append(asyncio.create_task(self._heartbeat_monitor(connection_id)))
        self.connections[connection_id] = connection
        logger.info("Feed client %s connected for %s", connection_id, user_id)
        return connection_id

    async def disconnect(self, connection_id: str) -> None:
        connection = self.connections.pop(connection_id, None)
        if connection is None:
            return
        for channel, queue in connection.queues.items():
            self.feed.unsubscribe(channel, queue)
        current = asyncio.current_task()
        for task in connection.tasks:
            if task is not current:
                task.cancel()
        logger.info("Feed client %s disconnected", connection_id)

    async def send_message(self, connection_id: str, message: dict) -> bool:
        connection = self.connections.get(connection_id)
        if connection is None:
            return False
        try:
            await connection.websocket.send_json(message)
            return True
        except Exception as exc:  # pylint: disable=broad-except
            logger.error("Sending to feed client %s failed: %s", connection_id, exc)
            await self.disconnect(connection_id)
            return False

    def update_heartbeat(self, connection_id: str) -> None:
        connection = self.connections.get(connection_id)
        if connection is not None:
            connection.last_heartbeat = utcnow()

    def get_online_count(self, user_id: Optional[str] = None) -> int:
        if user_id is None:
            return len(self.connections)
        return sum(1 for connection in self.connections.values() if connection.user_id == user_id)

    async def close_all(self) -> None:
        for connection_id in list(self.connections):
            connection = self.connections.get(connection_id)
            await self.disconnect(connection_id)
            if connection is not None:
                try:
                    await connection.websocket.close()
                except Exception:  # pylint: disable=broad-except
                    logger.debug("Feed client %s already closed", connection_id)

    async def _pump(self, connection_id: str, queue: "asyncio.Queue[FeedEvent]") -> None:
        try:
            while True:
                event = await queue.get()
                if not await self.send_message(connection_id, event.as_message()):
                    break
        except asyncio.CancelledError:
            logger.debug("Feed pump for %s cancelled", connection_id)

    async def _heartbeat_monitor(self, connection_id: str) -> None:
        try:
            while True:
                await asyncio.sleep(self.check_interval)
                connection = self.connections.get(connection_id)
                if connection is None:
                    break
                if utcnow() - connection.last_heartbeat > self.timeout:
                    logger.warning("Feed client %s heartbeat timed out", connection_id)
                    await self.disconnect(connection_id)
                    await connection.websocket.close(code=1001)
                    break
        except asyncio.CancelledError:
            logger.debug("Heartbeat monitor for %s cancelled", connection_id)
