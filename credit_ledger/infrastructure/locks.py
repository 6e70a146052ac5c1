"""In-process keyed locks used to serialise ledger mutations."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Optional

from credit_ledger.domain.common.errors import ConflictError

logger = logging.getLogger(__name__)

GLOBAL_KEY = "ledger:*"


def wallet_key(user_id: str, wallet_type: str) -> str:
    return f"wallet:{user_id}:{wallet_type}"


def loan_key(loan_id: str) -> str:
    return f"loan:{loan_id}"


def cash_request_key(request_id: str) -> str:
    return f"cash_request:{request_id}"


def member_key(user_id: str) -> str:
    return f"member:{user_id}"


class KeyedLockManager:
    """Hands out one :class:`asyncio.Lock` per key.

    Keys are always acquired in sorted order so two scopes sharing keys can
    never wait on each other in a cycle. When ``single_writer`` is set every
    scope maps onto :data:`GLOBAL_KEY`; this is what SQLite needs since it
    only admits one writing transaction at a time.
    """

    def __init__(self, timeout: float = 5.0, *, single_writer: bool = False) -> None:
        self.timeout = timeout
        self.single_writer = single_writer
        self._locks: Dict[str, asyncio.Lock] = {}
        self._users: Dict[str, int] = {}

    def is_locked(self, key: str) -> bool:
        lock = self._locks.get(self._physical(key))
        return lock is not None and lock.locked()

    def active_keys(self) -> int:
        return len(self._locks)

    @asynccontextmanager
    async def hold(self, *keys: str, timeout: Optional[float] = None) -> AsyncIterator[frozenset[str]]:
        """Acquire every key, yield the logical key set, release in reverse."""
        logical = frozenset(keys)
        physical = sorted({self._physical(key) for key in logical}) if logical else []
        wait = self.timeout if timeout is None else timeout
        acquired: list[str] = []
        try:
            for key in physical:
                lock = self._checkout(key)
                try:
                    await asyncio.wait_for(lock.acquire(), timeout=wait)
                except asyncio.TimeoutError:
                    self._checkin(key)
                    logger.warning("Lock %s not acquired within %.2fs", key, wait)
                    raise ConflictError("Another operation is in progress; retry shortly") from None
                except BaseException:
                    self._checkin(key)
                    raise
                acquired.append(key)
            yield logical
        finally:
            for key in reversed(acquired):
                self._locks[key].release()
                self._checkin(key)

    def _physical(self, key: str) -> str:
        return GLOBAL_KEY if self.single_writer else key

    def _checkout(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        self._users[key] = self._users.get(key, 0) + 1
        return lock

    def _checkin(self, key: str) -> None:
        remaining = self._users.get(key, 0) - 1
        if remaining <= 0:
            self._users.pop(key, None)
            self._locks.pop(key, None)
        else:
            self._users[key] = remaining


__all__ = [
    "GLOBAL_KEY",
    "KeyedLockManager",
    "cash_request_key",
    "loan_key",
    "member_key",
    "wallet_key",
]
