"""Optimistic wallet overlay for client front-ends.

Transfers are applied locally as pending entries over the last authoritative
balance snapshot, then settled through the ledger gateway. A failed settlement
rolls the entry back; a confirmed one is kept until a balance refresh that
started after submission lands, or the grace window lapses.
"""

from __future__ import annotations

import asyncio
import logging
import math
import time
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional, Protocol

from credit_ledger.core.config import Settings
from credit_ledger.domain.common.errors import (
    ConflictError,
    InsufficientBalanceError,
    InvalidInputError,
    LedgerError,
    TooFastError,
)
from credit_ledger.domain.wallets.models import MEMBER_WALLET_TYPES

logger = logging.getLogger(__name__)

WALLET_TYPES: tuple[str, ...] = tuple(wallet_type.value for wallet_type in MEMBER_WALLET_TYPES)

EventSink = Callable[[str, dict[str, Any]], None]


class WalletGateway(Protocol):
    async def get_balances(self) -> dict[str, int]: ...

    async def transfer(self, from_type: str, to_type: str, amount: int) -> Any: ...


class OptimisticStatus(str, Enum):
    PENDING = "pending"
    SUCCESS = "success"
    ERROR = "error"


@dataclass
class OptimisticTransaction:
    id: str
    amount: int
    from_wallet: str
    to_wallet: str
    timestamp: float
    type: str = "transfer"
    status: OptimisticStatus = OptimisticStatus.PENDING
    error: Optional[str] = None
    submitted_seq: Optional[int] = None

    @property
    def is_live(self) -> bool:
        return self.status is not OptimisticStatus.ERROR

    def delta(self, wallet_type: str) -> int:
        if not self.is_live:
            return 0
        if wallet_type == self.from_wallet:
            return -self.amount
        if wallet_type == self.to_wallet:
            return self.amount
        return 0


@dataclass
class _RefreshState:
    started: int = 0
    applied: int = 0


class OptimisticWallets:
    """Per-user overlay of in-flight transfers on top of server balances."""

    def __init__(
        self,
        gateway: WalletGateway,
        *,
        debounce_ms: int = 500,
        success_grace_seconds: float = 1.0,
        error_purge_seconds: float = 3.0,
        clock: Callable[[], float] = time.monotonic,
        on_event: Optional[EventSink] = None,
    ) -> None:
        self.gateway = gateway
        self.debounce_seconds = debounce_ms / 1000
        self.success_grace_seconds = success_grace_seconds
        self.error_purge_seconds = error_purge_seconds
        self._clock = clock
        self._on_event = on_event
        self._snapshot: dict[str, int] = {wallet_type: 0 for wallet_type in WALLET_TYPES}
        self._entries: dict[str, OptimisticTransaction] = {}
        self._last_accepted: Optional[float] = None
        self._refresh = _RefreshState()
        self._timers: set[asyncio.Task] = set()

    @classmethod
    def from_settings(
        cls, gateway: WalletGateway, settings: Settings, on_event: Optional[EventSink] = None
    ) -> "OptimisticWallets":
        return cls(
            gateway,
            debounce_ms=settings.client.debounce_ms,
            success_grace_seconds=settings.client.success_grace_seconds,
            error_purge_seconds=settings.client.error_purge_seconds,
            on_event=on_event,
        )

    @property
    def snapshot(self) -> dict[str, int]:
        return dict(self._snapshot)

    @property
    def transactions(self) -> list[OptimisticTransaction]:
        return list(self._entries.values())

    @property
    def pending_count(self) -> int:
        return sum(1 for entry in self._entries.values() if entry.status is OptimisticStatus.PENDING)

    def display_balance(self, wallet_type: str) -> int:
        base = self._snapshot.get(wallet_type, 0)
        return base + sum(entry.delta(wallet_type) for entry in self._entries.values())

    def display_balances(self) -> dict[str, int]:
        return {wallet_type: self.display_balance(wallet_type) for wallet_type in self._snapshot}

    async def refresh(self) -> dict[str, int]:
        """Reload the authoritative snapshot; results older than the last applied one are ignored."""
        self._refresh.started += 1
        seq = self._refresh.started
        balances = await self.gateway.get_balances()
        if seq < self._refresh.applied:
            logger.debug("Discarding stale balance refresh %s (applied %s)", seq, self._refresh.applied)
            return self.snapshot

        self._refresh.applied = seq
        self._snapshot = {wallet_type: int(balances.get(wallet_type, 0)) for wallet_type in WALLET_TYPES}
        for entry in list(self._entries.values()):
            if entry.status is OptimisticStatus.SUCCESS and entry.submitted_seq is not None and entry.submitted_seq < seq:
                self._entries.pop(entry.id, None)
        return self.snapshot

    async def optimistic_transfer(self, from_wallet: str, to_wallet: str, amount: float) -> bool:
        now = self._clock()
        if self._last_accepted is not None and now - self._last_accepted < self.debounce_seconds:
            self._emit("too_fast", {"error": TooFastError().to_payload()})
            return False
        self._last_accepted = now

        try:
            whole_amount = self._validate(from_wallet, to_wallet, amount)
        except LedgerError as exc:
            self._emit(exc.kind.value, {"error": exc.to_payload()})
            return False

        entry = OptimisticTransaction(
            id=f"optimistic-{uuid.uuid4().hex}",
            amount=whole_amount,
            from_wallet=from_wallet,
            to_wallet=to_wallet,
            timestamp=now,
            submitted_seq=self._refresh.started,
        )
        self._entries[entry.id] = entry
        self._emit("pending", {"transaction_id": entry.id, "amount": whole_amount, "to_wallet": to_wallet})

        try:
            await self.gateway.transfer(from_wallet, to_wallet, whole_amount)
        except LedgerError as exc:
            self._fail(entry, exc)
            return False
        except BaseException:
            self._fail(entry, ConflictError("Transfer was interrupted before the ledger answered"))
            raise

        entry.status = OptimisticStatus.SUCCESS
        self._emit("success", {"transaction_id": entry.id, "amount": whole_amount, "to_wallet": to_wallet})
        self._schedule(self._refresh_after_success())
        self._schedule(self._drop_later(entry.id, self.success_grace_seconds))
        return True

    async def drain(self) -> None:
        """Wait for outstanding refreshes and timers (used on shutdown and in tests)."""
        while self._timers:
            await asyncio.gather(*list(self._timers), return_exceptions=True)

    async def close(self) -> None:
        for task in list(self._timers):
            task.cancel()
        await asyncio.gather(*list(self._timers), return_exceptions=True)
        self._timers.clear()

    def _validate(self, from_wallet: str, to_wallet: str, amount: float) -> int:
        if from_wallet not in WALLET_TYPES or to_wallet not in WALLET_TYPES:
            raise InvalidInputError("Unknown wallet type")
        if from_wallet == to_wallet:
            raise InvalidInputError("Source and destination wallets must differ")
        try:
            whole_amount = math.floor(amount)
        except (TypeError, ValueError, OverflowError) as exc:
            raise InvalidInputError("Amount must be a positive whole number") from exc
        if whole_amount <= 0:
            raise InvalidInputError("Amount must be a positive whole number")
        if self.display_balance(from_wallet) < whole_amount:
            raise InsufficientBalanceError(f"Not enough credits in {from_wallet} wallet")
        return whole_amount

    def _fail(self, entry: OptimisticTransaction, exc: LedgerError) -> None:
        entry.status = OptimisticStatus.ERROR
        entry.error = exc.message
        logger.info("Optimistic transfer %s rolled back: %s", entry.id, exc.message)
        self._emit("error", {"transaction_id": entry.id, "error": exc.to_payload()})
        self._schedule(self._drop_later(entry.id, self.error_purge_seconds))

    async def _refresh_after_success(self) -> None:
        try:
            await self.refresh()
        except LedgerError as exc:
            logger.warning("Balance refresh failed: %s", exc.message)

    async def _drop_later(self, entry_id: str, delay: float) -> None:
        await asyncio.sleep(delay)
        self._entries.pop(entry_id, None)

    def _schedule(self, coro) -> None:
        task = asyncio.create_task(coro)
        self._timers.add(task)
        task.add_done_callback(self._timers.discard)

    def _emit(self, event_type: str, payload: dict[str, Any]) -> None:
        if self._on_event is None:
            return
        try:
            self._on_event(event_type, payload)
        except Exception:  # noqa: BLE001
            logger.exception("Optimistic event handler failed for %s", event_type)


__all__ = ["OptimisticStatus", "OptimisticTransaction", "OptimisticWallets", "WalletGateway"]
