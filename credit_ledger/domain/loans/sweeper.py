"""Expiry sweep for overdue loans and the background task that drives it."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from credit_ledger.domain.common.clock import Clock, utcnow
from credit_ledger.domain.common.errors import LedgerError

from .models import SweepSummary
from .service import LoanService

logger = logging.getLogger(__name__)


class LoanSweeper:
    """Settles every active loan past its due date; one sweep at a time."""

    def __init__(self, loans: LoanService, clock: Clock = utcnow) -> None:
        self.loans = loans
        self.clock = clock
        self._running = asyncio.Lock()

    @property
    def is_running(self) -> bool:
        return self._running.locked()

    async def sweep(self) -> SweepSummary:
        if self._running.locked():
            logger.info("Loan sweep already running; skipping")
            return SweepSummary(skipped=True)
        async with self._running:
            return await self._sweep()

    async def _sweep(self) -> SweepSummary:
        now = self.clock()
        summary = SweepSummary()
        loan_ids = await self.loans.expired_loan_ids(now)
        for loan_id in loan_ids:
            try:
                outcome, amount = await self.loans.settle_expired(loan_id, now)
            except LedgerError as exc:
                logger.error("Loan sweep failed for %s: %s", loan_id, exc.message)
                summary.errors.append(f"{loan_id}: {exc.message}")
                continue
            except Exception as exc:  # pylint: disable=broad-except
                logger.exception("Loan sweep crashed for %s", loan_id)
                summary.errors.append(f"{loan_id}: {exc}")
                continue
            if outcome == "repaid":
                summary.repaid_count += 1
                summary.total_repaid += amount
            elif outcome == "defaulted":
                summary.defaulted_count += 1
        logger.info(
            "Loan sweep done: %d candidates, %d repaid (%d), %d defaulted, %d errors",
            len(loan_ids),
            summary.repaid_count,
            summary.total_repaid,
            summary.defaulted_count,
            len(summary.errors),
        )
        return summary


class SweepScheduler:
    """Runs :meth:`LoanSweeper.sweep` every ``interval`` seconds in the background."""

    def __init__(self, sweeper: LoanSweeper, interval: float) -> None:
        self.sweeper = sweeper
        self.interval = interval
        self._task: Optional[asyncio.Task] = None

    @property
    def enabled(self) -> bool:
        return self.interval > 0

    def start(self) -> None:
        if not self.enabled or self._task is not None:
            return
        self._task = asyncio.create_task(self._loop())
        logger.info("Loan sweep scheduled every %ss", self.interval)

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _loop(self) -> None:
        try:
            while True:
                await asyncio.sleep(self.interval)
                try:
                    await self.sweeper.sweep()
                except Exception:  # pylint: disable=broad-except
                    logger.exception("Scheduled loan sweep failed")
        except asyncio.CancelledError:
            logger.debug("Loan sweep scheduler cancelled")
            raise
