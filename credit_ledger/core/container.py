"""Simple dependency container for wiring core services."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from credit_ledger.core.config import Settings, get_settings
from credit_ledger.domain.cash_requests import CashRequestService
from credit_ledger.domain.common.clock import Clock, utcnow
from credit_ledger.domain.ledger import Ledger
from credit_ledger.domain.loans import LoanService, LoanSweeper, SweepScheduler
from credit_ledger.domain.members import MemberService
from credit_ledger.domain.notifications import ChangeFeed, FeedNotificationSink, NotificationSink
from credit_ledger.domain.wallets import TransferCoordinator, WalletService
from credit_ledger.infrastructure.database.session import build_engine, build_session_factory, init_db
from credit_ledger.infrastructure.locks import KeyedLockManager


@dataclass(slots=True)
class ApplicationContainer:
    settings: Settings
    engine: AsyncEngine
    session_factory: async_sessionmaker[AsyncSession]
    locks: KeyedLockManager
    coordinator: TransferCoordinator
    feed: ChangeFeed
    sink: NotificationSink
    members: MemberService
    wallets: WalletService
    cash_requests: CashRequestService
    loans: LoanService
    sweeper: LoanSweeper
    scheduler: SweepScheduler
    ledger: Ledger

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        clock: Clock = utcnow,
        sink: Optional[NotificationSink] = None,
    ) -> "ApplicationContainer":
        engine = build_engine(settings)
        session_factory = build_session_factory(engine)
        locks = KeyedLockManager(
            settings.ledger.lock_timeout_seconds,
            single_writer=settings.database.is_sqlite,
        )
        coordinator = TransferCoordinator(session_factory=session_factory, locks=locks)
        feed = ChangeFeed(queue_size=settings.feed.queue_size)
        sink = sink or FeedNotificationSink(feed)

        members = MemberService(coordinator, clock=clock)
        wallets = WalletService(coordinator, members, sink=sink)
        cash_requests = CashRequestService(coordinator, members, settings.cash, sink=sink, clock=clock)
        loans = LoanService(coordinator, members, settings.loans, sink=sink, clock=clock)
        sweeper = LoanSweeper(loans, clock=clock)
        scheduler = SweepScheduler(sweeper, settings.loans.sweep_interval_seconds)
        ledger = Ledger(
            members=members,
            wallets=wallets,
            cash_requests=cash_requests,
            loans=loans,
            sweeper=sweeper,
        )
        return cls(
            settings=settings,
            engine=engine,
            session_factory=session_factory,
            locks=locks,
            coordinator=coordinator,
            feed=feed,
            sink=sink,
            members=members,
            wallets=wallets,
            cash_requests=cash_requests,
            loans=loans,
            sweeper=sweeper,
            scheduler=scheduler,
            ledger=ledger,
        )

    async def init_infrastructure(self) -> None:
        """Create tables (development and tests) and start background jobs."""
        await init_db(self.engine)
        self.scheduler.start()

    async def shutdown(self) -> None:
        await self.scheduler.stop()
        await self.engine.dispose()


def build_container(settings: Optional[Settings] = None) -> ApplicationContainer:
    return ApplicationContainer.from_settings(settings or get_settings())


__all__ = ["ApplicationContainer", "build_container"]
