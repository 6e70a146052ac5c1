"""Client-side helpers: HTTP gateway, optimistic overlay and status watcher."""

from .api import LedgerClient
from .optimistic import OptimisticStatus, OptimisticTransaction, OptimisticWallets
from .watcher import StatusWatcher

__all__ = [
    "LedgerClient",
    "OptimisticStatus",
    "OptimisticTransaction",
    "OptimisticWallets",
    "StatusWatcher",
]
