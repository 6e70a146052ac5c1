"""Shared abstractions used across domain modules."""

from .clock import Clock, as_utc, utcnow
from .context import RequestContext
from .errors import ErrorKind, LedgerError
from .repository import AsyncRepository

__all__ = [
    "AsyncRepository",
    "Clock",
    "ErrorKind",
    "LedgerError",
    "RequestContext",
    "as_utc",
    "utcnow",
]
