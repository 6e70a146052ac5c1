"""Ledger error taxonomy shared by the server and the client layer."""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    INVALID_INPUT = "invalid_input"
    INSUFFICIENT_BALANCE = "insufficient_balance"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    ALREADY_FINALIZED = "already_finalized"
    ALREADY_ACCEPTED = "already_accepted"
    UNAUTHORIZED = "unauthorized"
    INVALID_STATE = "invalid_state"
    TOO_FAST = "too_fast"


class LedgerError(Exception):
    """Base class for ledger errors."""

    kind: ErrorKind = ErrorKind.INVALID_STATE
    retryable: bool = False

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.__class__.__doc__ or self.kind.value
        super().__init__(self.message)

    def to_payload(self) -> dict[str, str]:
        return {"kind": self.kind.value, "message": self.message}


class InvalidInputError(LedgerError):
    """Request parameters are invalid."""

    kind = ErrorKind.INVALID_INPUT


class InsufficientBalanceError(LedgerError):
    """Wallet balance does not cover the amount."""

    kind = ErrorKind.INSUFFICIENT_BALANCE


class NotFoundError(LedgerError):
    """Requested wallet, member, request or loan does not exist."""

    kind = ErrorKind.NOT_FOUND


class ConflictError(LedgerError):
    """Lock could not be acquired in time; safe to retry."""

    kind = ErrorKind.CONFLICT
    retryable = True


class AlreadyFinalizedError(LedgerError):
    """Request already reached a terminal state."""

    kind = ErrorKind.ALREADY_FINALIZED


class AlreadyAcceptedError(LedgerError):
    """Loan offer was already taken by another borrower."""

    kind = ErrorKind.ALREADY_ACCEPTED


class UnauthorizedError(LedgerError):
    """Caller lacks rights for this operation."""

    kind = ErrorKind.UNAUTHORIZED


class InvalidStateError(LedgerError):
    """Operation is not valid for the current state."""

    kind = ErrorKind.INVALID_STATE


class CashOutBlockedError(InvalidStateError):
    """Cash-out cannot leave review (PIN not verified or active loan)."""


class TooFastError(LedgerError):
    """Please wait before submitting another transaction."""

    kind = ErrorKind.TOO_FAST


_ERRORS_BY_KIND: dict[ErrorKind, type[LedgerError]] = {
    ErrorKind.INVALID_INPUT: InvalidInputError,
    ErrorKind.INSUFFICIENT_BALANCE: InsufficientBalanceError,
    ErrorKind.NOT_FOUND: NotFoundError,
    ErrorKind.CONFLICT: ConflictError,
    ErrorKind.ALREADY_FINALIZED: AlreadyFinalizedError,
    ErrorKind.ALREADY_ACCEPTED: AlreadyAcceptedError,
    ErrorKind.UNAUTHORIZED: UnauthorizedError,
    ErrorKind.INVALID_STATE: InvalidStateError,
    ErrorKind.TOO_FAST: TooFastError,
}


def error_from_payload(payload: dict | None) -> LedgerError:
    """Rebuild a typed error from a ``{"kind", "message"}`` payload."""
    payload = payload or {}
    try:
        kind = ErrorKind(payload.get("kind"))
    except ValueError:
        return LedgerError(payload.get("message") or "Operation failed")
    return _ERRORS_BY_KIND[kind](payload.get("message"))


__all__ = [
    "ErrorKind",
    "LedgerError",
    "InvalidInputError",
    "InsufficientBalanceError",
    "NotFoundError",
    "ConflictError",
    "AlreadyFinalizedError",
    "AlreadyAcceptedError",
    "UnauthorizedError",
    "InvalidStateError",
    "CashOutBlockedError",
    "TooFastError",
    "error_from_payload",
]
