"""Render ledger errors as the ``{"success": false, "error": {...}}`` envelope."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from credit_ledger.domain.common.errors import ErrorKind, LedgerError

logger = logging.getLogger(__name__)

STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.INVALID_INPUT: status.HTTP_400_BAD_REQUEST,
    ErrorKind.INSUFFICIENT_BALANCE: status.HTTP_409_CONFLICT,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.CONFLICT: status.HTTP_409_CONFLICT,
    ErrorKind.ALREADY_FINALIZED: status.HTTP_409_CONFLICT,
    ErrorKind.ALREADY_ACCEPTED: status.HTTP_409_CONFLICT,
    ErrorKind.UNAUTHORIZED: status.HTTP_403_FORBIDDEN,
    ErrorKind.INVALID_STATE: status.HTTP_409_CONFLICT,
    ErrorKind.TOO_FAST: status.HTTP_429_TOO_MANY_REQUESTS,
}

RETRY_AFTER_SECONDS = "1"


def error_response(kind: ErrorKind, message: str, *, retryable: bool = False) -> JSONResponse:
    headers = {"Retry-After": RETRY_AFTER_SECONDS} if retryable else None
    return JSONResponse(
        status_code=STATUS_BY_KIND.get(kind, status.HTTP_400_BAD_REQUEST),
        content={"success": False, "error": {"kind": kind.value, "message": message}},
        headers=headers,
    )


async def ledger_error_handler(request: Request, exc: LedgerError) -> JSONResponse:
    logger.info("%s %s -> %s: %s", request.method, request.url.path, exc.kind.value, exc.message)
    return error_response(exc.kind, exc.message, retryable=exc.retryable)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    parts = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error.get("loc", ()) if item != "body")
        parts.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
    return error_response(ErrorKind.INVALID_INPUT, "; ".join(parts) or "Invalid request")


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(LedgerError, ledger_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
