"""HTTP gateway to the ledger API used by client-side components."""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from credit_ledger.core.config import Settings
from credit_ledger.domain.common.errors import (
    ConflictError,
    LedgerError,
    UnauthorizedError,
    error_from_payload,
)

logger = logging.getLogger(__name__)


class LedgerClient:
    """Thin async client over the ``/api`` surface.

    Responses are unwrapped from the ``{"success": ...}`` envelope; failures
    are raised as the matching :class:`LedgerError` subclass. Transport
    failures surface as :class:`ConflictError` since the call is safe to retry.
    """

    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        token: Optional[str] = None,
        *,
        api_prefix: str = "/api",
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        self.api_prefix = api_prefix.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def from_settings(cls, settings: Settings, token: Optional[str] = None, **kwargs: Any) -> "LedgerClient":
        return cls(settings.client.base_url, token, api_prefix=settings.api_prefix, **kwargs)

    async def __aenter__(self) -> "LedgerClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def get_balances(self) -> dict[str, int]:
        payload = await self._request("GET", "/wallets")
        return {key: int(payload.get(key, 0)) for key in ("main", "task", "royalty")}

    async def transfer(self, from_type: str, to_type: str, amount: int) -> dict[str, Any]:
        return await self._request(
            "POST",
            "/wallets/transfer",
            json={"from_type": from_type, "to_type": to_type, "amount": amount},
        )

    async def list_transactions(self, wallet_type: Optional[str] = None, limit: int = 50) -> list[dict[str, Any]]:
        params: dict[str, Any] = {"limit": limit}
        if wallet_type:
            params["wallet_type"] = wallet_type
        payload = await self._request("GET", "/wallets/transactions", params=params)
        return payload.get("transactions", [])

    async def get_cash_request(self, request_id: str) -> dict[str, Any]:
        payload = await self._request("GET", f"/cash-requests/{request_id}")
        return payload["request"]

    async def list_cash_requests(self, status: Optional[str] = None) -> list[dict[str, Any]]:
        params = {"status": status} if status else None
        payload = await self._request("GET", "/cash-requests", params=params)
        return payload.get("requests", [])

    async def get_loan(self, loan_id: str) -> dict[str, Any]:
        payload = await self._request("GET", f"/loans/{loan_id}")
        return payload["loan"]

    async def list_my_loans(self) -> list[dict[str, Any]]:
        payload = await self._request("GET", "/loans/mine")
        return payload.get("loans", [])

    async def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        try:
            response = await self._client.request(method, f"{self.api_prefix}{path}", **kwargs)
        except httpx.TransportError as exc:
            logger.warning("%s %s failed: %s", method, path, exc)
            raise ConflictError(f"Ledger unreachable: {exc.__class__.__name__}") from exc

        if response.status_code == 401:
            raise UnauthorizedError("Not signed in")
        try:
            payload = response.json()
        except ValueError as exc:
            raise LedgerError(f"Unexpected response ({response.status_code})") from exc

        if not payload.get("success", response.is_success):
            raise error_from_payload(payload.get("error"))
        if response.is_error:
            raise LedgerError(f"Request failed ({response.status_code})")
        return payload
