import httpx
import pytest

from credit_ledger.client import LedgerClient, OptimisticWallets
from credit_ledger.core.security import create_access_token
from credit_ledger.domain.common.errors import (
    ConflictError,
    InsufficientBalanceError,
    NotFoundError,
    UnauthorizedError,
)
from credit_ledger.main import create_app

from .conftest import fund


def _client(handler) -> LedgerClient:
    return LedgerClient("http://ledger.test", token="t0ken", transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_envelope_errors_become_typed_exceptions():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.headers["Authorization"] == "Bearer t0ken"
        if request.url.path == "/api/wallets/transfer":
            return httpx.Response(
                409,
                json={"success": False, "error": {"kind": "insufficient_balance", "message": "short"}},
            )
        return httpx.Response(
            404, json={"success": False, "error": {"kind": "not_found", "message": "no such loan"}}
        )

    async with _client(handler) as client:
        with pytest.raises(InsufficientBalanceError, match="short"):
            await client.transfer("main", "task", 10)
        with pytest.raises(NotFoundError):
            await client.get_loan("missing")


@pytest.mark.asyncio
async def test_transport_failure_is_retryable_conflict():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("offline", request=request)

    async with _client(handler) as client:
        with pytest.raises(ConflictError) as exc_info:
            await client.get_balances()
    assert exc_info.value.retryable


@pytest.mark.asyncio
async def test_missing_credentials_are_unauthorized():
    async with _client(lambda request: httpx.Response(401, json={"detail": "nope"})) as client:
        with pytest.raises(UnauthorizedError):
            await client.list_cash_requests()


@pytest.mark.asyncio
async def test_balances_are_unwrapped():
    payload = {"success": True, "user_id": "alice", "main": 7, "task": 2, "royalty": 1, "total": 10}

    async with _client(lambda request: httpx.Response(200, json=payload)) as client:
        assert await client.get_balances() == {"main": 7, "task": 2, "royalty": 1}


@pytest.mark.asyncio
async def test_optimistic_wallets_against_running_app(container, settings):
    await fund(container, "alice", 100)
    app = create_app(container)
    token = create_access_token("alice", settings=settings)
    transport = httpx.ASGITransport(app=app)

    async with LedgerClient("http://ledger.test", token=token, transport=transport) as client:
        wallets = OptimisticWallets(client, success_grace_seconds=0.01, error_purge_seconds=0.01)
        await wallets.refresh()

        assert await wallets.optimistic_transfer("main", "task", 40) is True
        await wallets.drain()

        assert wallets.display_balances() == {"main": 60, "task": 40, "royalty": 0}
        history = await client.list_transactions(wallet_type="task")
        assert [entry["amount"] for entry in history] == [40]


@pytest.mark.asyncio
async def test_client_built_from_settings_targets_configured_api(settings):
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(str(request.url))
        return httpx.Response(200, json={"success": True, "requests": []})

    client = LedgerClient.from_settings(settings, token="t0ken", transport=httpx.MockTransport(handler))
    async with client:
        assert await client.list_cash_requests(status="pending") == []

    assert seen == [f"{settings.client.base_url}{settings.api_prefix}/cash-requests?status=pending"]
    overlay = OptimisticWallets.from_settings(client, settings)
    assert overlay.debounce_seconds == settings.client.debounce_ms / 1000
