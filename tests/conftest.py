from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient

from credit_ledger.core.config import DatabaseSettings, SecuritySettings, Settings
from credit_ledger.core.container import ApplicationContainer
from credit_ledger.core.security import create_access_token
from credit_ledger.domain.common.context import RequestContext
from credit_ledger.domain.notifications import RecordingSink
from credit_ledger.infrastructure.database import init_db
from credit_ledger.main import create_app

ADMIN = RequestContext(user_id="admin-1", is_admin=True)


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 10, 19, 9, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        environment="test",
        log_level="WARNING",
        database=DatabaseSettings(url=f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}"),
        security=SecuritySettings(secret_key="test-secret-key"),
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest_asyncio.fixture
async def container(settings, clock, sink):
    container = ApplicationContainer.from_settings(settings, clock=clock, sink=sink)
    await init_db(container.engine)
    yield container
    await container.shutdown()


async def fund(container: ApplicationContainer, user_id: str, amount: int) -> None:
    """Register ``user_id`` and credit its main wallet through an approved cash-in."""
    await container.members.register(user_id)
    request = await container.cash_requests.create(user_id, "cash_in", amount, "gcash", reference_no="seed")
    await container.cash_requests.approve(ADMIN, request.id)


@pytest.fixture
def app_client(settings):
    """TestClient over a fresh app; the lifespan creates the tables."""
    app = create_app(ApplicationContainer.from_settings(settings))
    with TestClient(app) as client:
        yield client


@pytest.fixture
def auth_headers(settings):
    def _headers(user_id: str, role: str = "member") -> dict[str, str]:
        token = create_access_token(user_id, role=role, settings=settings)
        return {"Authorization": f"Bearer {token}"}

    return _headers
