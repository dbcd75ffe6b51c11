# tests/unit/test_api.py
"""HTTP surface: envelope, auth guards and scheduler secret.

No lifespan runs under ASGITransport, so the database session and the
current user are supplied through dependency overrides.
"""
import uuid
from unittest.mock import AsyncMock, MagicMock

import pytest
from httpx import AsyncClient

from src.ds_common.database import get_db_session
from src.ds_common.errors import RateLimitError
from src.ds_gateway.auth.dependencies import get_current_user
from src.ds_gateway.middleware.rate_limit import transaction_create_limit
from src.ds_gateway.user.db_models import UserModel
from src.ds_transaction.api import cron_router
from src.ds_transaction.application.sweeps import SweepReport
from src.main import app

CRON_HEADERS = {"Authorization": "Bearer test-cron-secret"}


def _user(role: str = "USER") -> UserModel:
    return UserModel(
        id=uuid.uuid4(), email="user@example.com", name="Dewi", role=role, is_active=True
    )


@pytest.fixture
def db() -> AsyncMock:
    session = AsyncMock()
    session.execute.return_value = MagicMock(fetchall=MagicMock(return_value=[]))
    return session


@pytest.fixture
def overrides(db):
    async def _db_session():
        yield db

    app.dependency_overrides[get_db_session] = _db_session
    yield app.dependency_overrides
    app.dependency_overrides.clear()


class TestHealth:
    async def test_health_check(self, client: AsyncClient) -> None:
        resp = await client.get("/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok", "version": "0.1.0"}

    async def test_request_id_header(self, client: AsyncClient) -> None:
        resp = await client.get("/health")
        assert resp.headers["X-Request-ID"].startswith("req_")


class TestCronAuth:
    async def test_missing_secret(self, client: AsyncClient) -> None:
        resp = await client.post("/api/v1/cron/expire-payments")
        assert resp.status_code == 401
        body = resp.json()
        assert body["code"] == 1008
        assert body["data"] is None
        assert body["request_id"] == resp.headers["X-Request-ID"]

    async def test_wrong_secret(self, client: AsyncClient) -> None:
        resp = await client.post(
            "/api/v1/cron/auto-release", headers={"Authorization": "Bearer nope"}
        )
        assert resp.status_code == 401

    async def test_sweep_report(self, client: AsyncClient, overrides, monkeypatch) -> None:
        sweeps = MagicMock()
        sweeps.expire_payments = AsyncMock(
            return_value=SweepReport(
                processed=3, succeeded=2, skipped=1,
                errors=[{"id": "txn-9", "code": 9002, "message": "boom"}],
            )
        )
        monkeypatch.setattr(cron_router, "_service", sweeps)

        resp = await client.post("/api/v1/cron/expire-payments", headers=CRON_HEADERS)

        assert resp.status_code == 200
        body = resp.json()
        assert body["code"] == 0
        assert body["data"]["processed"] == 3
        assert body["data"]["skipped"] == 1
        assert body["data"]["errors"][0]["code"] == 9002


class TestUserAuth:
    async def test_missing_token(self, client: AsyncClient) -> None:
        resp = await client.get("/api/v1/transactions")
        assert resp.status_code == 401
        assert resp.headers["WWW-Authenticate"] == "Bearer"

    async def test_admin_route_rejects_regular_user(
        self, client: AsyncClient, overrides
    ) -> None:
        overrides[get_current_user] = lambda: _user()
        resp = await client.get("/api/v1/admin/config")
        assert resp.status_code == 403
        assert resp.json()["code"] == 1007

    async def test_admin_reads_config(self, client: AsyncClient, overrides) -> None:
        overrides[get_current_user] = lambda: _user(role="ADMIN")
        resp = await client.get("/api/v1/admin/config")
        assert resp.status_code == 200
        data = resp.json()["data"]
        assert set(data) == {
            "PLATFORM_FEE_PERCENTAGE", "PAYMENT_TIMEOUT_HOURS", "VERIFICATION_PERIOD_HOURS",
        }


class TestRateLimitEnvelope:
    async def test_retry_after_header(self, client: AsyncClient, overrides) -> None:
        def _limited() -> None:
            raise RateLimitError(retry_after=12)

        overrides[get_current_user] = lambda: _user()
        overrides[transaction_create_limit] = _limited

        resp = await client.post("/api/v1/transactions", json={"listing_id": "listing-1"})

        assert resp.status_code == 429
        assert resp.headers["Retry-After"] == "12"
        body = resp.json()
        assert body["code"] == 9001
        assert body["data"] == {"retry_after": 12}
