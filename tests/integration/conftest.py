"""Integration-test fixtures.

All integration tests share a single event-loop so that the module-level
SQLAlchemy async engine pool and Redis pool (both created at import time)
remain valid across the entire test session.

Users are provisioned by the identity service in production, so the fixtures
insert them directly and mint bearer tokens with create_access_token.
Pre-condition: PostgreSQL migrated to head and Redis reachable; otherwise
every integration test is skipped.
"""

import uuid
from dataclasses import dataclass

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from redis.exceptions import RedisError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from src.ds_common.database import async_session_factory, check_schema
from src.ds_common.redis_client import ping_redis
from src.ds_gateway.auth.jwt_handler import create_access_token
from src.ds_payment.infrastructure.sandbox import SandboxInvoiceGateway
from src.ds_transaction.api import payments_router
from src.ds_transaction.application import service as transaction_service
from src.ds_transaction.application.payments import PaymentService
from src.ds_transaction.application.service import TransactionStateMachine
from src.main import app

_INSERT_USER_SQL = text("""
    INSERT INTO users (email, name, phone, id_card_url, role)
    VALUES (:email, :name, :phone, :id_card_url, :role)
    RETURNING id
""")

_INSERT_BANK_ACCOUNT_SQL = text("""
    INSERT INTO bank_accounts (user_id, bank_name, account_number, account_holder_name, is_default)
    VALUES (:user_id, 'BCA', :account_number, :holder, TRUE)
""")


@dataclass
class SeededUser:
    id: str
    headers: dict[str, str]


@pytest_asyncio.fixture(loop_scope="session", scope="session")
async def client() -> AsyncClient:  # type: ignore[override]
    """Session-scoped async HTTP client — keeps the engine pool alive."""
    try:
        await check_schema()
        await ping_redis()
    except (OSError, SQLAlchemyError, RedisError) as exc:
        pytest.skip(f"PostgreSQL/Redis not available: {exc!r}")

    # Sandbox invoices with the simulation endpoints enabled
    machine = TransactionStateMachine(gateway=SandboxInvoiceGateway())
    transaction_service._service = machine
    payments_router._service = PaymentService(
        machine=machine, gateway=SandboxInvoiceGateway(), debug=True
    )

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


async def _create_user(role: str = "USER", with_bank_account: bool = False) -> SeededUser:
    uid = uuid.uuid4().hex[:8]
    async with async_session_factory() as session:
        row = (await session.execute(_INSERT_USER_SQL, {
            "email": f"user_{uid}@example.com",
            "name": f"Test User {uid}",
            "phone": "+6281200000000",
            "id_card_url": f"https://files.test/ktp/{uid}.jpg",
            "role": role,
        })).fetchone()
        user_id = str(row.id)
        if with_bank_account:
            await session.execute(_INSERT_BANK_ACCOUNT_SQL, {
                "user_id": user_id,
                "account_number": f"88{uid}",
                "holder": f"Test User {uid}",
            })
        await session.commit()
    token = create_access_token(user_id)
    return SeededUser(id=user_id, headers={"Authorization": f"Bearer {token}"})


@pytest_asyncio.fixture(loop_scope="session")
async def seller(client: AsyncClient) -> SeededUser:
    return await _create_user(with_bank_account=True)


@pytest_asyncio.fixture(loop_scope="session")
async def buyer(client: AsyncClient) -> SeededUser:
    return await _create_user()


@pytest_asyncio.fixture(loop_scope="session")
async def other_buyer(client: AsyncClient) -> SeededUser:
    return await _create_user()


@pytest_asyncio.fixture(loop_scope="session")
async def admin(client: AsyncClient) -> SeededUser:
    return await _create_user(role="ADMIN")
