"""
Shared fixtures: in-memory SQLite per test, an httpx client bound to the app,
and helpers to create signed-in users.
"""

import os

os.environ.setdefault("TH_DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("TH_BCRYPT_ROUNDS", "4")
os.environ.setdefault("TH_SECRET_KEY", "test-secret-key-with-enough-length-for-hs256")
os.environ.setdefault("TH_LOG_FORMAT", "text")
os.environ.setdefault("TH_LOG_LEVEL", "warning")

import uuid
from dataclasses import dataclass
from unittest.mock import AsyncMock, patch

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

import app.models  # noqa: F401
from app.core.database import get_session
from app.main import app
from app.models.user import User
from taskhub_shared.schemas.common import GlobalRole


@pytest.fixture
async def session_factory():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
    )

    # pysqlite's own transaction handling breaks SAVEPOINT; emit BEGIN ourselves
    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    factory = async_sessionmaker(engine, expire_on_commit=False)
    yield factory
    await engine.dispose()


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def client(session_factory):
    async def _override_session():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_session] = _override_session
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def no_redis():
    """Revocation lookups never reach Redis in tests."""
    with patch("app.core.auth.is_jwt_revoked", new=AsyncMock(return_value=False)), patch(
        "app.api.v1.auth.revoke_jwt", new=AsyncMock()
    ) as revoke:
        yield revoke


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------

@dataclass
class SignedInUser:
    id: uuid.UUID
    email: str
    name: str
    token: str

    @property
    def headers(self) -> dict:
        return {"Authorization": f"Bearer {self.token}"}


async def sign_up(client: AsyncClient, email: str, name: str | None = None,
                  password: str = "password123") -> SignedInUser:
    name = name or email.split("@")[0]
    resp = await client.post("/auth/signup", json={"email": email, "password": password, "name": name})
    assert resp.status_code == 201, resp.text
    body = resp.json()
    return SignedInUser(id=uuid.UUID(body["user"]["id"]), email=email, name=name, token=body["token"])


async def set_global_role(session_factory, user_id: uuid.UUID, role: GlobalRole) -> None:
    async with session_factory() as session:
        user = await session.get(User, user_id)
        user.role = role.value
        await session.commit()


@pytest.fixture
def signup(client):
    async def _signup(email: str, name: str | None = None, password: str = "password123"):
        return await sign_up(client, email, name, password)

    return _signup


@pytest.fixture
def promote(session_factory):
    async def _promote(user: SignedInUser, role: GlobalRole) -> SignedInUser:
        await set_global_role(session_factory, user.id, role)
        return user

    return _promote


@pytest.fixture
def inbox(client):
    """Every notification of a user, newest first."""

    async def _inbox(user: SignedInUser) -> list[dict]:
        resp = await client.get("/api/v1/notifications?limit=100", headers=user.headers)
        assert resp.status_code == 200, resp.text
        return resp.json()["data"]

    return _inbox
