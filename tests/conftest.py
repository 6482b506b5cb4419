"""Shared test fixtures — async SQLite in-memory DB, engine and test clients."""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("ADMIN_API_KEY", "test-admin-key")
os.environ.setdefault("JWT_SECRET_KEY", "test-jwt-secret")
os.environ.setdefault("ENVIRONMENT", "production")

from collections.abc import AsyncGenerator  # noqa: E402

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402
from sqlmodel import SQLModel  # noqa: E402

# Import all models so metadata is populated
import pointgate.models  # noqa: E402, F401
from pointgate.api.deps import get_download_resolver, get_engine  # noqa: E402
from pointgate.core.config import Settings  # noqa: E402
from pointgate.core.database import get_session  # noqa: E402
from pointgate.main import app  # noqa: E402
from pointgate.models.account import Account, Provider  # noqa: E402
from pointgate.models.tenant import Tenant  # noqa: E402
from pointgate.services.engine import TransactionEngine  # noqa: E402



class FakeResolver:
    """Download-URL resolver double: records calls, optionally fails."""

    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.calls: list[str] = []

    async def get_download_url(self, resource: str) -> str:
        self.calls.append(resource)
        if self.error is not None:
            raise self.error
        return f"https://files.test/raw/{resource}?sign=abc"


@pytest.fixture
def settings() -> Settings:
    return Settings(
        default_cost=10,
        transaction_timeout_seconds=5.0,
        ledger_default_limit=50,
        ledger_max_limit=500,
    )


@pytest.fixture
async def db_engine():
    eng = create_async_engine(
        "sqlite+aiosqlite://",
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with eng.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(db_engine):
    """Session factory bound to the test SQLite engine."""
    return sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as sess:
        yield sess
        await sess.rollback()


@pytest.fixture
def ledger_engine(session_factory, settings) -> TransactionEngine:
    return TransactionEngine(session_factory, settings)


async def _make_tenant(session_factory, domain: str, name: str | None = None) -> Tenant:
    async with session_factory() as sess:
        tenant = Tenant(name=name or f"{domain} site", domain=domain)
        sess.add(tenant)
        await sess.commit()
        await sess.refresh(tenant)
        return tenant


@pytest.fixture
def tenant_factory(session_factory):
    """Create a site served on the given domain."""

    async def _create(domain: str, name: str | None = None) -> Tenant:
        return await _make_tenant(session_factory, domain, name)

    return _create


@pytest.fixture
def account_factory(session_factory, ledger_engine):
    """Create a local account; a starting balance is granted through the ledger."""

    async def _create(tenant: Tenant, username: str, balance: int = 0) -> Account:
        async with session_factory() as sess:
            account = Account(tenant_id=tenant.id, username=username, provider=Provider.LOCAL)
            sess.add(account)
            await sess.commit()
            await sess.refresh(account)
        if balance:
            result = await ledger_engine.grant(tenant, username, balance, "opening balance")
            account = result.account
        return account

    return _create


@pytest.fixture
async def tenant(session_factory) -> Tenant:
    return await _make_tenant(session_factory, "test")


@pytest.fixture
def resolver() -> FakeResolver:
    return FakeResolver()


@pytest.fixture
async def client_factory(session_factory, ledger_engine, resolver):
    """Build HTTPX clients for arbitrary hosts against one test app."""

    async def _override_session():
        async with session_factory() as sess:
            yield sess

    app.dependency_overrides[get_session] = _override_session
    app.dependency_overrides[get_engine] = lambda: ledger_engine
    app.dependency_overrides[get_download_resolver] = lambda: resolver

    clients: list[AsyncClient] = []

    def _make(host: str = "test") -> AsyncClient:
        ac = AsyncClient(transport=ASGITransport(app=app), base_url=f"http://{host}")
        clients.append(ac)
        return ac

    yield _make

    for ac in clients:
        await ac.aclose()
    app.dependency_overrides.clear()


@pytest.fixture
async def client(client_factory, tenant) -> AsyncClient:
    """Client for the default "test" site, which already exists."""
    return client_factory("test")
