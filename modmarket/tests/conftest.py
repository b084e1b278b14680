"""
Centralized Test Configuration.
"""

import os

# The background loop is driven explicitly in tests
os.environ.setdefault("RECONCILIATION_ENABLED", "false")

import pytest
from decimal import Decimal
from datetime import datetime, timedelta, timezone
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

from modmarket.app.main import app
from modmarket.app.db.session import get_db, Base
from modmarket.app.core.jwt import issue_access_token
from modmarket.app.models.enums import UserRole
from modmarket.app.models.user import User
from modmarket.app.models.server import Server
from modmarket.app.models.catalog import Mod, Developer, Bundle

# Setup In-Memory Test Database
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

# Event handler to enable foreign keys for SQLite
from sqlalchemy import event
from sqlalchemy.pool import Pool

@event.listens_for(Pool, "connect")
def set_sqlite_pragma(dbapi_conn, connection_record):
    """Enable foreign key constraints for SQLite."""
    if 'sqlite' in str(type(dbapi_conn)):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

engine = create_async_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
)


@pytest.fixture(scope="session", autouse=True)
def apply_overrides():
    """Apply overrides once for the session."""
    async def override_get_db():
        async with TestingSessionLocal() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    yield
    app.dependency_overrides = {}

@pytest.fixture(autouse=True)
async def setup_database():
    """Create tables before each test function and drop after."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    
    yield
    
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

@pytest.fixture
async def client():
    """Async client for testing."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

# Shared session for fixture data creation
@pytest.fixture
async def db_session():
    async with TestingSessionLocal() as session:
        yield session

@pytest.fixture
def session_factory():
    return TestingSessionLocal


# Marketplace fixtures

def token_for(user: User) -> str:
    return issue_access_token({"sub": user.login, "user_id": user.id, "role": user.role.value})


@pytest.fixture
def auth_headers():
    """Bearer headers for a committed account."""
    def _headers(user: User) -> dict:
        return {"Authorization": f"Bearer {token_for(user)}"}
    return _headers

@pytest.fixture
def days_ago():
    def _days_ago(days: int) -> datetime:
        return datetime.now(timezone.utc) - timedelta(days=days)
    return _days_ago

@pytest.fixture
def days_ahead():
    def _days_ahead(days: int) -> datetime:
        return datetime.now(timezone.utc) + timedelta(days=days)
    return _days_ahead


@pytest.fixture
async def make_user(db_session):
    """Factory for committed accounts."""
    async def _make(login: str, balance="0.00", role=UserRole.BUYER, claimed_mods="", is_active=True):
        user = User(
            login=login,
            email=f"{login}@test.com",
            role=role,
            balance=Decimal(str(balance)),
            claimed_mods=claimed_mods,
            is_active=is_active,
        )
        db_session.add(user)
        await db_session.commit()
        return user
    return _make

@pytest.fixture
async def admin(make_user):
    return await make_user("admin", role=UserRole.ADMIN)

@pytest.fixture
async def developer(make_user):
    """Account that receives earnings for developer key 'acme'."""
    return await make_user("acme_dev", role=UserRole.DEVELOPER)

@pytest.fixture
async def buyer(make_user):
    return await make_user("buyer", balance="100.00")

@pytest.fixture
async def catalog(db_session, developer):
    """Mods 1..3 by 'acme' and a bundle of mods 1 and 2."""
    db_session.add_all([
        Developer(developer_key="acme", payable_login=developer.login),
        Mod(id=1, name="Better Maps", developer_key="acme", price=Decimal("10.00")),
        Mod(id=2, name="Night Vision", developer_key="acme", price=Decimal("5.00")),
        Mod(id=3, name="Free Skins", developer_key="acme", price=Decimal("0.00")),
        Bundle(developer_key="acme", mod_ids="1,2", price=Decimal("12.00")),
    ])
    await db_session.commit()
    return {1: Decimal("10.00"), 2: Decimal("5.00"), 3: Decimal("0.00")}

@pytest.fixture
async def make_server(db_session):
    async def _make(owner: User, mods: str = "", name: str = "srv"):
        server = Server(owner_id=owner.id, name=name, ip="10.0.0.1", port="27015", mods=mods)
        db_session.add(server)
        await db_session.commit()
        return server
    return _make
