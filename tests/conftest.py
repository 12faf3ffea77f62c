"""
tests/conftest.py
Shared fixtures: a fresh SQLite database per test, fake Redis, an HTTP
client bound to the app, and ready-made users.

Each request gets its own session, like production. Setup and assertions
go through the `db` fixture session; read fresh state with `fetch()`.
"""

import os

os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["APP_ENV"] = "testing"

import uuid
from decimal import Decimal

import fakeredis.aioredis
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from config.database import Base, get_db
from config.redis_client import get_redis
from main import app
from services.ledger.service import LedgerService
from shared.models.models import User, UserRole
from shared.utils.security import create_access_token, hash_password

TEST_PASSWORD = "Password123!"


def _sqlite_engine(path, begin_statement: str):
    """
    aiosqlite engine on a file database in WAL mode. The driver's own
    transaction handling is disabled so BEGIN is emitted here.
    """
    engine = create_async_engine(f"sqlite+aiosqlite:///{path}", connect_args={"timeout": 30})

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql(begin_statement)

    return engine


def auth_headers(user: User) -> dict:
    token, _ = create_access_token(str(user.id), user.role.value, user.email)
    return {"Authorization": f"Bearer {token}"}


async def fetch(sessions, model, pk):
    """Load a row through a new session, so the result reflects committed state."""
    async with sessions() as session:
        return await session.get(model, pk)


# ── Database ──────────────────────────────────────────────────

@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "marketplace.db"


@pytest_asyncio.fixture
async def engine(db_path):
    engine = _sqlite_engine(db_path, "BEGIN")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def sessions(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest_asyncio.fixture
async def locking_sessions(engine, db_path):
    """
    Sessions whose transactions start with BEGIN IMMEDIATE, so concurrent
    writers queue on the database lock the way row locks queue them in
    PostgreSQL.
    """
    locking_engine = _sqlite_engine(db_path, "BEGIN IMMEDIATE")
    yield async_sessionmaker(
        locking_engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
    )
    await locking_engine.dispose()


@pytest_asyncio.fixture
async def db(sessions):
    async with sessions() as session:
        yield session


@pytest_asyncio.fixture
async def redis():
    client = fakeredis.aioredis.FakeRedis(decode_responses=True)
    yield client
    await client.flushall()
    await client.aclose()


@pytest_asyncio.fixture
async def client(sessions, redis):
    async def _get_db():
        async with sessions() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_redis] = lambda: redis
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


# ── Users ─────────────────────────────────────────────────────

@pytest_asyncio.fixture
async def make_user(db):
    async def _make_user(
        role: UserRole = UserRole.STUDENT,
        first_name: str = "Test",
        balance: Decimal = Decimal("0.00"),
        password: str = None,
    ) -> User:
        user = User(
            id=uuid.uuid4(),
            email=f"{first_name.lower()}-{uuid.uuid4().hex[:8]}@campus.edu",
            first_name=first_name,
            last_name="User",
            role=role,
            password_hash=hash_password(password) if password else None,
        )
        db.add(user)
        await db.commit()
        if balance:
            await LedgerService(db).deposit(user.id, balance, "Opening balance")
            await db.refresh(user)
            await db.commit()
        return user

    return _make_user


@pytest_asyncio.fixture
async def student(make_user) -> User:
    return await make_user(UserRole.STUDENT, "Ada")


@pytest_asyncio.fixture
async def provider(make_user) -> User:
    return await make_user(UserRole.PROVIDER, "Bola")


@pytest_asyncio.fixture
async def bidders(make_user) -> list:
    return [await make_user(UserRole.PROVIDER, name) for name in ("Chidi", "Dayo", "Emeka")]


@pytest_asyncio.fixture
async def admin(make_user) -> User:
    return await make_user(UserRole.ADMIN, "Admin")


@pytest_asyncio.fixture
async def password_user(make_user) -> User:
    return await make_user(UserRole.STUDENT, "Funmi", password=TEST_PASSWORD)
