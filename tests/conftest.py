"""
Test infrastructure for the Blog API.

Strategy
--------
- SQLite in-memory via aiosqlite eliminates the need for a running Postgres
  instance in CI, keeping the suite fast and self-contained.
- StaticPool forces all async tasks to share the same in-memory database
  connection, which is required because SQLite in-memory databases are
  connection-scoped; a new connection would see an empty database.
- The app's get_db dependency is overridden so every test-time request uses
  the test session factory rather than the production one.
- All tables are created fresh before each test and dropped after.
- HTTP tests run with Redis disabled (cache._redis = None), which the
  CacheManager treats as a permanent miss.
- Service tests use ``FakeCache``, an in-memory stand-in that records
  every invalidation, and ``statements``, a log of every SQL statement the
  test engine executes, so cache hits can be asserted as "no SQL issued".
"""
import fnmatch
import json
import os

# Cheap hashes keep the auth-heavy HTTP tests fast.
os.environ.setdefault("BCRYPT_ROUNDS", "4")

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

from app.database import Base, get_db
from app.dependencies import get_cache
from app.main import app
from app.cache import cache
from app.middleware import install_query_counter
from app.services.article_service import ArticleService

# ---------------------------------------------------------------------------
# Test database engine — SQLite in-memory with aiosqlite
# ---------------------------------------------------------------------------

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

engine_test = create_async_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

# Register the per-request SQL query counter on the test engine.
install_query_counter(engine_test)

async_session_test = async_sessionmaker(
    engine_test,
    class_=AsyncSession,
    expire_on_commit=False,
)

_statement_log: list[str] = []


@event.listens_for(engine_test.sync_engine, "before_cursor_execute")
def _log_statement(conn, cursor, statement, parameters, context, executemany):
    _statement_log.append(statement)


# ---------------------------------------------------------------------------
# Dependency override — replace production get_db with the test session factory
# ---------------------------------------------------------------------------

async def override_get_db():
    async with async_session_test() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


app.dependency_overrides[get_db] = override_get_db


# ---------------------------------------------------------------------------
# In-memory cache
# ---------------------------------------------------------------------------

class FakeCache:
    """Dict-backed cache with the CacheManager interface.

    Values go through a JSON round-trip like they do in Redis, so cached
    reads never share mutable state with the caller.
    """

    def __init__(self) -> None:
        self.store: dict[str, str] = {}
        self.ttls: dict[str, int | None] = {}
        self.deleted: list[str] = []

    async def get(self, key: str):
        data = self.store.get(key)
        return json.loads(data) if data is not None else None

    async def set(self, key: str, value, ttl_ms: int | None = None) -> None:
        self.store[key] = json.dumps(value, default=str)
        self.ttls[key] = ttl_ms

    async def delete(self, *keys: str) -> None:
        for key in keys:
            self.deleted.append(key)
            self.store.pop(key, None)

    async def delete_pattern(self, pattern: str) -> None:
        for key in fnmatch.filter(list(self.store), pattern):
            await self.delete(key)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture(autouse=True)
async def setup_db():
    """Create all tables before each test, drop after to guarantee isolation."""
    async with engine_test.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine_test.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest_asyncio.fixture
async def db_session() -> AsyncSession:
    """
    Yield a live AsyncSession for tests that need to interact with the
    database directly (e.g. seeding data, asserting ORM state).
    """
    async with async_session_test() as session:
        yield session


@pytest.fixture
def fake_cache() -> FakeCache:
    return FakeCache()


@pytest.fixture
def article_service(db_session: AsyncSession, fake_cache: FakeCache) -> ArticleService:
    return ArticleService(db_session, fake_cache)


@pytest.fixture
def statements() -> list[str]:
    """SQL statements executed on the test engine from this point on."""
    _statement_log.clear()
    return _statement_log


@pytest_asyncio.fixture
async def async_client() -> AsyncClient:
    """
    Yield an httpx.AsyncClient wired to the FastAPI app via ASGITransport.

    Redis is disabled by setting cache._redis = None so the tests do not
    depend on external infrastructure; every read goes to the database.
    """
    cache._redis = None
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def http_cache() -> FakeCache:
    """A ``FakeCache`` injected into the app in place of Redis for one test."""
    fake = FakeCache()
    app.dependency_overrides[get_cache] = lambda: fake
    yield fake
    app.dependency_overrides.pop(get_cache, None)
