import uuid
from collections.abc import AsyncGenerator
from datetime import datetime, timezone

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import StaticPool, event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from friendgraph.database import get_db
from friendgraph.dependencies import get_current_user
from friendgraph.main import app
from friendgraph.models import Base
from friendgraph.models.user import User
from friendgraph.services.friendship_lifecycle import FriendshipLifecycle
from friendgraph.services.pair_locks import PairLocks
from friendgraph.services.relationship_store import RelationshipStore
from friendgraph.services.request_reconciler import RequestReconciler

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


class FakePipeline:
    """Queues sorted-set commands the way the rate limiter issues them."""

    def __init__(self, redis: "FakeRedis"):
        self._redis = redis
        self._commands = []

    def zremrangebyscore(self, key, low, high):
        self._commands.append(("zremrangebyscore", key, low, high))

    def zadd(self, key, mapping):
        self._commands.append(("zadd", key, mapping))

    def zcard(self, key):
        self._commands.append(("zcard", key))

    def expire(self, key, seconds):
        self._commands.append(("expire", key, seconds))

    async def execute(self):
        results = []
        for name, key, *args in self._commands:
            zset = self._redis._zsets.setdefault(key, {})
            if name == "zremrangebyscore":
                low, high = args
                stale = [m for m, score in zset.items() if low <= score <= high]
                for member in stale:
                    del zset[member]
                results.append(len(stale))
            elif name == "zadd":
                zset.update(args[0])
                results.append(len(args[0]))
            elif name == "zcard":
                results.append(len(zset))
            else:
                self._redis._ttls[key] = args[0]
                results.append(True)
        return results


class FakeRedis:
    """In-memory Redis mock for testing."""

    def __init__(self):
        self._store: dict[str, str] = {}
        self._zsets: dict[str, dict] = {}
        self._ttls: dict[str, int] = {}

    async def get(self, key: str) -> str | None:
        return self._store.get(key)

    async def set(self, key: str, value: str, ex: int | None = None) -> None:
        self._store[key] = str(value)
        if ex:
            self._ttls[key] = ex

    def pipeline(self) -> FakePipeline:
        return FakePipeline(self)

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        pass


def make_user(email: str, first_name: str, last_name: str) -> User:
    return User(
        id=uuid.uuid4(),
        email=email,
        first_name=first_name,
        last_name=last_name,
        profile_picture=f"https://cdn.example.com/{first_name.lower()}.png",
        created_at=datetime.now(timezone.utc),
        updated_at=datetime.now(timezone.utc),
    )


@pytest.fixture
async def db_engine():
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
async def db_session(db_engine) -> AsyncGenerator[AsyncSession, None]:
    session_factory = async_sessionmaker(
        db_engine, class_=AsyncSession, expire_on_commit=False
    )
    async with session_factory() as session:
        yield session


@pytest.fixture
async def fk_session() -> AsyncGenerator[AsyncSession, None]:
    """Session on a database that enforces foreign keys, as PostgreSQL does."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine.sync_engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session
    await engine.dispose()


@pytest.fixture
def locks() -> PairLocks:
    return PairLocks()


@pytest.fixture
def store(db_session: AsyncSession) -> RelationshipStore:
    return RelationshipStore(db_session)


@pytest.fixture
def reconciler(store: RelationshipStore, locks: PairLocks) -> RequestReconciler:
    return RequestReconciler(store, locks)


@pytest.fixture
def lifecycle(store: RelationshipStore, locks: PairLocks) -> FriendshipLifecycle:
    return FriendshipLifecycle(store, locks)


async def _persist(db_session: AsyncSession, user: User) -> User:
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


@pytest.fixture
async def test_user(db_session: AsyncSession) -> User:
    return await _persist(db_session, make_user("ayse@example.com", "Ayse", "Kaya"))


@pytest.fixture
async def second_user(db_session: AsyncSession) -> User:
    return await _persist(db_session, make_user("mehmet@example.com", "Mehmet", "Demir"))


@pytest.fixture
async def third_user(db_session: AsyncSession) -> User:
    return await _persist(db_session, make_user("zeynep@example.com", "Zeynep", "Sahin"))


@pytest.fixture
async def client(db_engine, test_user: User) -> AsyncGenerator[AsyncClient, None]:
    session_factory = async_sessionmaker(
        db_engine, class_=AsyncSession, expire_on_commit=False
    )

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def override_get_current_user():
        return test_user

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_user] = override_get_current_user
    app.state.redis = FakeRedis()
    app.state.pair_locks = PairLocks()

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def act_as():
    """Switch the user the API sees for the rest of the test."""

    def _act_as(user: User) -> None:
        app.dependency_overrides[get_current_user] = lambda: user

    return _act_as
