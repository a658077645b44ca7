"""Test fixtures — a fresh SQLite database per test.

Testing pattern for async SQLAlchemy + FastAPI:

1. Each test gets its own database file under tmp_path, schema created
   from the models. Nothing is shared between tests.
2. The app's get_db is overridden to open a new session per request from
   that database, exactly like production. Concurrent requests therefore
   use separate connections and really commit, which the access key race
   tests depend on.
3. SQLite's busy timeout is raised so racing writers queue instead of
   failing with "database is locked".

Environment is set before netkeeper is imported so Settings picks it up.
"""

import os
import tempfile

MASTER_KEY = "test-master-key"

_tmpdir = tempfile.mkdtemp(prefix="netkeeper-tests-")
os.environ["NETKEEPER_DATABASE_URL"] = f"sqlite+aiosqlite:///{_tmpdir}/app.db"
os.environ["NETKEEPER_MASTER_KEY"] = MASTER_KEY
os.environ["NETKEEPER_JWT_SECRET"] = "test-jwt-secret-with-enough-length-for-hs256"
os.environ["NETKEEPER_ENVIRONMENT"] = "development"

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from netkeeper.auth.dependencies import master_identity
from netkeeper.db.engine import get_db
from netkeeper.db.models import Base
from netkeeper.main import app


@pytest_asyncio.fixture()
async def session_factory(tmp_path):
    """Session factory bound to a brand-new database for this test."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path}/netkeeper.db",
        echo=False,
        connect_args={"timeout": 30},
        poolclass=NullPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest_asyncio.fixture()
async def db_session(session_factory):
    """A single session for service-level tests."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def master():
    """The superuser identity, as the auth dependency would resolve it."""
    return master_identity()


def _override_db(session_factory):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db


@pytest_asyncio.fixture()
async def client(session_factory):
    """HTTP client that sends the master key on every request."""
    _override_db(session_factory)

    transport = ASGITransport(app=app)
    async with AsyncClient(
        transport=transport,
        base_url="http://test",
        headers={"Authorization": f"Bearer {MASTER_KEY}"},
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture()
async def unauthenticated_client(session_factory):
    """HTTP client WITHOUT credentials — for testing real auth flows."""
    _override_db(session_factory)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture()
async def admin(client):
    """Create the admin (admin/password) and return its credentials."""
    r = await client.post(
        "/api/users/adm/createadmin",
        json={"username": "admin", "password": "password"},
    )
    assert r.status_code == 200
    return {"username": "admin", "password": "password"}


@pytest_asyncio.fixture()
async def admin_token(client, admin):
    r = await client.post("/api/users/adm/authenticate", json=admin)
    assert r.status_code == 200
    return r.json()["Response"]["AuthToken"]


@pytest_asyncio.fixture()
async def skynet(client):
    """Create the skynet network (10.71.0.0/16)."""
    r = await client.post(
        "/api/networks",
        json={"netid": "skynet", "addressrange": "10.71.0.0/16"},
    )
    assert r.status_code == 200
    return r.json()
