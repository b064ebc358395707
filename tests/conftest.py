import asyncio
import os
import tempfile

import pytest

# Must be set before the application modules read their configuration
_TMP = tempfile.mkdtemp(prefix="school-calendar-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TMP}/app.db"
os.environ["ADMIN_PASSWORD"] = "test-secret"
os.environ["SESSION_SECRET"] = "test-session-secret"
os.environ["PUBLIC_DIR"] = os.path.join(_TMP, "no-public")

from fastapi.testclient import TestClient  # noqa: E402

from school_calendar.db import get_db, init_db, make_engine, make_sessionmaker  # noqa: E402
from school_calendar.main import app  # noqa: E402

ADMIN_PASSWORD = "test-secret"


@pytest.fixture
def engine(tmp_path):
    eng = make_engine(f"sqlite+aiosqlite:///{tmp_path / 'calendar.db'}")
    asyncio.run(init_db(eng))
    yield eng
    asyncio.run(eng.dispose())


@pytest.fixture
def session_factory(engine):
    return make_sessionmaker(engine)


@pytest.fixture
def run(session_factory):
    """Run a store function against a fresh session and return its result."""
    def _run(fn, *args, **kwargs):
        async def go():
            async with session_factory() as session:
                return await fn(session, *args, **kwargs)
        return asyncio.run(go())
    return _run


def _client_for(factory):
    async def override_get_db():
        async with factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    return TestClient(app)


@pytest.fixture
def client(session_factory):
    yield _client_for(session_factory)
    app.dependency_overrides.clear()


@pytest.fixture
def admin_client(client):
    resp = client.post("/api/admin/login", json={"password": ADMIN_PASSWORD})
    assert resp.status_code == 200
    return client


@pytest.fixture
def broken_client(tmp_path):
    """Client whose database file cannot be opened, so every query fails."""
    eng = make_engine(f"sqlite+aiosqlite:///{tmp_path / 'missing' / 'app.db'}")
    yield _client_for(make_sessionmaker(eng))
    app.dependency_overrides.clear()
    asyncio.run(eng.dispose())
