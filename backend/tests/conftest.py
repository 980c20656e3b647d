"""
Shared pytest configuration for backend tests.

Service tests use an in-memory SQLite database. Route tests use a SQLite
file per test so every request-scoped session sees the same data.
"""

import os

# Must be set before the app (and its rate limiter) is imported
os.environ["ENV"] = "test"
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("RUN_MIGRATIONS_ON_STARTUP", "false")

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402
from sqlalchemy.pool import NullPool  # noqa: E402
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker  # noqa: E402

from backend.api.main import app  # noqa: E402
from backend.database.db import Base, get_db_session  # noqa: E402
from backend.database.models import AppSettings  # noqa: E402

LEAGUE_CODE = "beach"
ADMIN_CODE = "2468"


@pytest_asyncio.fixture
async def db_session():
    """Create a test database session."""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False)
    async_session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with async_session_maker() as session:
        yield session

    await engine.dispose()


@pytest.fixture
def client(tmp_path, monkeypatch):
    """
    TestClient backed by a fresh SQLite file with the settings row seeded
    (league code "beach", no current season).
    """
    monkeypatch.delenv("ADMIN_UNLOCK_CODE", raising=False)
    monkeypatch.delenv("ANNOUNCEMENT_WEBHOOK_URL", raising=False)

    db_path = tmp_path / "league.db"
    sync_engine = create_engine(f"sqlite:///{db_path}")
    Base.metadata.create_all(sync_engine)
    with Session(sync_engine) as session:
        session.add(AppSettings(id=1, playoff_mode=False, league_code=LEAGUE_CODE))
        session.commit()
    sync_engine.dispose()

    engine = create_async_engine(f"sqlite+aiosqlite:///{db_path}", poolclass=NullPool)
    session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async def override_get_db_session():
        async with session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db_session] = override_get_db_session
    yield TestClient(app)
    app.dependency_overrides.clear()


def sign_in(client):
    """Sign in a new anonymous device and return its auth headers."""
    response = client.post("/api/auth/anonymous")
    assert response.status_code == 200
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


def sign_in_admin(client):
    """Sign in a new device and unlock admin on it."""
    headers = sign_in(client)
    response = client.post("/api/admin/unlock", json={"code": ADMIN_CODE}, headers=headers)
    assert response.status_code == 200
    return headers


def start_season(client, admin_headers, number=1):
    response = client.post("/api/seasons", json={"season_number": number}, headers=admin_headers)
    assert response.status_code == 200
    return response.json()
