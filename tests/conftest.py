import os

# The app module builds its engine at import time; keep it off Postgres in tests
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")

import random
import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession
from sqlalchemy.orm import sessionmaker
from models.models import Base
from repositories.memory import InMemoryStore
from repositories.sql import SqlAlchemyStore
from schemas import TeamMember
from services import teams as team_service
from main import app


def _database_url(tmp_path):
    # Point TEST_DATABASE_URL at Postgres to exercise real row locking
    return os.getenv("TEST_DATABASE_URL") or f"sqlite+aiosqlite:///{tmp_path / 'test.db'}"


@pytest.fixture(scope="function")
async def session_maker(tmp_path):
    """Session maker bound to a fresh schema, dropped after the test."""
    test_engine = create_async_engine(_database_url(tmp_path), echo=False)
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    try:
        yield sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)
    finally:
        async with test_engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
        await test_engine.dispose()


@pytest.fixture(params=["memory", "sql"])
def store(request):
    """Every service test runs against both store implementations."""
    if request.param == "memory":
        return InMemoryStore()
    return SqlAlchemyStore(request.getfixturevalue("session_maker"))


@pytest.fixture
def rng():
    return random.Random(1234)


@pytest.fixture(scope="function")
async def client(session_maker):
    """Create a test client."""
    # Override the database session maker
    import models.database as db_module
    original_session_maker = db_module.async_session_maker
    db_module.async_session_maker = session_maker

    try:
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
            yield ac
    finally:
        # Restore original session maker
        db_module.async_session_maker = original_session_maker


@pytest.fixture
def make_team(store):
    """Create a team in ``store`` with the given active and inactive user ids."""
    async def _make_team(team_name, active, inactive=()):
        members = [TeamMember(user_id=uid, username=uid.upper(), is_active=True) for uid in active]
        members += [TeamMember(user_id=uid, username=uid.upper(), is_active=False) for uid in inactive]
        return await team_service.add_team(team_name, members, store=store)

    return _make_team
