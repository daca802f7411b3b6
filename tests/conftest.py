"""
Shared fixtures: a throw-away SQLite database per test and an app bound to it.
"""

from pathlib import Path

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient

from config.settings import Settings
from database.models import Base
from database.session import build_engine, build_session_factory


def make_settings(tmp_path: Path, **overrides) -> Settings:
    values = {
        "database_url": f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        "auto_create_tables": True,
        "bcrypt_rounds": 4,
    }
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def settings(tmp_path):
    return make_settings(tmp_path)


@pytest_asyncio.fixture
async def db_engine(settings):
    engine = build_engine(settings)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def db(db_engine):
    factory = build_session_factory(db_engine)
    async with factory() as session:
        yield session


@pytest.fixture
def session_factory(db_engine):
    return build_session_factory(db_engine)


def make_client(settings: Settings) -> TestClient:
    from main import create_app

    return TestClient(create_app(settings))


@pytest.fixture
def client(settings):
    with make_client(settings) as c:
        yield c


@pytest.fixture
def client_factory(tmp_path):
    """Build a client with settings overrides, e.g. ``client_factory(session_ttl_seconds=-1)``."""
    clients = []

    def _make(**overrides) -> TestClient:
        c = make_client(make_settings(tmp_path, **overrides))
        c.__enter__()
        clients.append(c)
        return c

    yield _make
    for c in clients:
        c.__exit__(None, None, None)
