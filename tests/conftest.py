"""Pytest configuration and shared fixtures."""
import os
import tempfile

# keep log files out of the working tree; must run before gtin_pool.settings is imported
os.environ.setdefault("GTIN_DATA_ROOT", tempfile.mkdtemp(prefix="gtin-pool-tests-"))

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient

from gtin_pool.database import build_engine, build_session_factory, create_all
from gtin_pool.settings import settings
from gtin_pool.services import SqlPoolStore, PoolAllocator, GtinImportService


SCOPE = "acme"


@pytest.fixture
def scope() -> str:
    return SCOPE


@pytest.fixture
def sqlite_url(tmp_path) -> str:
    return f"sqlite+aiosqlite:///{(tmp_path / 'gtin_pool.db').as_posix()}"


@pytest_asyncio.fixture
async def engine(sqlite_url):
    """Fresh SQLite file database with all tables."""
    eng = build_engine(sqlite_url)
    await create_all(eng)
    yield eng
    await eng.dispose()


@pytest_asyncio.fixture
async def session_factory(engine):
    return build_session_factory(engine)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def store(db) -> SqlPoolStore:
    return SqlPoolStore(db)


@pytest_asyncio.fixture
async def allocator(store, scope) -> PoolAllocator:
    return PoolAllocator(store, scope)


@pytest_asyncio.fixture
async def importer(store, scope) -> GtinImportService:
    return GtinImportService(store, scope)


@pytest.fixture
def client(sqlite_url, monkeypatch):
    """TestClient running the app lifespan against a throwaway SQLite database."""
    monkeypatch.setattr(settings, "DATABASE_URL", sqlite_url)
    monkeypatch.setattr(settings, "DB_CREATE_ALL", True)
    from gtin_pool.main import app

    with TestClient(app) as c:
        yield c
