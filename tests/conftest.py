import os
import sys

import httpx
import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from httpx import ASGITransport
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

# keep the app's own engine off the developer database
os.environ.setdefault("DATABASE_URL", "sqlite://")

import config  # noqa: E402
import models  # noqa: E402,F401
from database import Base, get_db, get_session_factory  # noqa: E402
from main import app  # noqa: E402
from utils.cache import CacheGateway, get_cache  # noqa: E402
from utils.push_gateway import get_push_gateway  # noqa: E402

from factories import FakePushGateway  # noqa: E402

ADMIN_TOKEN = "test-admin-token"


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_local(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_local):
    session = session_local()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def cache():
    return CacheGateway()


@pytest.fixture
def push_gateway():
    return FakePushGateway()


@pytest.fixture
def admin_token(monkeypatch):
    monkeypatch.setattr(config, "ADMIN_TOKEN", ADMIN_TOKEN)
    return ADMIN_TOKEN


@pytest.fixture
def api(session_local, cache, push_gateway):
    """TestClient wired to the in-memory database, a fresh cache and a fake push gateway."""

    def override_get_db():
        db = session_local()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_local
    app.dependency_overrides[get_cache] = lambda: cache
    app.dependency_overrides[get_push_gateway] = lambda: push_gateway

    with TestClient(app) as client:
        yield client

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def client(api):
    """Async client sharing the overrides of the `api` fixture."""
    transport = ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
