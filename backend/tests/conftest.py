"""Pytest configuration and fixtures."""

import os

# Must be set before the application settings are imported
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ["STORE_BACKEND"] = "memory"

import pytest
from typing import Generator

from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from queueline.core.config import settings
from queueline.core.security import create_staff_token
from queueline.db.base import Base
from queueline.db.session import get_db
from queueline.main import app
# Import all models to ensure they're registered with Base.metadata
from queueline.models import *
from queueline.services.queue_service import QueueService
from queueline.services.realtime import MemoryStore
from queueline.services.subscriptions import QueueSubscriptions

# Use in-memory SQLite for tests
TEST_DATABASE_URL = "sqlite:///:memory:"

# 2026-03-14 18:30:00 UTC
BASE_TIME_MS = 1773513000000


class FakeClock:
    """Millisecond clock the tests move by hand."""

    def __init__(self, now: int = BASE_TIME_MS):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, minutes: float = 0, seconds: float = 0) -> int:
        self.now += int(minutes * 60000 + seconds * 1000)
        return self.now


@pytest.fixture(scope="function")
def db_engine():
    """Create a test database engine."""
    engine = create_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def db_session(db_engine) -> Generator[Session, None, None]:
    """Create a test database session."""
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def service(store: MemoryStore, clock: FakeClock) -> QueueService:
    return QueueService(store, settings, clock=clock)


@pytest.fixture
def subscriptions(store: MemoryStore) -> QueueSubscriptions:
    return QueueSubscriptions(store)


@pytest.fixture(scope="function")
def client(db_session: Session, store: MemoryStore, service: QueueService) -> Generator[TestClient, None, None]:
    """Create a test client with database and realtime store overrides."""
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    # Disable rate limiters during tests to avoid flaky failures
    from queueline.core.rate_limit import limiter as global_limiter
    global_limiter.enabled = False
    # Don't raise server exceptions so we can test error status codes
    with TestClient(app, raise_server_exceptions=False) as test_client:
        # Replace what the lifespan built with the per-test store
        app.state.store = store
        app.state.queue_service = service
        app.state.subscriptions = QueueSubscriptions(store)
        yield test_client
    global_limiter.enabled = True
    app.dependency_overrides.clear()


@pytest.fixture
def staff_token() -> str:
    return create_staff_token()


@pytest.fixture
def staff_headers(staff_token: str) -> dict:
    """Get authorization headers for the staff dashboard."""
    return {"Authorization": f"Bearer {staff_token}"}


@pytest.fixture
def join_payload() -> dict:
    return {"name": "Alice", "phone": "0123456789", "partySize": 2}
