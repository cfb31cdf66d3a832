"""
Test configuration and fixtures for the two-factor service tests.
"""
import os

# Configuration is read at import time, so it has to be in place before any app module loads
os.environ.setdefault("TOTP_ENCRYPTION_KEY", "test-master-key-0123456789abcdefghijklmnop")
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["SQL_DEBUG"] = "false"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.memory_rate_limiter import MemoryRateLimiter
from app.core.ttl_cache import TTLCache
from app.db import crud
from app.db.database import get_db
from app.db.models import Base
from app.main import create_app
from app.services.crypto import EnvelopeCipher

TEST_MASTER_KEY = "0123456789abcdef0123456789abcdef-test"


class FakeClock:
    """Callable clock whose time only moves when a test moves it."""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingAuditLogger:
    def __init__(self):
        self.events = []

    def record(self, event):
        self.events.append(event)


@pytest.fixture(scope="function")
def test_db_engine():
    """Create a test database engine for each test function."""
    engine = create_engine(
        "sqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
        echo=False  # Set to True for SQL debugging
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def test_db_session(test_db_engine):
    """Create a test database session for each test function."""
    TestingSessionLocal = sessionmaker(
        autocommit=False, autoflush=False, bind=test_db_engine
    )
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def cipher():
    return EnvelopeCipher(TEST_MASTER_KEY)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def audit_recorder():
    return RecordingAuditLogger()


@pytest.fixture
def user(test_db_session):
    return crud.create_user(test_db_session, "dr.grey@snarkhealth.test")


@pytest.fixture
def other_user(test_db_session):
    return crud.create_user(test_db_session, "nurse.joy@snarkhealth.test")


@pytest.fixture
def app(cipher, clock, test_db_session):
    """Application wired to the isolated database session and a controllable clock."""
    application = create_app(
        cipher=cipher,
        mfa_sessions=TTLCache(1800, clock=clock),
        rate_limiter=MemoryRateLimiter(clock=clock),
        clock=clock,
    )

    def override_get_db():
        try:
            yield test_db_session
        finally:
            pass

    application.dependency_overrides[get_db] = override_get_db
    return application


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def auth_session(app, user):
    """JWT session for `user` as issued by the session manager."""
    return app.state.session_manager.create_session(str(user.user_id), user.email)


@pytest.fixture
def auth_headers(auth_session):
    return {"Authorization": f"Bearer {auth_session['access_token']}"}
