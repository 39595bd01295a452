import os
from datetime import datetime, timezone

import pytest

# Keep app startup (init_db) away from any on-disk database
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from courtbook.auth import ROLE_ADMIN, ROLE_USER, issue_token
from courtbook.config import SAME_DAY_FUTURE_HOURS, SlotPolicy, get_now, get_policy
from courtbook.database import get_session
from courtbook.main import app
from courtbook.routes.bookings import get_slot_locks
from courtbook.services.availability_feed import AvailabilityFeed, get_feed
from courtbook.services.slot_guard import SlotLockRegistry

TEST_DATABASE_URL = "sqlite:///:memory:"

# Frozen "now" for every request: 2025-05-30 08:00 UTC, so 2025-06-01 is bookable
FIXED_NOW = datetime(2025, 5, 30, 8, 0, tzinfo=timezone.utc)

TEST_POLICY = SlotPolicy(
    open_hour=9,
    close_hour=21,
    court_count=6,
    timezone_name="UTC",
    same_day_policy=SAME_DAY_FUTURE_HOURS,
    lock_timeout_ms=2000,
)

# ============================================================================
# Test Database Setup with StaticPool
# ============================================================================
# 1. sqlite:///:memory: with StaticPool so ALL sessions share the same DB
# 2. check_same_thread=False required for TestClient/threaded access
# 3. Models are imported (tests/__init__.py) before create_all()
# 4. Tables are dropped after each test so every test starts empty
test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


def override_get_session():
    """Override session to use test engine"""
    with Session(test_engine) as session:
        yield session


def auth_header(user_id: str, admin: bool = False) -> dict:
    """Authorization header carrying a freshly minted token."""
    token = issue_token(user_id, role=ROLE_ADMIN if admin else ROLE_USER)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture(name="session", scope="function")
def session_fixture():
    """Provide a test database session on a freshly created schema"""
    from courtbook.models.booking import Booking  # noqa: F401

    SQLModel.metadata.create_all(test_engine)

    with Session(test_engine) as session:
        yield session

    SQLModel.metadata.drop_all(test_engine)


@pytest.fixture(name="feed")
def feed_fixture():
    return AvailabilityFeed()


@pytest.fixture(name="locks")
def locks_fixture():
    return SlotLockRegistry()


@pytest.fixture(name="client")
def client_fixture(session: Session, feed: AvailabilityFeed, locks: SlotLockRegistry):
    """Provide a test client with overridden session, clock, policy, feed and slot locks

    Overrides MUST be set BEFORE TestClient() and stay in place for the
    entire duration so the app never touches its own engine or the real clock.
    """
    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_now] = lambda: FIXED_NOW
    app.dependency_overrides[get_policy] = lambda: TEST_POLICY
    app.dependency_overrides[get_feed] = lambda: feed
    app.dependency_overrides[get_slot_locks] = lambda: locks

    with TestClient(app) as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture(name="auth")
def auth_fixture():
    """auth(user_id, admin=False) -> Authorization header dict"""
    return auth_header
