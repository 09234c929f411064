"""
Test configuration and fixtures for the short link service.
This centralizes all test setup, making individual tests clean.
"""

from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from main import app
from shortlink_app.cache.strategies import NullCache
from shortlink_app.database.connection import Base, get_db
from shortlink_app.dependencies import get_activity_recorder, get_cache
from shortlink_app.models import Activity, Link
from shortlink_app.services.activity_recorder import ActivityRecorder
from shortlink_app.services.analytics_service import AnalyticsService
from shortlink_app.services.link_registry import LinkRegistry

# Test database configuration
SQLALCHEMY_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(SQLALCHEMY_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

TEST_DOMAIN = "sho.rt"


@pytest.fixture(scope="function")
def db_session():
    """
    Create a fresh database session for each test.
    This ensures tests are isolated and don't affect each other.
    """
    Base.metadata.create_all(bind=engine)

    db = TestingSessionLocal()

    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def recorder(db_session):
    """Recorder writing through its own sessions on the test database"""
    return ActivityRecorder(session_factory=TestingSessionLocal)


@pytest.fixture
def registry(db_session):
    return LinkRegistry(db_session, cache=NullCache(), domain=TEST_DOMAIN, path="s")


@pytest.fixture
def analytics(db_session):
    return AnalyticsService(db_session)


@pytest.fixture
def add_click(db_session):
    """Insert an activity row directly, e.g. with a clicked_at in the past"""

    def _add(link: Link, **fields) -> Activity:
        fields.setdefault("ip", "203.0.113.7")
        fields.setdefault("clicked_at", datetime.now(timezone.utc))
        activity = Activity(link_id=link.id, **fields)
        db_session.add(activity)
        db_session.commit()
        return activity

    return _add


@pytest.fixture
def activity_count(db_session):
    """Number of stored activity rows, optionally for one link"""

    def _count(link_id=None) -> int:
        query = db_session.query(Activity)
        if link_id is not None:
            query = query.filter(Activity.link_id == link_id)
        return query.count()

    return _count


@pytest.fixture(scope="function")
def client(db_session, recorder):
    """
    Create a test client with database, cache and recorder overridden.
    This is the main fixture that HTTP tests use.
    """
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_cache] = lambda: NullCache()
    app.dependency_overrides[get_activity_recorder] = lambda: recorder

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
