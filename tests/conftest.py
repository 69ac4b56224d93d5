"""
Pytest configuration and fixtures

Tests run against a throwaway sqlite file. The work queue and the workflow
engine open their own sessions and commit, so isolation is by emptying every
table after each test rather than by transactional rollback.

Redis is replaced by an in-memory FakeRedis; the work queue runs without the
global in-flight counter (per-process cap only) unless a test swaps in the
Lua-capable fakeredis server.
"""
import os
import sys
import tempfile
from unittest.mock import patch

import pytest

# Settings are read at import time; configure before importing the app.
_DB_DIR = tempfile.mkdtemp(prefix="fitfast-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_DB_DIR, 'test.db')}"
os.environ.setdefault("SECRET_KEY", "test-secret-key-that-is-at-least-32-characters-long")
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["EMAIL_ENABLED"] = "false"
os.environ["ONESIGNAL_APP_ID"] = "test-app"
os.environ["ONESIGNAL_REST_API_KEY"] = "test-key"
os.environ["LOG_FORMAT"] = "text"

# Add the parent directory to the path so we can import from services
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from core.database import Base, SessionLocal, engine  # noqa: E402
from models import Assessment, Profile  # noqa: E402
import services.plan_jobs  # noqa: E402,F401  (registers the generation job handlers)
import services.checkin_workflow  # noqa: E402,F401  (registers the workflow definition)
from tests.fake_helpers import FakeRedis, FakeTextClient  # noqa: E402


@pytest.fixture(scope="session", autouse=True)
def _create_schema():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def _clean_tables():
    yield
    with engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(table.delete())


@pytest.fixture(autouse=True)
def fake_redis():
    """Provide a FakeRedis and patch every get_redis_client consumer."""
    r = FakeRedis()
    with patch("core.cache.get_redis_client", return_value=r), \
            patch("core.rate_limit.get_redis_client", return_value=r), \
            patch("services.work_queue.get_redis_client", return_value=None):
        yield r


@pytest.fixture
def db_session():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.rollback()
        db.close()


@pytest.fixture
def text_client():
    client = FakeTextClient()
    with patch("services.plan_generator.get_text_client", return_value=client):
        yield client


@pytest.fixture
def sent_pushes():
    """Capture OneSignal pushes instead of calling the API."""
    sent = []

    def _send(subscription_id, contents, data=None):
        sent.append({"subscription_id": subscription_id, "contents": contents, "data": data})

    with patch("services.notifier.send_push", side_effect=_send):
        yield sent


@pytest.fixture
def client_user(db_session):
    """An active client with a completed assessment."""
    profile = Profile(
        user_id="user_client_1",
        full_name="Test Client",
        email="client@example.com",
        language="en",
        status="active",
    )
    assessment = Assessment(
        user_id="user_client_1",
        goals="lose fat, build strength",
        current_weight=82.0,
        height=178.0,
        equipment=["dumbbells"],
        food_preferences=["chicken", "rice"],
        allergies=[],
        dietary_restrictions=["halal"],
        medical_conditions=[],
        injuries=[],
        experience_level="intermediate",
    )
    db_session.add_all([profile, assessment])
    db_session.commit()
    return profile


@pytest.fixture
def coach_user(db_session):
    profile = Profile(
        user_id="user_coach_1",
        full_name="Coach",
        email="coach@example.com",
        status="active",
        is_coach=True,
    )
    db_session.add(profile)
    db_session.commit()
    return profile
