import itertools
import os
import tempfile
from datetime import timedelta

# Point the app at a throwaway database before any app module reads settings
_DB_DIR = tempfile.mkdtemp(prefix="campus-events-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_DB_DIR, 'test.db')}"

import fakeredis
import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

import app.models  # noqa: F401
from app.core.clock import FixedClock
from app.core.config import get_settings
from app.database.db import Base, SessionLocal, engine
from app.main import app
from app.models.events import Event, EventStatus
from app.models.locations import Location
from app.models.users import User, UserCategory, UserRole
from app.services.container import build_services
from app.tests.helpers import NOW, RecordingNotificationSender

TestingSessionLocal = SessionLocal


@pytest.fixture(scope="session", autouse=True)
def setup_database():
    """Set up and tear down the database for the test session."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db_session():
    db: Session = TestingSessionLocal()
    try:
        yield db
    finally:
        db.rollback()
        db.close()
        with engine.begin() as conn:
            for table in reversed(Base.metadata.sorted_tables):
                conn.execute(table.delete())


@pytest.fixture
def fake_redis():
    return fakeredis.FakeRedis(decode_responses=True)


@pytest.fixture
def clock():
    return FixedClock(NOW)


@pytest.fixture
def notifier():
    return RecordingNotificationSender()


@pytest.fixture
def services(fake_redis, notifier, clock):
    return build_services(get_settings(), redis_client=fake_redis, notifier=notifier, clock=clock)


@pytest.fixture
def client(services, db_session):
    app.state.services = services
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def make_user(db_session):
    counter = itertools.count(1)

    def _make(role=UserRole.USER, category=UserCategory.MAHASISWA, name=None) -> User:
        n = next(counter)
        user = User(
            name=name or f"User {n}",
            email=f"user{n}@campus.test",
            role=role.value,
            category=category.value,
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make


@pytest.fixture
def location(db_session) -> Location:
    loc = Location(name="Main Auditorium", capacity=300, is_active=True)
    db_session.add(loc)
    db_session.commit()
    db_session.refresh(loc)
    return loc


@pytest.fixture
def make_event(db_session, location, make_user):
    def _make(
        creator=None,
        status=EventStatus.PUBLISHED,
        starts_in=timedelta(days=2),
        max_attendees=None,
        allowed_categories=None,
        registration_opens_in=timedelta(days=-1),
        registration_closes_in=None,
        title="Campus Seminar",
    ) -> Event:
        creator = creator or make_user()
        starts_at = NOW + starts_in
        closes_at = NOW + registration_closes_in if registration_closes_in is not None else starts_at - timedelta(hours=1)
        event = Event(
            title=title,
            starts_at=starts_at,
            registration_opens_at=NOW + registration_opens_in,
            registration_closes_at=closes_at,
            location_id=location.id,
            max_attendees=max_attendees,
            allowed_categories=allowed_categories,
            created_by=creator.id,
            status=status.value,
        )
        db_session.add(event)
        db_session.commit()
        db_session.refresh(event)
        return event

    return _make
