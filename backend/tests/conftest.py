from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

import timeharbor.models  # noqa: F401
from timeharbor.api.deps import get_notifications
from timeharbor.auth import create_access_token
from timeharbor.database import Base, get_db
from timeharbor.main import app
from timeharbor.models.ticket import Ticket
from timeharbor.services.clock_engine import ClockEngine
from timeharbor.services.notifications import NotificationTrigger, Notifier
from timeharbor.services.rollup import RollupAggregator

T0 = datetime(2026, 3, 2, 9, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """Deterministic ``now`` for the engine."""

    def __init__(self, start: datetime = T0):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float):
        self.now = self.now + timedelta(seconds=seconds)

    def set(self, value: datetime):
        self.now = value


class RecordingNotifier(Notifier):
    def __init__(self):
        self.sent = []

    def notify(self, user_id, payload):
        self.sent.append((user_id, payload))

    def types(self):
        return [payload["type"] for _, payload in self.sent]


class FailingNotifier(Notifier):
    def notify(self, user_id, payload):
        raise RuntimeError("push gateway down")


@pytest.fixture
def db_engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(db_engine) -> Session:
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def clock_engine(db, notifier, clock) -> ClockEngine:
    return ClockEngine(db, NotificationTrigger(notifier), clock=clock)


@pytest.fixture
def aggregator(db, clock) -> RollupAggregator:
    return RollupAggregator(db, clock=clock)


@pytest.fixture
def make_ticket(db):
    def _make(title: str = "T1", team_id: str = "team-a") -> Ticket:
        ticket = Ticket(team_id=team_id, title=title, created_by="user-1")
        db.add(ticket)
        db.commit()
        db.refresh(ticket)
        return ticket

    return _make


@pytest.fixture
def client(db, notifier) -> TestClient:
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notifications] = lambda: NotificationTrigger(notifier)
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    def _headers(user_id: str = "user-1", role: str = "member") -> dict:
        token = create_access_token({"sub": user_id, "role": role})
        return {"Authorization": f"Bearer {token}"}

    return _headers
