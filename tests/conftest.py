"""Pytest configuration and fixtures.

The app runs against an in-memory SQLite database; mail goes to a FakeMailer
and reminder timers only fire when a test fires them.
"""

import os

os.environ.setdefault("SECRET_KEY", "test-secret")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("MAIL_BACKEND", "log")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, create_engine

from app.database import get_db
from app.main import app
from app.reminders import ReminderScheduler

from .fakes import FakeMailer, TimerRecorder

DEFAULT_PASSWORD = "pass1234"


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def db_session(engine):
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def mailer():
    return FakeMailer()


@pytest.fixture
def timers():
    return TimerRecorder()


@pytest.fixture
def scheduler(mailer, timers):
    return ReminderScheduler(mailer=mailer, timer_factory=timers)


@pytest.fixture
def client(engine, mailer, scheduler):
    """TestClient wired to the test database, fake mailer and manual timers."""
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    def override_get_db():
        db = TestingSession()
        try:
            yield db
        finally:
            db.close()

    original_mailer = app.state.mailer
    original_scheduler = app.state.reminder_scheduler
    app.dependency_overrides[get_db] = override_get_db
    app.state.mailer = mailer
    app.state.reminder_scheduler = scheduler

    yield TestClient(app)

    app.dependency_overrides.clear()
    app.state.mailer = original_mailer
    app.state.reminder_scheduler = original_scheduler


def register(client, email, password=DEFAULT_PASSWORD, name=None):
    """Register a user and return (token, user) from the response."""
    body = {"email": email, "password": password}
    if name is not None:
        body["name"] = name
    response = client.post("/api/auth/register", json=body)
    assert response.status_code == 201, response.text
    data = response.json()
    return data["token"], data["user"]


def auth(token):
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def owner(client):
    return register(client, "owner@tt.com", name="Task Owner")


@pytest.fixture
def other(client):
    return register(client, "other@tt.com", name="Someone Else")
