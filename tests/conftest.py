"""Pytest configuration and shared fixtures.

Run with:
    pytest tests/                        # Run all tests
    pytest tests/test_parsers.py -v      # Run specific test file
"""

import os

# Must be set before schedulesync.config is imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["PENDING_ACTION_SWEEP_ENABLED"] = "false"
os.environ["DB_LOG_SLOW_QUERIES"] = "false"

from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient

from schedulesync.auth import get_current_user
from schedulesync.database import Base, SessionLocal, engine, get_db
from schedulesync.domain.assistant.router import ai_rate_limit, get_now
from schedulesync.main import app
from schedulesync.models import Booking, SchedulingRule, User

# Monday 2 March 2026, 09:00
NOW = datetime(2026, 3, 2, 9, 0)


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def db():
    """Fresh in-memory schema per test."""
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def user(db) -> User:
    user = User(
        firebase_uid="firebase-owner",
        email="owner@example.com",
        full_name="Olivia Owner",
        username="olivia",
        plan="free",
        ai_queries_used=0,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def client(db, user):
    """TestClient with auth, database, clock and rate limiter overridden."""

    def _get_db():
        yield db

    async def _no_rate_limit():
        return None

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_current_user] = lambda: user
    app.dependency_overrides[get_now] = lambda: NOW
    app.dependency_overrides[ai_rate_limit] = _no_rate_limit
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def make_booking(db, user):
    """Insert a booking for the test user."""

    def _make(start: datetime, minutes: int = 30, **fields) -> Booking:
        booking = Booking(
            user_id=user.id,
            title=fields.pop("title", "Meeting"),
            attendee_name=fields.pop("attendee_name", "Guest"),
            attendee_email=fields.pop("attendee_email", "guest@example.com"),
            start_time=start,
            end_time=start + timedelta(minutes=minutes),
            duration=minutes,
            status=fields.pop("status", "confirmed"),
            **fields,
        )
        db.add(booking)
        db.commit()
        db.refresh(booking)
        return booking

    return _make


@pytest.fixture
def make_rule(db, user):
    """Insert a scheduling rule for the test user."""

    def _make(trigger_type, trigger_value, action_type, action_value, **fields) -> SchedulingRule:
        rule = SchedulingRule(
            user_id=user.id,
            name=fields.pop("name", f"{trigger_type} -> {action_type}"),
            trigger_type=trigger_type,
            trigger_value=trigger_value,
            action_type=action_type,
            action_value=action_value,
            **fields,
        )
        db.add(rule)
        db.commit()
        db.refresh(rule)
        return rule

    return _make
