"""
Shared fixtures: an in-memory SQLite database per test, user factories,
bearer tokens and a notification dispatcher that records what was sent.
"""

import os

os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("DATABASE_URL", "sqlite://")

from datetime import date

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.api.deps import get_notifier
from app.core.constants import BookingStatus
from app.core.security import create_access_token
from app.db.base import Base, get_db
from app.db.models.booking import Booking
from app.db.models.category import Category
from app.db.models.user import User
from app.main import app
from app.services.notifications import NotificationDispatcher


class RecordingNotifier(NotificationDispatcher):
    def __init__(self):
        self.sent = []

    def send(self, user_id, category, title, message, link=None):
        self.sent.append(
            {"user_id": user_id, "category": category, "title": title, "message": message, "link": link}
        )

    def titles_for(self, user_id):
        return [n["title"] for n in self.sent if n["user_id"] == user_id]


class FailingNotifier(NotificationDispatcher):
    def send(self, user_id, category, title, message, link=None):
        raise RuntimeError("notification backend unavailable")


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def client(session_factory, notifier):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notifier] = lambda: notifier
    yield TestClient(app)
    app.dependency_overrides.clear()


# --------------------------
# Factories
# --------------------------

def _make_user(db, name, role, **fields):
    slug = name.lower().replace(" ", ".")
    categories = fields.pop("categories", [])
    user = User(
        email=f"{slug}@marketplace.io",
        name=name,
        password_hash="not-used-in-tests",
        role=role,
        **fields,
    )
    for category_name in categories:
        category = db.query(Category).filter(Category.name == category_name).first()
        if category is None:
            category = Category(name=category_name)
            db.add(category)
        user.categories.append(category)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def make_customer(db):
    def factory(name="Alice Client", **fields):
        return _make_user(db, name, "customer", **fields)
    return factory


@pytest.fixture
def make_provider(db):
    def factory(name="Bob Plumber", **fields):
        fields.setdefault("hourly_rate", 40)
        return _make_user(db, name, "provider", **fields)
    return factory


@pytest.fixture
def customer(make_customer):
    return make_customer()


@pytest.fixture
def provider(make_provider):
    return make_provider(city="New York", latitude=40.72, longitude=-74.01, categories=["Plumbing"])


@pytest.fixture
def make_booking(db):
    def factory(customer, provider, status=BookingStatus.PENDING, budget=100, **fields):
        booking = Booking(
            customer_id=customer.id,
            provider_id=provider.id,
            service_category=fields.pop("service_category", "Plumbing"),
            description=fields.pop("description", "Fix the leaking kitchen sink"),
            booking_date=fields.pop("booking_date", date(2026, 11, 2)),
            booking_time=fields.pop("booking_time", "10:00"),
            budget=budget,
            status=status,
            **fields,
        )
        db.add(booking)
        db.commit()
        db.refresh(booking)
        return booking
    return factory


@pytest.fixture
def auth_headers():
    def build(user):
        token = create_access_token({"sub": user.email})
        return {"Authorization": f"Bearer {token}"}
    return build


@pytest.fixture
def failing_notifier():
    return FailingNotifier()
