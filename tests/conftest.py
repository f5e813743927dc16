"""
Pytest configuration and shared fixtures.
"""

import os

os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("DATABASE_URL", "sqlite://")

from datetime import date, datetime  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from app import models_google_calendar  # noqa: E402, F401
from app import rate_limiter  # noqa: E402
from app.auth import get_current_user  # noqa: E402
from app.database import Base, build_engine, get_db, log_slow_queries  # noqa: E402
from app.models import Appointment, User  # noqa: E402

# 2030-01-07 is a Monday
MONDAY = date(2030, 1, 7)
SATURDAY = date(2030, 1, 12)
SUNDAY = date(2030, 1, 13)
NOW = datetime(2030, 1, 7, 8, 0)

OPEN_9_TO_5 = {"isOpen": True, "start": "09:00", "end": "17:00"}
WEEK_SCHEDULE = {
    "monday": OPEN_9_TO_5,
    "tuesday": OPEN_9_TO_5,
    "wednesday": OPEN_9_TO_5,
    "thursday": OPEN_9_TO_5,
    "friday": OPEN_9_TO_5,
    "saturday": {"isOpen": True, "start": "10:00", "end": "14:00"},
    "sunday": {"isOpen": False, "start": "09:00", "end": "17:00"},
}


@pytest.fixture
def engine():
    engine = build_engine("sqlite://", poolclass=StaticPool)
    log_slow_queries(engine)
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(bind=engine, autocommit=False, autoflush=False)()
    yield session
    session.close()


@pytest.fixture(autouse=True)
def reset_rate_limits():
    rate_limiter.memory_cache.clear()
    yield
    rate_limiter.memory_cache.clear()


def make_user(db, uid: str, role: str = "customer", **fields) -> User:
    user = User(firebase_uid=uid, email=f"{uid}@example.com", role=role, **fields)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def vendor(db):
    return make_user(
        db,
        "vendor-1",
        role="vendor",
        full_name="Glow Studio Owner",
        business_name="Glow Studio",
        slug="glow-studio",
        schedule=WEEK_SCHEDULE,
    )


@pytest.fixture
def customer(db):
    return make_user(db, "customer-1", full_name="Ana Ruiz", phone_number="+15550000000")


@pytest.fixture
def other_customer(db):
    return make_user(db, "customer-2", full_name="Ben Okafor")


def add_appointment(db, vendor, customer, scheduled_at, status="pending", duration=60, **fields):
    appointment = Appointment(
        vendor_id=vendor.id,
        customer_id=customer.id,
        customer_name=customer.full_name or "Customer",
        customer_phone="+15551234567",
        service_id="cut",
        service_name="Haircut",
        duration_minutes=duration,
        price=40.0,
        scheduled_at=scheduled_at,
        status=status,
        **fields,
    )
    db.add(appointment)
    db.commit()
    db.refresh(appointment)
    return appointment


def booking_payload(vendor, **overrides) -> dict:
    payload = {
        "vendorId": vendor.id,
        "customerName": "Ana Ruiz",
        "customerPhone": "+1 (555) 123-4567",
        "customerEmail": "ana@example.com",
        "serviceId": "cut",
        "serviceName": "Haircut",
        "duration": 30,
        "date": MONDAY.isoformat(),
        "time": "10:00",
        "price": 40,
    }
    payload.update(overrides)
    return payload


async def sync_ok(db, appointment):
    return "evt-123"


@pytest.fixture
def client(db):
    """TestClient bound to the test session; authenticate with client.login(user)"""
    from app.main import app

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    test_client = TestClient(app)

    def login(user):
        app.dependency_overrides[get_current_user] = lambda: user

    test_client.login = login
    yield test_client
    app.dependency_overrides.clear()
