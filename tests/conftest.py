"""
Shared fixtures: a real SQLite database per test (file-backed so several
threads can share it), plus small factories for vehicles and bookings.
"""

import os
import sys

import pytest

os.environ.setdefault("FEED_SYNC_ENABLED", "false")
os.environ.setdefault("LOG_JSON", "false")

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from sqlalchemy.orm import sessionmaker

from fleetcal.database import Base, build_engine
from fleetcal.models import Booking, BookingStatus, Company, Vehicle


@pytest.fixture
def engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'fleetcal-test.db'}")
    Base.metadata.create_all(bind=engine)
    yield engine
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
def company(db):
    company = Company(name="Desert Rentals")
    db.add(company)
    db.commit()
    return company


@pytest.fixture
def make_vehicle(db, company):
    def _make(name="Toyota Camry 2023"):
        vehicle = Vehicle(company_id=company.id, name=name)
        db.add(vehicle)
        db.commit()
        return vehicle
    return _make


@pytest.fixture
def vehicle(make_vehicle):
    return make_vehicle()


@pytest.fixture
def make_booking(db):
    def _make(vehicle_id, start, end, status=BookingStatus.CONFIRMED.value):
        booking = Booking(vehicle_id=vehicle_id, start_date=start, end_date=end, status=status)
        db.add(booking)
        db.commit()
        return booking
    return _make


@pytest.fixture
def client(session_factory):
    """TestClient bound to the per-test database (lifespan not run)"""
    from fastapi.testclient import TestClient
    from fleetcal.main import app
    from fleetcal.database import get_db, get_session_factory
    
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()
    
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    yield TestClient(app)
    app.dependency_overrides.clear()
