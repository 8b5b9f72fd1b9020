import os

# Settings are read at import time; point the application at the test database first.
os.environ.setdefault("DATABASE_URL", "sqlite:///./test_api.db")

from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from maintenance_api.core.db import Base, get_db
from maintenance_api.main import app
from maintenance_api.models.catalog import Building, Room, TicketCategory, User
from maintenance_api.models.enums import Priority, Role
from maintenance_api.schemas.ticket import TicketCreate
from maintenance_api.services.cache import stats_cache
from maintenance_api.services.tickets import TicketService

SQLALCHEMY_DATABASE_URL = "sqlite:///./test_api.db"
engine = create_engine(
    SQLALCHEMY_DATABASE_URL, connect_args={"check_same_thread": False}
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db_session():
    # Create the tables
    Base.metadata.create_all(bind=engine)
    stats_cache.invalidate()
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        # Drop the tables after the test
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def client(db_session):
    def override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def seed(db_session):
    admin = User(username="admin", email="admin@example.com", first_name="Ada", last_name="Admin", role=Role.ADMIN)
    technician = User(
        username="tech", email="tech@example.com", first_name="Tom", last_name="Fixer", role=Role.TECHNICIAN
    )
    other_technician = User(
        username="tech2", email="tech2@example.com", first_name="Tara", last_name="Wrench", role=Role.TECHNICIAN
    )
    tenant = User(username="tenant", email="tenant@example.com", first_name="Tina", last_name="Resident", role=Role.TENANT)
    db_session.add_all([admin, technician, other_technician, tenant])
    db_session.flush()

    building = Building(
        name="North Hall", address="1 College Rd", city="Springfield", state="IL", zip_code="62701",
        manager_id=admin.id,
    )
    other_building = Building(name="South Hall", address="2 College Rd", city="Springfield", state="IL", zip_code="62701")
    db_session.add_all([building, other_building])
    db_session.flush()

    room = Room(building_id=building.id, floor_number=2, room_number="204", room_type="Office")
    other_room = Room(building_id=other_building.id, floor_number=1, room_number="101")
    hvac = TicketCategory(name="HVAC", description="Heating and cooling", default_priority=Priority.HIGH)
    plumbing = TicketCategory(name="Plumbing", default_priority=Priority.MEDIUM)
    db_session.add_all([room, other_room, hvac, plumbing])
    db_session.commit()

    return SimpleNamespace(
        admin=admin,
        technician=technician,
        other_technician=other_technician,
        tenant=tenant,
        building=building,
        other_building=other_building,
        room=room,
        other_room=other_room,
        hvac=hvac,
        plumbing=plumbing,
    )


@pytest.fixture
def service(db_session):
    return TicketService(db_session)


@pytest.fixture
def make_ticket(service, seed):
    def _make(reporter=None, **fields):
        data = {
            "title": "Radiator is cold",
            "description": "The radiator in room 204 does not heat up.",
            "category_id": seed.hvac.id,
            "building_id": seed.building.id,
        }
        data.update(fields)
        return service.create_ticket(TicketCreate(**data), reporter_id=(reporter or seed.tenant).id)

    return _make


def auth(user):
    return {"X-User-Id": str(user.id)}
