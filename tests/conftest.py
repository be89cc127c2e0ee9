from datetime import datetime
from itertools import count
from types import SimpleNamespace

import pytest
from sqlalchemy.exc import OperationalError

from app import create_app
from extensions import db
from models import Category, Complaint, Institution, Update, User

STAFF_PASSWORD = "Str0ng!Passw0rd"


@pytest.fixture
def app():
    app = create_app("testing")
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def app_ctx(app):
    with app.app_context():
        yield app


@pytest.fixture
def session(app_ctx):
    return db.session


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def refs(app):
    """Institutions, categories, and staff accounts shared by most tests."""
    with app.app_context():
        gasabo = Institution(name="Gasabo District Office", code="GSB", province="Kigali", district="Gasabo")
        kicukiro = Institution(name="Kicukiro District Office", code="KCK", province="Kigali", district="Kicukiro")
        national = Institution(name="Ministry of Local Government", code="MINALOC", province=None, district=None)
        db.session.add_all([gasabo, kicukiro, national])
        db.session.flush()

        water = Category(name="Water & Sanitation", code="WAT")
        infra = Category(name="Infrastructure", code="INF")
        health = Category(name="Health", code="HLT")
        db.session.add_all([water, infra, health])
        db.session.flush()
        roads = Category(name="Roads", code="INF-RD", parent_id=infra.id)
        bridges = Category(name="Bridges", code="INF-BR", parent_id=infra.id)
        db.session.add_all([roads, bridges])

        admin = User(email="admin@citizenconnect.gov.rw", full_name="Platform Admin", role="admin")
        admin.set_password(STAFF_PASSWORD)
        officer = User(
            email="officer@gasabo.gov.rw",
            full_name="Alice Uwase",
            role="institution_admin",
            institution_id=gasabo.id,
        )
        officer.set_password(STAFF_PASSWORD)
        citizen = User(email="citizen@mail.rw", full_name="Jean Citizen", role="citizen")
        db.session.add_all([admin, officer, citizen])
        db.session.commit()

        return SimpleNamespace(
            gasabo_id=gasabo.id,
            kicukiro_id=kicukiro.id,
            national_id=national.id,
            infra_id=infra.id,
            roads_id=roads.id,
            bridges_id=bridges.id,
            water_id=water.id,
            health_id=health.id,
            admin_id=admin.id,
            officer_id=officer.id,
            citizen_id=citizen.id,
        )


@pytest.fixture
def complaint_factory(app, refs):
    """Insert complaints directly, bypassing intake, with full control over timestamps."""
    serial = count(100001)

    def make(**overrides):
        with app.app_context():
            created_at = overrides.pop("created_at", datetime.utcnow())
            with_update = overrides.pop("with_update", True)
            fields = {
                "tracking_id": f"CMP-{next(serial)}",
                "title": "Broken water pipe",
                "description": "Water has been leaking for a week",
                "category_id": refs.water_id,
                "status": "submitted",
                "priority": "medium",
                "location": "KG 11 Ave",
                "province": "Kigali",
                "district": "Gasabo",
                "institution_id": refs.gasabo_id,
                "created_at": created_at,
            }
            fields.update(overrides)
            complaint = Complaint(**fields)
            db.session.add(complaint)
            db.session.flush()
            if with_update:
                db.session.add(
                    Update(complaint_id=complaint.id, status="submitted", comment="received", created_at=created_at)
                )
            db.session.commit()
            return SimpleNamespace(id=complaint.id, tracking_id=complaint.tracking_id)

    return make


class FailingSession:
    """Stands in for a session whose database is unreachable."""

    def __init__(self):
        self.rollbacks = 0

    def _fail(self, *args, **kwargs):
        raise OperationalError("SELECT 1", {}, Exception("database unavailable"))

    query = _fail
    get = _fail
    execute = _fail
    add = _fail
    flush = _fail
    commit = _fail

    def rollback(self):
        self.rollbacks += 1


@pytest.fixture
def failing_session():
    return FailingSession()


def login(client, email, password=STAFF_PASSWORD):
    return client.post("/auth/login", json={"email": email, "password": password})


@pytest.fixture
def admin_client(client, refs):
    response = login(client, "admin@citizenconnect.gov.rw")
    assert response.status_code == 200
    return client


@pytest.fixture
def officer_client(client, refs):
    response = login(client, "officer@gasabo.gov.rw")
    assert response.status_code == 200
    return client
