import math
import os
import tempfile

# Point the app at a throwaway SQLite file before anything imports db.session
_TEST_DB_DIR = tempfile.mkdtemp(prefix="field-visits-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TEST_DB_DIR, 'test.db')}"

import pytest
from fastapi import Request
from fastapi.testclient import TestClient
from sqlmodel import Session, SQLModel

import models.override_audit  # noqa: F401
import models.visit  # noqa: F401
from core.deps import get_current_user
from db.session import engine
from models.geo import GeoPoint
from models.property import ManagedProperty
from utils.geofence import EARTH_RADIUS_METERS

ELM_CENTER = GeoPoint(latitude=40.0, longitude=-73.0)


def offset_north(point: GeoPoint, meters: float) -> GeoPoint:
    """Point `meters` due north of `point` (exact along a meridian)."""
    return GeoPoint(
        latitude=point.latitude + math.degrees(meters / EARTH_RADIUS_METERS),
        longitude=point.longitude,
    )


@pytest.fixture(autouse=True)
def fresh_tables():
    SQLModel.metadata.drop_all(engine)
    SQLModel.metadata.create_all(engine)
    yield
    SQLModel.metadata.drop_all(engine)


@pytest.fixture
def session():
    with Session(engine) as session:
        yield session


@pytest.fixture
def properties(session):
    elm = ManagedProperty(
        id="ELM-COURT",
        name="Elm Court",
        master_qr_code="MQR-ELM",
        geofence_center_lat=ELM_CENTER.latitude,
        geofence_center_lng=ELM_CENTER.longitude,
        geofence_radius_meters=30.0,
        geofence_manual_override_allowed=True,
    )
    strict = ManagedProperty(
        id="HARBOR-LOFTS",
        name="Harbor Lofts",
        master_qr_code="MQR-HARBOR",
        geofence_center_lat=ELM_CENTER.latitude,
        geofence_center_lng=ELM_CENTER.longitude,
        geofence_radius_meters=30.0,
        geofence_manual_override_allowed=False,
    )
    unfenced = ManagedProperty(
        id="OAK-ANNEX",
        name="Oak Annex",
        master_qr_code="MQR-OAK",
    )
    session.add_all([elm, strict, unfenced])
    session.commit()
    return {"elm": elm, "strict": strict, "unfenced": unfenced}


def fake_current_user(request: Request) -> dict:
    uid = request.headers.get("X-Test-Worker", "worker-a")
    return {
        "uid": uid,
        "name": uid,
        "email": f"{uid}@example.com",
        "role": request.headers.get("X-Test-Role", "worker"),
    }


@pytest.fixture
def client(properties):
    from main import app

    app.dependency_overrides[get_current_user] = fake_current_user
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
