"""Shared test fixtures and helpers."""

from __future__ import annotations

import os
import tempfile

_TMP = tempfile.mkdtemp(prefix="landregistry-tests-")
# TEST_DATABASE_URL=postgresql://... runs the suite against PostGIS
os.environ["DATABASE_URL"] = os.environ.get("TEST_DATABASE_URL", f"sqlite:///{_TMP}/test.db")
os.environ["JWT_SECRET_KEY"] = "test-secret-key"
os.environ["UPLOAD_FOLDER"] = os.path.join(_TMP, "uploads")
os.environ["DEBUG"] = "true"

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

import landregistry.models  # noqa: E402,F401
from landregistry.database import Base, SessionLocal, engine, init_db  # noqa: E402
from landregistry.dependencies import get_file_store  # noqa: E402
from landregistry.main import app  # noqa: E402
from landregistry.models import Parcel, User  # noqa: E402
from landregistry.schemas import Actor  # noqa: E402
from landregistry.services.auth import create_user_token  # noqa: E402
from landregistry.services.documents import IncomingFile  # noqa: E402
from landregistry.services.geometry import polygon_geojson, ring_bounds  # noqa: E402
from landregistry.services.storage import LocalFileStore  # noqa: E402


def square(lon: float, lat: float, size: float = 0.01) -> list[list[float]]:
    """Closed 5-point ring with its south-west corner at (lon, lat)."""
    return [
        [lon, lat],
        [lon + size, lat],
        [lon + size, lat + size],
        [lon, lat + size],
        [lon, lat],
    ]


def polygon(ring: list[list[float]]) -> dict:
    return {"type": "Polygon", "coordinates": [ring]}


def build_parcel(user: User, parcel_id: str, ring: list[list[float]] | None = None, **fields) -> Parcel:
    ring = ring or square(34.75, -0.25)
    min_lon, min_lat, max_lon, max_lat = ring_bounds(ring)
    values = {
        "owner_name": "Jane Achieng",
        "owner_id_number": "12345678",
        "status": "pending_verification",
        "documents": [],
    }
    values.update(fields)
    return Parcel(
        parcel_id=parcel_id,
        geometry=polygon_geojson(ring),
        min_lon=min_lon,
        min_lat=min_lat,
        max_lon=max_lon,
        max_lat=max_lat,
        registered_by=user.id,
        version=1,
        **values,
    )


def pdf(name: str = "title_deed.pdf", data: bytes = b"%PDF-1.4 test") -> IncomingFile:
    return IncomingFile(filename=name, content_type="application/pdf", data=data)


def actor_for(user: User) -> Actor:
    return Actor(user_id=user.id, username=user.username, role=user.role)


def auth_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {create_user_token(str(user.id), user.username, user.role)}"}


@pytest.fixture(autouse=True)
def schema():
    Base.metadata.drop_all(bind=engine)
    init_db()
    yield


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def store(tmp_path):
    return LocalFileStore(tmp_path / "documents")


@pytest.fixture
def make_user(db):
    def _make(username: str, role: str) -> User:
        user = User(
            username=username,
            email=f"{username}@lands.example.org",
            role=role,
            password_hash="unused",
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture
def officer(make_user):
    return make_user("officer1", "field_officer")


@pytest.fixture
def other_officer(make_user):
    return make_user("officer2", "field_officer")


@pytest.fixture
def admin(make_user):
    return make_user("admin1", "admin")


@pytest.fixture
def verifier(make_user):
    return make_user("verifier1", "verifier")


@pytest.fixture
def client(store):
    app.dependency_overrides[get_file_store] = lambda: store
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
