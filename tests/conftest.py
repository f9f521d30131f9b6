# /tests/conftest.py

import os

# Must be set before anything from `rollcall` is imported.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SECRET_KEY"] = "rollcall-test-secret-key-with-enough-bytes"
os.environ["BCRYPT_ROUNDS"] = "4"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from rollcall.db.database import build_engine, get_db, init_db
from rollcall.main import app
from rollcall.services.database_service import DatabaseService, LockRegistry


@pytest.fixture
def engine():
    """A fresh in-memory database per test. StaticPool keeps it on one connection."""
    engine = build_engine("sqlite://", poolclass=StaticPool)
    init_db(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db_service(session_factory):
    session = session_factory()
    yield DatabaseService(db_session=session, locks=LockRegistry())
    session.close()


@pytest.fixture
def client(session_factory):
    """A TestClient whose requests all hit the per-test database."""
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def register(client):
    """Registers an instructor and returns the Authorization headers for them."""
    def _register(email="instructor@example.com", password="s3cret", display_name="Ms. Frizzle", name="Valerie Frizzle"):
        response = client.post("/api/register", json={
            "name": name,
            "email": email,
            "password": password,
            "displayName": display_name,
        })
        assert response.status_code == 201, response.text
        return {"Authorization": f"Bearer {response.json()['token']}"}
    return _register


@pytest.fixture
def auth_headers(register):
    return register()
