"""Test configuration and fixtures for the users API."""

import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ACTIVITY_LOG_ENABLED"] = "false"
os.environ["APP_ENV"] = "test"

import pytest
from fastapi.testclient import TestClient

from app.database import Base, SessionLocal, engine
from app.main import create_app
from Security.security_config import load_settings

VALID_USER = {
    "name": "John Doe",
    "email": "john.doe@mail.com",
    "phone": "+972501234567",
    "address": "12 Herzl Street",
    "city": "Tel Aviv",
    "country": "Israel",
}


@pytest.fixture
def valid_user():
    return dict(VALID_USER)


@pytest.fixture
def settings():
    return load_settings()


@pytest.fixture
def database():
    """Fresh users table for every test."""
    from app import models  # noqa: F401

    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def make_client(database, settings):
    """Build a client around a new app; keyword arguments override settings."""

    def factory(**overrides):
        app = create_app({**settings, **overrides}, session_factory=SessionLocal)
        return TestClient(app)

    return factory


@pytest.fixture(name="client")
def client_fixture(make_client):
    return make_client()


@pytest.fixture
def created_user(client, valid_user):
    response = client.post("/api/users", json=valid_user)
    assert response.status_code == 201
    return response.json()["data"]
