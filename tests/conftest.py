import os

# Configure before any project module reads config
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import numpy as np
import pytest
from fastapi.testclient import TestClient

import models  # noqa: F401
from app import app
from database import Base, SessionLocal, engine


@pytest.fixture(autouse=True)
def reset_database():
    """Every test starts from empty tables."""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def db_session():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def descriptor():
    return [round(i / 255, 6) for i in range(256)]


@pytest.fixture
def gradient_frame():
    """A 64x48 BGR frame whose brightness increases left to right."""
    row = np.linspace(0, 255, 64, dtype=np.uint8)
    gray = np.tile(row, (48, 1))
    return np.dstack([gray, gray, gray])


@pytest.fixture
def registered(client, descriptor):
    payload = {
        "username": "alice",
        "email": "alice@example.com",
        "password": "secret123",
        "confirmPassword": "secret123",
        "faceDescriptor": descriptor,
    }
    response = client.post("/auth/register", json=payload)
    assert response.status_code == 201
    return payload


@pytest.fixture
def logged_in(client, registered):
    response = client.post(
        "/auth/login",
        json={"email": registered["email"], "password": registered["password"]},
    )
    assert response.status_code == 200
    return response.json()["user"]
